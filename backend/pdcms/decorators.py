# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Require the calling user's id and expose it to the route.

    Authentication happens upstream (gateway/session layer); this service
    only records who acted. Sets:
    - g.current_user_id: integer id from the X-User-Id header

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": "Authentication required", "code": "UNAUTHENTICATED"}), 401
        try:
            user_id = int(raw)
        except ValueError:
            return jsonify({"error": f"Invalid {ACTOR_HEADER} header", "code": "UNAUTHENTICATED"}), 401
        if user_id <= 0:
            return jsonify({"error": f"Invalid {ACTOR_HEADER} header", "code": "UNAUTHENTICATED"}), 401

        g.current_user_id = user_id
        return f(*args, **kwargs)

    return decorated_function
