# Overview: Zero-based page wrapper over Flask-SQLAlchemy pagination.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from ..validation import ValidationError


DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class Page:
    items: list[Any]
    page: int
    size: int
    total_elements: int
    total_pages: int = field(default=0)

    def to_dict(self, serialize: Callable[[Any], dict] | None = None) -> dict:
        serialize = serialize or (lambda item: item.to_dict())
        return {
            "items": [serialize(item) for item in self.items],
            "page": self.page,
            "size": self.size,
            "total_elements": self.total_elements,
            "total_pages": self.total_pages,
        }


def normalize_page(page: int | None, size: int | None) -> tuple[int, int]:
    page = 0 if page is None else int(page)
    size = DEFAULT_PAGE_SIZE if size is None else int(size)
    if page < 0:
        raise ValidationError("page must be >= 0")
    if size < 1 or size > MAX_PAGE_SIZE:
        raise ValidationError(f"size must be between 1 and {MAX_PAGE_SIZE}")
    return page, size


def paginate(query, page: int | None, size: int | None) -> Page:
    """Paginate an ordered query; page is zero-based like the API."""
    page, size = normalize_page(page, size)
    result = query.paginate(page=page + 1, per_page=size, error_out=False)
    return Page(
        items=list(result.items),
        page=page,
        size=size,
        total_elements=result.total or 0,
        total_pages=result.pages,
    )
