# Overview: Pytest coverage for the cheque HTTP API.

from datetime import timedelta

import pytest
from pdcms.time_utils import today


def _payload(tenant_id, number="CHQ-001", **extra):
    body = {
        "cheque_number": number,
        "bank_name": "Emirates NBD",
        "tenant_id": tenant_id,
        "amount": "5000.00",
        "cheque_date": (today() + timedelta(days=20)).isoformat(),
    }
    body.update(extra)
    return body


@pytest.fixture
def registered(client, db_session, tenant, invoice, actor_headers):
    resp = client.post('/api/pdcs/', json=_payload(tenant.id, invoice_id=invoice.id), headers=actor_headers)
    assert resp.status_code == 201
    return resp.get_json()["pdc"]


class TestAuthentication:

    def test_missing_actor_header(self, client, db_session, tenant):
        resp = client.post('/api/pdcs/', json=_payload(tenant.id))
        assert resp.status_code == 401

    def test_non_numeric_actor_header(self, client, db_session):
        resp = client.get('/api/pdcs/', headers={'X-User-Id': 'admin'})
        assert resp.status_code == 401


class TestRegistrationRoutes:

    def test_register(self, registered, tenant):
        assert registered["status"] == "RECEIVED"
        assert registered["amount"] == "5000.00"
        assert registered["tenant_name"] == "Layla Haddad"
        assert registered["created_by_user_id"] == 7

    def test_duplicate_returns_409(self, client, registered, tenant, actor_headers):
        resp = client.post('/api/pdcs/', json=_payload(tenant.id, number="chq-001"), headers=actor_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "DUPLICATE_CHEQUE"
        assert body["cheque_numbers"] == ["CHQ-001"]

    def test_validation_returns_400(self, client, db_session, tenant, actor_headers):
        resp = client.post('/api/pdcs/', json=_payload(tenant.id, amount="0"), headers=actor_headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_tenant_returns_404(self, client, db_session, actor_headers):
        resp = client.post('/api/pdcs/', json=_payload(999), headers=actor_headers)
        assert resp.status_code == 404

    def test_bulk(self, client, db_session, tenant, actor_headers):
        entries = [
            {"cheque_number": f"BLK-{i}", "bank_name": "ADCB", "amount": "1200.00",
             "cheque_date": (today() + timedelta(days=30 * i)).isoformat()}
            for i in range(1, 4)
        ]
        resp = client.post('/api/pdcs/bulk', json={"tenant_id": tenant.id, "entries": entries},
                           headers=actor_headers)
        assert resp.status_code == 201
        assert resp.get_json()["count"] == 3

    def test_check_duplicate(self, client, registered, tenant, actor_headers):
        resp = client.get(f'/api/pdcs/check-duplicate?cheque_number=chq-001&tenant_id={tenant.id}',
                          headers=actor_headers)
        assert resp.get_json() == {"duplicate": True}


class TestReadRoutes:

    def test_get_includes_allowed_actions(self, client, registered, actor_headers):
        resp = client.get(f'/api/pdcs/{registered["id"]}', headers=actor_headers)
        assert resp.status_code == 200
        assert set(resp.get_json()["pdc"]["allowed_actions"]) == {"mark_due", "deposit", "withdraw", "cancel"}

    def test_get_unknown_returns_404(self, client, db_session, actor_headers):
        resp = client.get('/api/pdcs/999', headers=actor_headers)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_list_with_all_status(self, client, registered, actor_headers):
        resp = client.get('/api/pdcs/?status=ALL&page=0&size=10', headers=actor_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["total_elements"] == 1
        assert body["page"] == 0
        assert body["items"][0]["cheque_number"] == "CHQ-001"

    def test_list_bad_date_returns_400(self, client, db_session, actor_headers):
        resp = client.get('/api/pdcs/?from_date=yesterday', headers=actor_headers)
        assert resp.status_code == 400

    def test_by_tenant_and_invoice(self, client, registered, tenant, invoice, actor_headers):
        assert client.get(f'/api/pdcs/tenant/{tenant.id}', headers=actor_headers).get_json()["total_elements"] == 1
        assert len(client.get(f'/api/pdcs/invoice/{invoice.id}', headers=actor_headers).get_json()["pdcs"]) == 1

    def test_events(self, client, registered, actor_headers):
        resp = client.get(f'/api/pdcs/{registered["id"]}/events', headers=actor_headers)
        assert [e["event_type"] for e in resp.get_json()["events"]] == ["pdc.registered"]


class TestTransitionRoutes:

    def _deposit(self, client, pdc_id, bank_account, headers, **extra):
        body = {"deposit_date": today().isoformat(), "bank_account_id": bank_account.id}
        body.update(extra)
        return client.post(f'/api/pdcs/{pdc_id}/deposit', json=body, headers=headers)

    def test_full_happy_path_with_reconciliation(self, client, registered, bank_account, actor_headers, invoice):
        resp = self._deposit(client, registered["id"], bank_account, actor_headers,
                             version=registered["version_id"])
        assert resp.status_code == 200
        assert resp.get_json()["pdc"]["status"] == "DEPOSITED"

        resp = client.post(f'/api/pdcs/{registered["id"]}/clear',
                           json={"cleared_date": today().isoformat()}, headers=actor_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["pdc"]["status"] == "CLEARED"
        assert body["warnings"] == []

    def test_stale_version_returns_409(self, client, registered, bank_account, actor_headers):
        resp = self._deposit(client, registered["id"], bank_account, actor_headers,
                             version=registered["version_id"] + 5)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "CONCURRENT_MODIFICATION"

    def test_invalid_transition_returns_409(self, client, registered, actor_headers):
        resp = client.post(f'/api/pdcs/{registered["id"]}/clear',
                           json={"cleared_date": today().isoformat()}, headers=actor_headers)
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INVALID_TRANSITION"
        assert body["error"] == "cannot clear a RECEIVED cheque"

    def test_bounce_replace_and_chain(self, client, registered, bank_account, actor_headers):
        pdc_id = registered["id"]
        self._deposit(client, pdc_id, bank_account, actor_headers)
        resp = client.post(f'/api/pdcs/{pdc_id}/bounce',
                           json={"bounced_date": today().isoformat(), "bounce_reason": "Stopped"},
                           headers=actor_headers)
        assert resp.get_json()["pdc"]["status"] == "BOUNCED"

        replace_body = {
            "new_cheque_number": "CHQ-002",
            "bank_name": "ADCB",
            "amount": "5000.00",
            "cheque_date": (today() + timedelta(days=7)).isoformat(),
        }
        resp = client.post(f'/api/pdcs/{pdc_id}/replace', json=replace_body, headers=actor_headers)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["original"]["status"] == "REPLACED"
        assert body["pdc"]["original_pdc_id"] == pdc_id

        replace_body["new_cheque_number"] = "CHQ-003"
        resp = client.post(f'/api/pdcs/{pdc_id}/replace', json=replace_body, headers=actor_headers)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ALREADY_REPLACED"

        chain = client.get(f'/api/pdcs/{pdc_id}/chain', headers=actor_headers).get_json()["chain"]
        assert [p["cheque_number"] for p in chain] == ["CHQ-001", "CHQ-002"]

    def test_withdraw_and_cancel(self, client, db_session, tenant, actor_headers):
        first = client.post('/api/pdcs/', json=_payload(tenant.id, number="W-001"), headers=actor_headers)
        second = client.post('/api/pdcs/', json=_payload(tenant.id, number="W-002"), headers=actor_headers)

        resp = client.post(f'/api/pdcs/{first.get_json()["pdc"]["id"]}/withdraw', json={
            "withdrawal_date": today().isoformat(),
            "withdrawal_reason": "Tenant paying by transfer",
            "new_payment_method": "BANK_TRANSFER",
        }, headers=actor_headers)
        assert resp.status_code == 400

        resp = client.post(f'/api/pdcs/{first.get_json()["pdc"]["id"]}/withdraw', json={
            "withdrawal_date": today().isoformat(),
            "withdrawal_reason": "Tenant paying by transfer",
            "new_payment_method": "BANK_TRANSFER",
            "transaction_id": "FT-7781",
        }, headers=actor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["pdc"]["status"] == "WITHDRAWN"

        resp = client.post(f'/api/pdcs/{second.get_json()["pdc"]["id"]}/cancel', headers=actor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["pdc"]["status"] == "CANCELLED"

        withdrawals = client.get('/api/pdcs/withdrawals', headers=actor_headers).get_json()
        assert withdrawals["total_elements"] == 1


class TestDashboardRoutes:

    def test_dashboard(self, client, registered, actor_headers):
        resp = client.get('/api/pdcs/dashboard', headers=actor_headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["summary"]["total_received"] == 1
        assert body["holder_name"] == "Acme Properties LLC"

    def test_tenant_history(self, client, registered, tenant, actor_headers):
        body = client.get(f'/api/pdcs/tenant/{tenant.id}/history', headers=actor_headers).get_json()
        assert body["stats"]["total"] == 1
        assert body["stats"]["bounce_rate_percent"] == 0
        assert body["pdcs"]["total_elements"] == 1

    def test_banks_and_holder(self, client, registered, actor_headers):
        assert client.get('/api/pdcs/banks', headers=actor_headers).get_json() == {"banks": ["Emirates NBD"]}
        assert client.get('/api/pdcs/holder', headers=actor_headers).get_json() == {
            "holder_name": "Acme Properties LLC"
        }


def test_health(client, db_session):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()["checks"]["database"]["status"] == "healthy"
