# Overview: Pytest coverage for cheque registration, the duplicate guard and read queries.

from datetime import timedelta
from decimal import Decimal

import pytest
from pdcms.models import PDC, PDCEvent, PDCStatus
from pdcms.services import pdc_registry_service
from pdcms.services.errors import DuplicateChequeError, NotFoundError
from pdcms.services.pdc_registry_service import PDCFilter
from pdcms.time_utils import today
from pdcms.validation import ValidationError


def _entry(number, days=30, amount="2500.00", **extra):
    entry = {
        "cheque_number": number,
        "bank_name": "Mashreq",
        "amount": amount,
        "cheque_date": (today() + timedelta(days=days)).isoformat(),
    }
    entry.update(extra)
    return entry


class TestRegister:

    def test_register_creates_received_cheque(self, db_session, tenant, invoice):
        pdc = pdc_registry_service.register(
            cheque_number="chq-001",
            bank_name="Emirates NBD",
            tenant_id=tenant.id,
            amount="5000.00",
            cheque_date=(today() + timedelta(days=10)).isoformat(),
            invoice_id=invoice.id,
            actor_user_id=7,
        )

        assert pdc.id is not None
        assert pdc.status == PDCStatus.RECEIVED
        assert pdc.cheque_number == "CHQ-001"
        assert pdc.amount == Decimal("5000.00")
        assert pdc.invoice_id == invoice.id
        assert pdc.created_by_user_id == 7
        assert pdc.deposit_date is None
        assert pdc.cleared_date is None
        assert pdc.replacement_pdc_id is None
        assert pdc.original_pdc_id is None

    def test_register_writes_registered_event(self, db_session, make_pdc):
        pdc = make_pdc()
        events = db_session.query(PDCEvent).filter_by(pdc_id=pdc.id).all()
        assert [e.event_type for e in events] == ["pdc.registered"]
        assert events[0].from_status is None
        assert events[0].to_status == "RECEIVED"

    def test_duplicate_for_same_tenant_rejected(self, db_session, make_pdc):
        make_pdc(cheque_number="CHQ-777")
        with pytest.raises(DuplicateChequeError) as exc:
            make_pdc(cheque_number="CHQ-777")
        assert exc.value.cheque_numbers == ["CHQ-777"]
        assert db_session.query(PDC).count() == 1

    def test_duplicate_check_is_case_insensitive(self, db_session, make_pdc):
        make_pdc(cheque_number="abc-100")
        with pytest.raises(DuplicateChequeError):
            make_pdc(cheque_number="ABC-100")

    def test_same_number_allowed_for_other_tenant(self, db_session, make_pdc, other_tenant):
        first = make_pdc(cheque_number="CHQ-500")
        second = make_pdc(cheque_number="CHQ-500", tenant_id=other_tenant.id)
        assert first.id != second.id

    def test_unknown_tenant_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            pdc_registry_service.register(
                cheque_number="CHQ-001",
                bank_name="ADCB",
                tenant_id=9999,
                amount="100.00",
                cheque_date=today().isoformat(),
            )

    def test_unknown_invoice_rejected(self, db_session, make_pdc):
        with pytest.raises(NotFoundError):
            make_pdc(invoice_id=424242)

    @pytest.mark.parametrize("amount", ["0", "-5", "100000000.00", "12.345", "abc"])
    def test_invalid_amount_rejected(self, db_session, make_pdc, amount):
        with pytest.raises(ValidationError):
            make_pdc(amount=amount)

    @pytest.mark.parametrize("number", ["AB", "CHQ 001", "CHQ#1", ""])
    def test_invalid_cheque_number_rejected(self, db_session, make_pdc, number):
        with pytest.raises(ValidationError):
            make_pdc(cheque_number=number)

    def test_missing_cheque_date_rejected(self, db_session, make_pdc):
        with pytest.raises(ValidationError):
            make_pdc(cheque_date=None)

    def test_check_duplicate(self, db_session, make_pdc, tenant, other_tenant):
        make_pdc(cheque_number="CHQ-900")
        assert pdc_registry_service.check_duplicate("chq-900", tenant.id) is True
        assert pdc_registry_service.check_duplicate("CHQ-900", other_tenant.id) is False
        assert pdc_registry_service.check_duplicate("CHQ-901", tenant.id) is False


class TestRegisterBulk:

    def test_bulk_registers_all_entries(self, db_session, tenant, invoice):
        pdcs = pdc_registry_service.register_bulk(
            tenant_id=tenant.id,
            invoice_id=invoice.id,
            lease_id=12,
            entries=[_entry("B-001", 30), _entry("B-002", 60), _entry("B-003", 90)],
        )

        assert [p.cheque_number for p in pdcs] == ["B-001", "B-002", "B-003"]
        assert all(p.status == PDCStatus.RECEIVED for p in pdcs)
        assert all(p.invoice_id == invoice.id and p.lease_id == 12 for p in pdcs)

    def test_entry_invoice_overrides_batch_invoice(self, db_session, tenant, invoice):
        pdcs = pdc_registry_service.register_bulk(
            tenant_id=tenant.id,
            entries=[_entry("B-010"), _entry("B-011", invoice_id=invoice.id)],
        )
        assert pdcs[0].invoice_id is None
        assert pdcs[1].invoice_id == invoice.id

    def test_null_entry_invoice_falls_back_to_batch_invoice(self, db_session, tenant, invoice):
        pdcs = pdc_registry_service.register_bulk(
            tenant_id=tenant.id,
            invoice_id=invoice.id,
            entries=[_entry("B-020", invoice_id=None), _entry("B-021", invoice_id=""), _entry("B-022")],
        )
        assert [p.invoice_id for p in pdcs] == [invoice.id, invoice.id, invoice.id]

    def test_bulk_is_all_or_nothing_on_existing_duplicate(self, db_session, tenant, make_pdc):
        make_pdc(cheque_number="B-002")

        with pytest.raises(DuplicateChequeError) as exc:
            pdc_registry_service.register_bulk(
                tenant_id=tenant.id,
                entries=[_entry("B-001"), _entry("b-002"), _entry("B-003")],
            )

        assert exc.value.cheque_numbers == ["B-002"]
        assert db_session.query(PDC).count() == 1

    def test_bulk_rejects_duplicates_within_submission(self, db_session, tenant):
        with pytest.raises(ValidationError, match="within submission"):
            pdc_registry_service.register_bulk(
                tenant_id=tenant.id,
                entries=[_entry("B-001"), _entry("b-001")],
            )
        assert db_session.query(PDC).count() == 0

    def test_bulk_invalid_entry_names_its_index(self, db_session, tenant):
        with pytest.raises(ValidationError, match=r"entries\[1\]"):
            pdc_registry_service.register_bulk(
                tenant_id=tenant.id,
                entries=[_entry("B-001"), _entry("B-002", amount="-1")],
            )
        assert db_session.query(PDC).count() == 0

    def test_bulk_size_limits(self, db_session, tenant):
        with pytest.raises(ValidationError):
            pdc_registry_service.register_bulk(tenant_id=tenant.id, entries=[])

        too_many = [_entry(f"B-{i:03d}") for i in range(25)]
        with pytest.raises(ValidationError):
            pdc_registry_service.register_bulk(tenant_id=tenant.id, entries=too_many)

        exactly_max = [_entry(f"M-{i:03d}") for i in range(24)]
        assert len(pdc_registry_service.register_bulk(tenant_id=tenant.id, entries=exactly_max)) == 24


class TestReads:

    def test_get_pdc_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            pdc_registry_service.get_pdc(12345)

    def test_list_filters_and_sorting(self, db_session, make_pdc, other_tenant):
        make_pdc(cheque_number="AAA-1", cheque_date=today() + timedelta(days=5), bank_name="ADCB")
        make_pdc(cheque_number="AAA-2", cheque_date=today() + timedelta(days=15))
        make_pdc(cheque_number="BBB-1", cheque_date=today() + timedelta(days=25), tenant_id=other_tenant.id)

        page = pdc_registry_service.list_pdcs(PDCFilter(search="aaa"))
        assert [p.cheque_number for p in page.items] == ["AAA-1", "AAA-2"]
        assert page.total_elements == 2

        page = pdc_registry_service.list_pdcs(PDCFilter(tenant_id=other_tenant.id))
        assert [p.cheque_number for p in page.items] == ["BBB-1"]

        page = pdc_registry_service.list_pdcs(PDCFilter(bank_name="ADCB"))
        assert [p.cheque_number for p in page.items] == ["AAA-1"]

        page = pdc_registry_service.list_pdcs(PDCFilter(
            from_date=today() + timedelta(days=10),
            to_date=today() + timedelta(days=20),
        ))
        assert [p.cheque_number for p in page.items] == ["AAA-2"]

        page = pdc_registry_service.list_pdcs(PDCFilter(sort_by="cheque_date", sort_direction="desc"))
        assert [p.cheque_number for p in page.items] == ["BBB-1", "AAA-2", "AAA-1"]

        page = pdc_registry_service.list_pdcs(PDCFilter(status="received"))
        assert page.total_elements == 3

    def test_list_pagination_is_zero_based(self, db_session, make_pdc):
        for i in range(5):
            make_pdc(cheque_date=today() + timedelta(days=i + 1))

        first = pdc_registry_service.list_pdcs(page=0, size=2)
        last = pdc_registry_service.list_pdcs(page=2, size=2)

        assert first.total_elements == 5
        assert first.total_pages == 3
        assert len(first.items) == 2
        assert len(last.items) == 1

    def test_list_rejects_unknown_sort_and_status(self, db_session):
        with pytest.raises(ValidationError):
            pdc_registry_service.list_pdcs(PDCFilter(sort_by="tenant_secret"))
        with pytest.raises(ValidationError):
            pdc_registry_service.list_pdcs(PDCFilter(status="LOST"))

    def test_list_by_tenant_and_invoice(self, db_session, make_pdc, tenant, invoice):
        make_pdc(invoice_id=invoice.id)
        make_pdc()

        assert pdc_registry_service.list_by_tenant(tenant.id).total_elements == 2
        assert len(pdc_registry_service.list_by_invoice(invoice.id)) == 1
