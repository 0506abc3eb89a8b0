"""
Tests for the persistence helpers the reconciliation services sit on.
"""
from datetime import datetime, timedelta

import pytest

from tenant_screening.models.db_models import CredentialStatus, ScreeningOrderStatus

NOW = datetime(2025, 3, 10, 12, 0, 0)


class TestScreeningOrderStore:

    def test_create_defaults(self, db, make_submission):
        from tenant_screening.services.screening import ScreeningOrderStore

        submission = make_submission()
        order = ScreeningOrderStore(db).create(
            submission.id, "LS-abc-1", next_status_check_at=NOW, poll_until=NOW + timedelta(hours=48),
        )

        assert order.status == ScreeningOrderStatus.NOT_SENT
        assert order.consecutive_failures == 0
        assert ScreeningOrderStore(db).get_by_reference("LS-abc-1").id == order.id

    def test_reference_number_is_immutable(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningOrderStore

        order = make_order(make_submission())

        with pytest.raises(ValueError):
            ScreeningOrderStore(db).update(order, reference_number="LS-other")

    def test_terminal_update_clears_schedule(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningOrderStore

        order = make_order(make_submission())

        ScreeningOrderStore(db).update(order, status=ScreeningOrderStatus.COMPLETE, next_status_check_at=NOW)

        assert order.next_status_check_at is None

    def test_due_scan_orders_oldest_first(self, db, make_submission, make_order):
        from tenant_screening.services.screening import ScreeningOrderStore

        submission = make_submission()
        later = make_order(submission, next_status_check_at=NOW - timedelta(minutes=1))
        earlier = make_order(submission, next_status_check_at=NOW - timedelta(minutes=30))
        make_order(submission, status=ScreeningOrderStatus.ERROR, next_status_check_at=NOW - timedelta(hours=1))

        due = ScreeningOrderStore(db).list_due_for_poll(NOW)

        assert [o.id for o in due] == [earlier.id, later.id]


class TestCredentialStore:

    def test_no_record(self, db):
        from tenant_screening.services.screening import CredentialStore

        assert CredentialStore(db, decryptor=lambda v, iv: v).resolve_for_owner("nobody") is None

    def test_pending_record_is_not_used(self, db, store_landlord_credentials):
        from tenant_screening.services.screening import CredentialStore

        store_landlord_credentials("ll-1", status=CredentialStatus.PENDING_VERIFICATION)

        assert CredentialStore(db, decryptor=lambda v, iv: v).resolve_for_owner("ll-1") is None

    def test_decryptor_receives_iv(self, db, store_landlord_credentials):
        from tenant_screening.services.screening import CredentialStore

        store_landlord_credentials("ll-2", invitation_id="INV-2")
        calls = []

        def decryptor(value, iv):
            calls.append((value, iv))
            return value.upper()

        creds = CredentialStore(db, decryptor=decryptor).resolve_for_owner("ll-2")

        assert creds.username == "ENC-USER"
        assert creds.invitation_id == "INV-2"
        assert calls == [("enc-user", "iv"), ("enc-pass", "iv")]
        assert "ENC-PASS" not in repr(creds)

    def test_missing_decryptor_raises(self, db, store_landlord_credentials):
        from tenant_screening.services.screening import CredentialDecryptionError, CredentialStore

        store_landlord_credentials("ll-3")

        with pytest.raises(CredentialDecryptionError) as exc:
            CredentialStore(db).resolve_for_owner("ll-3")
        assert exc.value.owner_id == "ll-3"
