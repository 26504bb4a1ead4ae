import sqlite3

import pytest

from workshop_billing.business_logic.authorization import AuthContext, SYSTEM_CONTEXT
from workshop_billing.constants import Permission, PaymentStatus
from workshop_billing.main_app import BillingApplication

from conftest import ORG, OTHER_ORG, NOW, agreement_data


@pytest.fixture
def revalidated():
    return []


@pytest.fixture
def service_app(db_path, revalidated):
    return BillingApplication(db_path, revalidate=revalidated.append)


@pytest.fixture
def service_vehicle(service_app):
    return service_app.vehicle_manager.add_vehicle(ORG, customer_name="Dana Reyes")


class TestAuthorization:
    def test_missing_permission_is_reported_not_raised(self, service_app, service_vehicle, read_only_context):
        result = service_app.service.create_agreement(read_only_context, agreement_data(service_vehicle.id))

        assert result.ok is False
        assert result.error_code == "permission_denied"
        assert service_app.agreement_manager.list_agreements(ORG) == []

    def test_read_needs_read_permission(self, service_app):
        no_permissions = AuthContext(user_id="guest", organization_id=ORG)
        assert service_app.service.list_invoices(no_permissions).error_code == "permission_denied"

    def test_run_needs_create_permission(self, service_app, read_only_context):
        result = service_app.service.run_due_billing(read_only_context, now=NOW)
        assert result.error_code == "permission_denied"

    def test_organization_scoped_calls_need_an_organization(self, service_app):
        assert service_app.service.list_agreements(SYSTEM_CONTEXT).error_code == "permission_denied"


class TestResults:
    def test_validation_error_is_a_structured_result(self, service_app, service_vehicle, full_context):
        result = service_app.service.create_agreement(full_context, agreement_data(service_vehicle.id, frequency="daily"))

        assert result.ok is False
        assert result.error_code == "validation_error"
        assert "frequency" in result.error

    def test_not_found_is_a_structured_result(self, service_app, full_context):
        result = service_app.service.get_invoice(full_context, 12345)
        assert (result.ok, result.error_code) == (False, "not_found")

    def test_database_error_is_a_structured_result(self, service_app, full_context, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")
        monkeypatch.setattr(service_app.invoices_repo, "get_by_organization", broken)

        result = service_app.service.list_invoices(full_context)

        assert (result.ok, result.error_code) == (False, "database_error")

    def test_run_that_cannot_start_is_a_hard_error(self, service_app, full_context, monkeypatch):
        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("unable to open database file")
        monkeypatch.setattr(service_app.agreements_repo, "get_due_ids", broken)

        result = service_app.service.run_due_billing(full_context, now=NOW)

        assert (result.ok, result.error_code) == (False, "run_failed")


class TestEndToEnd:
    def test_agreement_to_paid_invoice(self, service_app, service_vehicle, full_context, revalidated):
        created = service_app.service.create_agreement(full_context, agreement_data(service_vehicle.id))
        assert created.ok
        assert revalidated[-1] == ["/billing", "/billing/recurring"]

        run = service_app.service.run_due_billing(full_context, now=NOW)
        assert run.ok
        assert run.data.processed_count == 1
        invoice_id = run.data.results[0].invoice_id
        assert f"/invoices/{invoice_id}" in revalidated[-1]

        paid = service_app.service.record_payment(full_context, {"invoice_id": invoice_id, "amount": "214.50",
                                                                 "method": "credit_card"})
        assert paid.ok
        assert paid.data.status == PaymentStatus.PAID
        assert paid.data.balance_due == 0

    def test_system_context_runs_every_organization(self, service_app, service_vehicle):
        other_vehicle = service_app.vehicle_manager.add_vehicle(OTHER_ORG)
        service_app.agreement_manager.create_agreement(ORG, agreement_data(service_vehicle.id))
        service_app.agreement_manager.create_agreement(OTHER_ORG, agreement_data(other_vehicle.id))

        result = service_app.service.run_due_billing(SYSTEM_CONTEXT, now=NOW)

        assert result.ok
        assert result.data.processed_count == 2

    def test_organization_context_runs_only_its_organization(self, service_app, service_vehicle, full_context):
        other_vehicle = service_app.vehicle_manager.add_vehicle(OTHER_ORG)
        service_app.agreement_manager.create_agreement(OTHER_ORG, agreement_data(other_vehicle.id))

        result = service_app.service.run_due_billing(full_context, now=NOW)

        assert result.ok
        assert result.data.processed_count == 0

    def test_failing_revalidate_hook_does_not_fail_the_call(self, db_path, full_context):
        def broken_hook(paths):
            raise RuntimeError("cache unreachable")
        app = BillingApplication(db_path, revalidate=broken_hook)
        vehicle = app.vehicle_manager.add_vehicle(ORG)

        result = app.service.create_agreement(full_context, agreement_data(vehicle.id))

        assert result.ok
        assert len(app.agreement_manager.list_agreements(ORG)) == 1

    def test_toggle_and_delete_through_service(self, service_app, service_vehicle, full_context):
        agreement = service_app.service.create_agreement(full_context, agreement_data(service_vehicle.id)).data

        toggled = service_app.service.toggle_agreement(full_context, agreement.id)
        assert toggled.ok and toggled.data.is_active is False

        assert service_app.service.delete_agreement(full_context, agreement.id).ok
        assert service_app.service.get_agreement(full_context, agreement.id).error_code == "not_found"

    def test_delete_permission_is_separate(self, service_app, service_vehicle, full_context):
        agreement = service_app.service.create_agreement(full_context, agreement_data(service_vehicle.id)).data
        editor = AuthContext(user_id="editor", organization_id=ORG,
                             permissions=frozenset({Permission.BILLING_READ, Permission.BILLING_UPDATE}))

        assert service_app.service.delete_agreement(editor, agreement.id).error_code == "permission_denied"
        assert service_app.service.update_agreement(editor, {"id": agreement.id, "title": "Renamed"}).ok
