import threading

from workshop_billing.business_logic.invoice_number_sequencer import parse_trailing_number
from workshop_billing.main_app import BillingApplication

from conftest import ORG, NOW, agreement_data


def run_in_threads(targets):
    errors = []
    barrier = threading.Barrier(len(targets))

    def wrap(target):
        def runner():
            barrier.wait()
            try:
                target()
            except Exception as e:
                errors.append(e)
        return runner

    threads = [threading.Thread(target=wrap(t)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=120)
    return errors


def test_concurrent_issuers_never_share_a_number(db_path):
    # Separate application instances stand in for separate service processes
    apps = [BillingApplication(db_path) for _ in range(4)]
    vehicle = apps[0].vehicle_manager.add_vehicle(ORG, customer_name="Fleet")
    for index in range(12):
        apps[0].agreement_manager.create_agreement(ORG, agreement_data(vehicle.id, title=f"Agreement {index}"))

    def create_invoices(app):
        def target():
            for _ in range(5):
                app.invoice_manager.create_invoice(ORG, {"title": "Walk-in repair", "vehicle_id": vehicle.id,
                                                         "service_date": "2026-01-15", "cost": "10"}, now=NOW)
        return target

    def run_billing(app):
        return lambda: app.processor.run_due_billing(now=NOW)

    errors = run_in_threads([create_invoices(apps[0]), create_invoices(apps[1]),
                             run_billing(apps[2]), run_billing(apps[3])])

    assert errors == []
    invoices = apps[0].invoice_manager.list_invoices(ORG)
    numbers = [invoice.invoice_number for invoice in invoices]
    assert len(invoices) == 10 + 12
    assert len(set(numbers)) == len(numbers)
    assert sorted(parse_trailing_number(n) for n in numbers) == list(range(1001, 1001 + len(numbers)))


def test_concurrent_runs_bill_each_agreement_once(db_path):
    apps = [BillingApplication(db_path) for _ in range(3)]
    vehicle = apps[0].vehicle_manager.add_vehicle(ORG)
    agreements = [apps[0].agreement_manager.create_agreement(ORG, agreement_data(vehicle.id, title=f"A{i}"))
                  for i in range(8)]
    runs = []

    errors = run_in_threads([(lambda app=app: runs.append(app.processor.run_due_billing(now=NOW))) for app in apps])

    assert errors == []
    assert sum(run.processed_count for run in runs) == len(agreements)
    assert all(run.failures == [] for run in runs)
    for agreement in agreements:
        assert apps[0].agreement_manager.get_agreement(ORG, agreement.id).run_count == 1
        assert len(apps[0].invoices_repo.get_by_agreement_id(agreement.id)) == 1
