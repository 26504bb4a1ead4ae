import pytest

from workshop_billing.main_app import build_parser, cmd_run_billing, cmd_ledger, cmd_settings

from conftest import ORG


def test_run_billing_command(app, make_agreement, capsys):
    make_agreement()
    args = build_parser().parse_args(["run-billing", "--org", ORG, "--as-of", "2026-01-15T09:00"])

    assert cmd_run_billing(app, args) == 0

    out = capsys.readouterr().out
    assert "Processed 1 agreement(s), 0 failure(s)." in out
    assert "2026-1001" in out


def test_ledger_command(app, make_invoice, capsys):
    invoice = make_invoice()
    app.payment_manager.record_payment(ORG, {"invoice_id": invoice.id, "amount": "40", "method": "cash"})
    args = build_parser().parse_args(["ledger", "--org", ORG, "--invoice", str(invoice.id)])

    assert cmd_ledger(app, args) == 0
    assert "balance 60.00 (partial)" in capsys.readouterr().out


def test_ledger_command_unknown_invoice(app, capsys):
    args = build_parser().parse_args(["ledger", "--org", ORG, "--invoice", "999"])
    assert cmd_ledger(app, args) == 2
    assert "not found" in capsys.readouterr().err


def test_run_billing_rejects_malformed_as_of(capsys):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["run-billing", "--as-of", "next tuesday"])
    assert exc.value.code == 2
    assert "--as-of" in capsys.readouterr().err


def test_settings_command(app, capsys):
    args = build_parser().parse_args(["settings", "--org", ORG, "--prefix", "WS-{year}-", "--start-number", "5000",
                                      "--tax-rate", "7.5"])

    assert cmd_settings(app, args) == 0

    out = capsys.readouterr().out
    assert "Invoice prefix: WS-{year}-" in out
    assert "Pending start number: 5000" in out
    assert "Default tax rate: 7.5%" in out


def test_settings_command_rejects_bad_tax_rate(app, capsys):
    args = build_parser().parse_args(["settings", "--org", ORG, "--tax-rate", "250"])
    assert cmd_settings(app, args) == 2
