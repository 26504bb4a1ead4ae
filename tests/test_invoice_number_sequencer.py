from datetime import date, datetime

import pytest

from workshop_billing.business_logic.invoice_number_sequencer import (
    highest_issued, next_sequence, parse_trailing_number, parse_starting_offset, resolve_prefix,
)
from workshop_billing.exceptions import ConflictError, NotFoundError

from conftest import ORG, OTHER_ORG


class TestNumberParsing:
    @pytest.mark.parametrize("number, expected", [
        ("2026-1042", 1042),
        ("INV-007", 7),
        ("1001", 1001),
        ("WS-2026-88", 88),
        ("MANUAL", None),
        ("2026-1042a", None),
        ("", None),
        (None, None),
    ])
    def test_parse_trailing_number(self, number, expected):
        assert parse_trailing_number(number) == expected

    @pytest.mark.parametrize("raw, expected", [("5000", 5000), (" 42 ", 42), ("", None), (None, None),
                                               ("abc", None), ("0", None), ("-5", None)])
    def test_parse_starting_offset(self, raw, expected):
        assert parse_starting_offset(raw) == expected

    def test_resolve_prefix_uses_the_issuing_year(self):
        assert resolve_prefix("{year}-", date(2026, 3, 1)) == "2026-"
        assert resolve_prefix("WS-{year}/", datetime(2027, 1, 1, 0, 0)) == "WS-2027/"
        assert resolve_prefix("INV-", date(2026, 3, 1)) == "INV-"


class TestNextSequence:
    def test_continues_after_last_issued(self):
        assert next_sequence(None, ["2026-1042"]) == 1043

    def test_first_number_defaults_to_1001(self):
        assert next_sequence(None, []) == 1001

    def test_offset_wins_when_higher(self):
        assert next_sequence(5000, []) == 5000
        assert next_sequence(5000, ["2026-1042"]) == 5000

    def test_last_issued_wins_when_higher_than_offset(self):
        assert next_sequence(5000, ["2026-6000"]) == 6001

    def test_unparseable_last_number_falls_back_to_base(self):
        assert next_sequence(None, ["MANUAL"]) == 1001
        assert next_sequence(3000, ["MANUAL"]) == 3000

    def test_continues_after_the_highest_not_the_latest(self):
        assert next_sequence(None, ["2026-1001", "2026-1002", "2026-5"]) == 1003
        assert highest_issued(["2026-5", "MANUAL", "2025-1400", "2026-1002"]) == 1400
        assert highest_issued(["MANUAL"]) is None


class TestIssuing:
    def test_requires_an_open_transaction(self, app):
        with app.db_manager as conn:
            with pytest.raises(RuntimeError):
                app.sequencer.issue_next(ORG, conn)

    def test_first_invoice_gets_default_number(self, make_invoice):
        assert make_invoice().invoice_number == "2026-1001"

    def test_continues_from_last_issued(self, make_invoice):
        make_invoice(invoice_number="2026-1042")
        assert make_invoice().invoice_number == "2026-1043"

    def test_low_manual_number_does_not_block_later_issuing(self, make_invoice):
        make_invoice()
        make_invoice()
        assert make_invoice(invoice_number="2026-5").invoice_number == "2026-5"

        assert make_invoice().invoice_number == "2026-1003"
        assert make_invoice().invoice_number == "2026-1004"

    def test_starting_offset_is_consumed_once(self, app, make_invoice):
        app.settings_manager.set_invoice_start_number(ORG, 5000)

        first = make_invoice()
        assert first.invoice_number == "2026-5000"
        assert app.settings_manager.get_invoice_start_number(ORG) is None

        # Someone edits the latest number downward; the cleared offset must not come back
        app.db_manager.execute_query("UPDATE invoices SET invoice_number = ? WHERE id = ?", ("2026-20", first.id))
        assert make_invoice().invoice_number == "2026-1001"

    def test_offset_below_last_issued_is_still_cleared(self, app, make_invoice):
        make_invoice(invoice_number="2026-1500")
        app.settings_manager.set_invoice_start_number(ORG, 1200)

        assert make_invoice().invoice_number == "2026-1501"
        assert app.settings_manager.get_invoice_start_number(ORG) is None

    def test_prefix_rolls_over_with_the_year(self, make_invoice):
        make_invoice(invoice_number="2026-1043")
        assert make_invoice(now=datetime(2027, 1, 2, 8, 0)).invoice_number == "2027-1044"

    def test_custom_prefix(self, app, make_invoice):
        app.settings_manager.set_invoice_prefix(ORG, "WS-")
        assert make_invoice().invoice_number == "WS-1001"
        assert make_invoice().invoice_number == "WS-1002"

    def test_organizations_are_numbered_independently(self, make_invoice, other_vehicle):
        make_invoice(invoice_number="2026-1200")
        other = make_invoice(organization_id=OTHER_ORG, vehicle_id=other_vehicle.id)
        assert other.invoice_number == "2026-1001"

    def test_explicit_number_already_in_use_is_a_conflict(self, app, make_invoice):
        make_invoice(invoice_number="2026-1042")
        with pytest.raises(ConflictError):
            make_invoice(invoice_number="2026-1042")
        assert len(app.invoice_manager.list_invoices(ORG)) == 1

    def test_failed_creation_does_not_consume_a_number(self, app, make_invoice):
        make_invoice()
        with pytest.raises(NotFoundError):
            make_invoice(vehicle_id=9999)
        assert make_invoice().invoice_number == "2026-1002"
