import unittest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from trade_lifecycle.dto import TradeLegDTO
from trade_lifecycle.services.cashflows import (
    InvalidScheduleFormat,
    add_months,
    generate,
    parse_schedule,
    payment_dates,
    period_value,
    rate_as_decimal,
)


def fixed_leg(**overrides):
    base = dict(notional=Decimal("10000000"), rate=Decimal("3.5"), leg_type="FIXED",
                pay_receive="PAY", schedule="Quarterly", payment_bdc="MODFOLLOWING")
    base.update(overrides)
    return TradeLegDTO(**base)


class TestSchedule(unittest.TestCase):
    def test_named_frequencies(self):
        self.assertEqual(parse_schedule("Monthly"), 1)
        self.assertEqual(parse_schedule("quarterly"), 3)
        self.assertEqual(parse_schedule("Semi-annually"), 6)
        self.assertEqual(parse_schedule("half-yearly"), 6)
        self.assertEqual(parse_schedule("Annually"), 12)

    def test_month_count(self):
        self.assertEqual(parse_schedule("1M"), 1)
        self.assertEqual(parse_schedule("12m"), 12)

    def test_blank_defaults_to_quarterly(self):
        self.assertEqual(parse_schedule(None), 3)
        self.assertEqual(parse_schedule("  "), 3)

    def test_invalid_formats(self):
        for text in ("Weekly", "0M", "M", "-3M", "3Y"):
            with self.subTest(text=text):
                with self.assertRaises(InvalidScheduleFormat):
                    parse_schedule(text)


class TestDates(unittest.TestCase):
    def test_add_months_clamps_to_month_end(self):
        self.assertEqual(add_months(date(2025, 1, 31), 1), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 1, 31), 1), date(2024, 2, 29))
        self.assertEqual(add_months(date(2025, 11, 15), 3), date(2026, 2, 15))

    def test_clamping_is_cumulative(self):
        dates = payment_dates(date(2025, 1, 31), date(2025, 4, 30), 1)
        self.assertEqual(dates, [date(2025, 2, 28), date(2025, 3, 28), date(2025, 4, 28)])

    def test_no_dates_when_first_payment_is_after_maturity(self):
        self.assertEqual(payment_dates(date(2025, 1, 1), date(2025, 2, 1), 3), [])


class TestValues(unittest.TestCase):
    def test_rate_heuristic(self):
        self.assertEqual(rate_as_decimal(Decimal("3.5")), Decimal("0.035"))
        self.assertEqual(rate_as_decimal(Decimal("0.035")), Decimal("0.035"))
        self.assertEqual(rate_as_decimal(Decimal("1")), Decimal("1"))

    def test_quarterly_value(self):
        self.assertEqual(period_value(Decimal("10000000"), Decimal("3.5"), 3), Decimal("87500.00"))

    def test_monthly_value_uses_rounded_year_fraction(self):
        # 1/12 is carried to ten places before multiplying.
        self.assertEqual(period_value(Decimal("1000000"), Decimal("5"), 1), Decimal("4166.67"))


class TestGenerate(unittest.TestCase):
    def test_single_quarterly_fixed_cashflow(self):
        flows = generate(fixed_leg(), date(2025, 1, 1), date(2025, 4, 2))
        self.assertEqual(len(flows), 1)
        self.assertEqual(flows[0].value_date, date(2025, 4, 1))
        self.assertEqual(flows[0].payment_value, Decimal("87500.00"))
        self.assertEqual(flows[0].pay_rec, "PAY")
        self.assertEqual(flows[0].payment_bdc, "MODFOLLOWING")
        self.assertEqual(flows[0].rate, Decimal("3.5"))

    def test_monthly_for_a_year(self):
        flows = generate(fixed_leg(schedule="Monthly"), date(2025, 1, 1), date(2026, 1, 1))
        self.assertEqual(len(flows), 12)
        self.assertEqual(flows[-1].value_date, date(2026, 1, 1))

    def test_floating_leg_pays_zero_without_rate(self):
        leg = fixed_leg(leg_type="FLOATING", rate=None, index_name="SOFR")
        flows = generate(leg, date(2025, 1, 1), date(2026, 1, 1))
        self.assertEqual(len(flows), 4)
        self.assertTrue(all(cf.payment_value == Decimal("0.00") for cf in flows))

    def test_floating_leg_with_supplied_rate(self):
        leg = fixed_leg(leg_type="FLOATING", rate=None)
        flows = generate(leg, date(2025, 1, 1), date(2025, 4, 1), floating_rate=Decimal("4"))
        self.assertEqual(flows[0].payment_value, Decimal("100000.00"))

    def test_floating_leg_with_its_own_rate(self):
        leg = fixed_leg(leg_type="FLOATING", rate=Decimal("4"))
        flows = generate(leg, date(2025, 1, 1), date(2025, 4, 1))
        self.assertEqual(flows[0].payment_value, Decimal("100000.00"))

    def test_supplied_floating_rate_wins_over_leg_rate(self):
        leg = fixed_leg(leg_type="FLOATING", rate=Decimal("4"))
        flows = generate(leg, date(2025, 1, 1), date(2025, 4, 1), floating_rate=Decimal("2"))
        self.assertEqual(flows[0].payment_value, Decimal("50000.00"))

    def test_unknown_leg_type_pays_zero(self):
        flows = generate(fixed_leg(leg_type=None), date(2025, 1, 1), date(2025, 4, 1))
        self.assertEqual(flows[0].payment_value, Decimal("0.00"))

    def test_schedule_row_is_accepted(self):
        leg = SimpleNamespace(notional=Decimal("1000"), rate=Decimal("0.12"), leg_type="FIXED",
                              pay_receive="RECEIVE", schedule=SimpleNamespace(schedule="12M"), payment_bdc=None)
        flows = generate(leg, date(2025, 1, 1), date(2027, 1, 1))
        self.assertEqual([cf.payment_value for cf in flows], [Decimal("120.00"), Decimal("120.00")])

    def test_no_final_stub_by_default(self):
        flows = generate(fixed_leg(), date(2025, 1, 1), date(2025, 5, 15))
        self.assertEqual([cf.value_date for cf in flows], [date(2025, 4, 1)])

    def test_forced_final_stub_is_pro_rated(self):
        flows = generate(fixed_leg(), date(2025, 1, 1), date(2025, 5, 16), force_final_stub=True)
        self.assertEqual(flows[-1].value_date, date(2025, 5, 16))
        # 45 of the 91 days from 2025-04-01 to 2025-07-01.
        self.assertEqual(flows[-1].payment_value, Decimal("43269.23"))

    def test_requires_leg(self):
        with self.assertRaises(ValueError):
            generate(None, date(2025, 1, 1), date(2025, 4, 1))
