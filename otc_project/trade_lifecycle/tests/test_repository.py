from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError, IntegrityError, transaction
from django.test import TestCase, override_settings

from trade_lifecycle import repository
from trade_lifecycle.models import (
    ApplicationUser,
    Book,
    Cashflow,
    Counterparty,
    Trade,
    TradeLeg,
    TradeStatus,
    UserPrivilege,
)
from trade_lifecycle.repository import ReferenceDataMissing


class TestRepository(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.status = TradeStatus.objects.create(trade_status="NEW")
        cls.book = Book.objects.create(book_name="FX-BOOK")
        cls.counterparty = Counterparty.objects.create(name="BigBank")
        cls.alice = ApplicationUser.objects.create(login_id="alice", first_name="Alice", user_type="TRADER")
        UserPrivilege.objects.create(user=cls.alice, name=" trade_view_all ")

    def make_trade(self, trade_id=10000, version=1, active=True):
        return Trade.objects.create(
            trade_id=trade_id, version=version, active=active, trade_status=self.status,
            trade_date=date(2025, 1, 1), book=self.book, counterparty=self.counterparty,
            trader_user=self.alice,
        )

    def test_resolve_by_name_or_pk(self):
        self.assertEqual(repository.resolve_book("fx-book"), self.book)
        self.assertEqual(repository.resolve_book(self.book.pk), self.book)
        self.assertIsNone(repository.resolve_book("missing"))
        self.assertIsNone(repository.resolve_book("  "))
        self.assertIsNone(repository.resolve_counterparty(None))

    def test_resolve_user_by_login_or_first_name(self):
        self.assertEqual(repository.resolve_user("ALICE"), self.alice)
        self.assertEqual(repository.resolve_user("Alice Smith"), self.alice)

    def test_database_errors_become_reference_data_missing(self):
        with patch("trade_lifecycle.repository._by_pk_or_field", side_effect=DatabaseError("down")):
            with self.assertRaises(ReferenceDataMissing):
                repository.resolve_counterparty("BigBank")

    def test_require_status(self):
        self.assertEqual(repository.require_status("new"), self.status)
        with self.assertRaises(ReferenceDataMissing):
            repository.require_status("LIVE")

    def test_user_privileges_are_normalised(self):
        self.assertEqual(repository.find_user_privileges("Alice"), ["TRADE_VIEW_ALL"])
        self.assertEqual(repository.find_user_privileges(None), [])

    def test_next_trade_id(self):
        self.assertEqual(repository.next_trade_id(), 10000)
        self.make_trade(trade_id=10041)
        self.assertEqual(repository.next_trade_id(), 10042)

    @override_settings(TRADE_LIFECYCLE={"TRADE_ID_START": 500})
    def test_next_trade_id_start_is_configurable(self):
        self.assertEqual(repository.next_trade_id(), 500)

    def test_one_active_version_per_trade(self):
        self.make_trade()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                self.make_trade(version=2)

    def test_deactivate_only_once(self):
        trade = self.make_trade()
        self.assertTrue(repository.deactivate_trade_version(trade))
        self.assertFalse(repository.deactivate_trade_version(trade))
        self.assertIsNone(repository.find_active_trade_by_business_id(10000))
        self.make_trade(version=2)
        self.assertEqual(repository.find_active_trade_by_business_id(10000).version, 2)
        self.assertEqual([t.version for t in repository.find_trade_versions(10000)], [1, 2])

    def test_find_trades_by_business_ids(self):
        self.make_trade(trade_id=1)
        self.make_trade(trade_id=2)
        self.assertEqual([t.trade_id for t in repository.find_trades_by_business_ids([2, 1])], [1, 2])
        self.assertEqual(repository.find_trades_by_business_ids(None), [])

    def test_cashflows_are_write_once(self):
        leg = TradeLeg.objects.create(trade=self.make_trade(), notional=Decimal("100"), leg_type="FIXED")
        cf = repository.save_cashflow(
            Cashflow(leg=leg, value_date=date(2025, 4, 1), payment_value=Decimal("1.00"))
        )
        self.assertIsNotNone(cf.pk)
        with self.assertRaises(ValueError):
            repository.save_cashflow(cf)

    def test_settlement_instructions_upsert(self):
        first = repository.upsert_settlement_instructions(10000, "Settle via CHAPS to BigBank")
        self.assertEqual(first.version, 1)
        second = repository.upsert_settlement_instructions(10000, "Settle via SWIFT to BigBank")
        self.assertEqual(second.pk, first.pk)
        self.assertEqual(second.version, 2)
        self.assertEqual(repository.get_settlement_instructions(10000).field_value, "Settle via SWIFT to BigBank")
        self.assertEqual([i.entity_id for i in repository.search_settlement_instructions("swift")], [10000])
        self.assertIsNone(repository.get_settlement_instructions(1))
