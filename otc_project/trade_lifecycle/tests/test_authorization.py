import unittest
from types import SimpleNamespace

from django.test import override_settings

from trade_lifecycle.dto import AuthorizationContext
from trade_lifecycle.services.authorization import (
    Forbidden,
    authorize,
    build_context,
    can_view_all,
    decide,
    normalize_role,
    roles_for_user_type,
)


def ctx(login_id="alice", roles=(), privileges=()):
    return AuthorizationContext(login_id=login_id, roles=frozenset(roles), privileges=frozenset(privileges))


def owned_by(login_id, trade_id=10001):
    return SimpleNamespace(trade_id=trade_id, trader_user=SimpleNamespace(login_id=login_id) if login_id else None)


class TestRoleMatrix(unittest.TestCase):
    def test_sales_cannot_terminate_or_cancel(self):
        sales = ctx(roles={"SALES"})
        for action in ("TERMINATE", "CANCEL"):
            with self.subTest(action=action):
                decision = decide(action, sales)
                self.assertFalse(decision.allowed)
                self.assertEqual(decision.reason, f"SALES cannot {action} trades")

    def test_sales_can_create_and_amend(self):
        sales = ctx(roles={"SALES"})
        self.assertTrue(decide("CREATE", sales).allowed)
        self.assertTrue(decide("AMEND", sales).allowed)

    def test_support_is_read_only(self):
        support = ctx(roles={"SUPPORT"})
        self.assertTrue(decide("VIEW", support).allowed)
        self.assertFalse(decide("AMEND", support).allowed)

    def test_superuser_can_do_everything(self):
        root = ctx(roles={"SUPERUSER"})
        for action in ("CREATE", "AMEND", "TERMINATE", "CANCEL", "VIEW"):
            self.assertTrue(decide(action, root, owned_by("bob")).allowed)

    def test_privilege_grants_action_without_role(self):
        self.assertTrue(decide("VIEW", ctx(privileges={"TRADE_VIEW"})).allowed)
        self.assertFalse(decide("VIEW", ctx()).allowed)

    def test_unknown_action(self):
        decision = decide("APPROVE", ctx(roles={"SUPERUSER"}))
        self.assertFalse(decision.allowed)

    def test_action_is_case_insensitive(self):
        self.assertTrue(decide("create", ctx(roles={"TRADER"})).allowed)


class TestOwnership(unittest.TestCase):
    def test_owner_may_view_and_amend(self):
        trader = ctx(login_id="alice", roles={"TRADER"})
        for action in ("VIEW", "AMEND", "TERMINATE", "CANCEL"):
            with self.subTest(action=action):
                self.assertTrue(decide(action, trader, owned_by("ALICE")).allowed)

    def test_non_owner_trader_denied(self):
        trader = ctx(login_id="alice", roles={"TRADER"})
        decision = decide("VIEW", trader, owned_by("bob", trade_id=42))
        self.assertFalse(decision.allowed)
        self.assertEqual(decision.reason, "Insufficient privileges to view trade 42")
        self.assertFalse(decide("AMEND", trader, owned_by("bob")).allowed)

    def test_view_all_privilege_bypasses_view_but_not_cancel(self):
        trader = ctx(login_id="alice", roles={"TRADER"}, privileges={"TRADE_VIEW_ALL"})
        self.assertTrue(decide("VIEW", trader, owned_by("bob")).allowed)
        self.assertFalse(decide("CANCEL", trader, owned_by("bob")).allowed)

    def test_edit_all_privilege_bypasses_cancel(self):
        trader = ctx(login_id="alice", roles={"TRADER"}, privileges={"TRADE_EDIT_ALL"})
        self.assertTrue(decide("CANCEL", trader, owned_by("bob")).allowed)

    def test_middle_office_amends_any_trade(self):
        mo = ctx(login_id="maria", roles={"MIDDLE_OFFICE"})
        self.assertTrue(decide("AMEND", mo, owned_by("bob")).allowed)

    def test_create_ignores_ownership(self):
        trader = ctx(login_id="alice", roles={"TRADER"})
        self.assertTrue(decide("CREATE", trader, owned_by("bob")).allowed)

    def test_explicit_owner_login_wins(self):
        trade = SimpleNamespace(trade_id=1, owner_login="alice", trader_user=None)
        self.assertTrue(decide("VIEW", ctx(roles={"TRADER"}), trade).allowed)

    def test_ownerless_trade_allows_trader(self):
        self.assertTrue(decide("AMEND", ctx(roles={"TRADER"}), owned_by(None)).allowed)

    @override_settings(TRADE_LIFECYCLE={"OWNERLESS_TRADER_FALLBACK": False})
    def test_ownerless_trade_fallback_can_be_disabled(self):
        self.assertFalse(decide("AMEND", ctx(roles={"TRADER"}), owned_by(None)).allowed)


class TestAuthorize(unittest.TestCase):
    def test_raises_forbidden_with_reason(self):
        with self.assertRaises(Forbidden) as cm:
            authorize("TERMINATE", owned_by("alice"), ctx(roles={"SALES"}))
        self.assertEqual(str(cm.exception), "SALES cannot TERMINATE trades")

    def test_denial_names_every_role(self):
        with self.assertRaises(Forbidden) as cm:
            authorize("CREATE", None, ctx(roles={"SUPPORT", "MIDDLE_OFFICE"}))
        self.assertEqual(str(cm.exception), "MIDDLE_OFFICE/SUPPORT cannot CREATE trades")

    def test_returns_decision_when_allowed(self):
        decision = authorize("VIEW", owned_by("alice"), ctx(roles={"TRADER"}))
        self.assertTrue(decision.allowed)


class TestContext(unittest.TestCase):
    def test_normalize_role(self):
        self.assertEqual(normalize_role(" role_trader "), "TRADER")

    def test_user_type_aliases(self):
        self.assertIn("MIDDLE_OFFICE", roles_for_user_type("MO"))
        self.assertIn("TRADER", roles_for_user_type("Trader_Sales"))
        self.assertEqual(roles_for_user_type(""), frozenset())

    def test_build_context_normalizes_privileges(self):
        context = build_context("alice", "TRADER", ["read_trade", None, "TRADE_VIEW_ALL"], extra_roles=["ROLE_SUPPORT"])
        self.assertEqual(context.login_id, "alice")
        self.assertEqual(context.roles, frozenset({"TRADER", "SUPPORT"}))
        self.assertEqual(context.privileges, frozenset({"READ_TRADE", "TRADE_VIEW", "TRADE_VIEW_ALL"}))
        self.assertTrue(can_view_all(context))

    def test_plain_trader_cannot_view_all(self):
        self.assertFalse(can_view_all(build_context("alice", "TRADER")))
