"""Who may perform which lifecycle action on which trade.

A decision combines three layers:

* the static role/action matrix,
* an explicit ``TRADE_<ACTION>`` privilege, which grants the action on its own,
* an ownership gate for actions on an existing trade. The owner always passes,
  and a set of roles or ``*_ALL`` privileges bypass ownership.

Decisions are pure: everything needed is carried by the
:class:`~trade_lifecycle.dto.AuthorizationContext` and the trade passed in.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..conf import lifecycle_setting
from ..dto import AuthorizationContext
from ..enums import Action, Role

logger = logging.getLogger(__name__)


class Forbidden(Exception): pass


def _values(*members) -> frozenset:
    return frozenset(m.value for m in members)


ROLE_ACTIONS = {
    Role.TRADER.value: _values(Action.CREATE, Action.AMEND, Action.TERMINATE, Action.CANCEL, Action.VIEW),
    Role.SALES.value: _values(Action.CREATE, Action.AMEND),
    Role.MIDDLE_OFFICE.value: _values(Action.AMEND, Action.VIEW),
    Role.SUPPORT.value: _values(Action.VIEW),
    Role.SUPERUSER.value: _values(*Action),
}

VIEW_ALL_ROLES = _values(Role.SALES, Role.SUPERUSER, Role.MIDDLE_OFFICE, Role.SUPPORT)
EDIT_ALL_ROLES = _values(Role.SALES, Role.SUPERUSER)
VIEW_ALL_PRIVILEGE = "TRADE_VIEW_ALL"
EDIT_ALL_PRIVILEGE = "TRADE_EDIT_ALL"

PRIVILEGE_ALIASES = {"READ_TRADE": "TRADE_VIEW"}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


def privilege_for(action: str) -> str:
    return f"TRADE_{action}"


def normalize_role(name: str) -> str:
    role = name.strip().upper()
    if role.startswith("ROLE_"):
        role = role[len("ROLE_"):]
    return role


def roles_for_user_type(user_type: Optional[str]) -> frozenset:
    if not user_type or not user_type.strip():
        return frozenset()
    user_type = normalize_role(user_type)
    roles = {user_type}
    if "TRADER" in user_type:
        roles.add(Role.TRADER.value)
    if user_type == "MO" or "MIDDLE" in user_type:
        roles.add(Role.MIDDLE_OFFICE.value)
    if "SUPPORT" in user_type:
        roles.add(Role.SUPPORT.value)
    return frozenset(roles)


def build_context(login_id: Optional[str], user_type: Optional[str] = None,
                  privilege_names: Iterable[str] = (), extra_roles: Iterable[str] = ()) -> AuthorizationContext:
    privileges = set()
    for name in privilege_names:
        if not name:
            continue
        name = name.strip().upper()
        privileges.add(name)
        if name in PRIVILEGE_ALIASES:
            privileges.add(PRIVILEGE_ALIASES[name])
    roles = set(roles_for_user_type(user_type))
    roles.update(normalize_role(r) for r in extra_roles if r)
    return AuthorizationContext(login_id=login_id, roles=frozenset(roles), privileges=frozenset(privileges))


def owner_login(trade) -> Optional[str]:
    if trade is None:
        return None
    login = getattr(trade, "owner_login", None)
    if login is None:
        user = getattr(trade, "trader_user", None)
        login = getattr(user, "login_id", None)
    return login or None


def _role_allows(action: str, context: AuthorizationContext) -> bool:
    return any(action in ROLE_ACTIONS.get(role, ()) for role in context.roles)


def _bypasses_ownership(action: str, context: AuthorizationContext) -> bool:
    if action in (Action.TERMINATE.value, Action.CANCEL.value):
        return bool(context.roles & EDIT_ALL_ROLES) or EDIT_ALL_PRIVILEGE in context.privileges
    return bool(context.roles & VIEW_ALL_ROLES) or VIEW_ALL_PRIVILEGE in context.privileges


def check_ownership(action: str, trade, context: AuthorizationContext) -> Decision:
    if _bypasses_ownership(action, context):
        return Decision(True, "elevated")
    denied = Decision(False, f"Insufficient privileges to {action.lower()} trade {trade.trade_id}")
    owner = owner_login(trade)
    if owner is None:
        if lifecycle_setting("OWNERLESS_TRADER_FALLBACK") and Role.TRADER.value in context.roles:
            return Decision(True, "ownerless trade, trader fallback")
        return denied
    if context.login_id and owner.lower() == context.login_id.lower():
        return Decision(True, "owner")
    return denied


def decide(action: str, context: AuthorizationContext, trade=None) -> Decision:
    action = str(action).strip().upper()
    if action not in Action.values:
        return Decision(False, f"Unknown action: {action}")
    if context is None:
        return Decision(False, "No caller context supplied")

    if not (_role_allows(action, context) or privilege_for(action) in context.privileges):
        role = "/".join(sorted(context.roles)) if context.roles else "User without a role"
        return Decision(False, f"{role} cannot {action} trades")

    if trade is None or action == Action.CREATE.value:
        return Decision(True, "role or privilege")
    return check_ownership(action, trade, context)


def authorize(action: str, trade, context: AuthorizationContext) -> Decision:
    decision = decide(action, context, trade)
    if not decision.allowed:
        logger.warning(
            "Denied %s for %s: %s", action, getattr(context, "login_id", None), decision.reason
        )
        raise Forbidden(decision.reason)
    return decision


def can_view_all(context: AuthorizationContext) -> bool:
    return _bypasses_ownership(Action.VIEW.value, context)
