from typing import Any, Dict

from .. import repository
from ..dto import AuthorizationContext
from ..enums import Action
from ..mappers import snapshot_model_dict
from .authorization import authorize


class VersionNotFound(Exception): pass


def diff_snapshots(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, tuple]:
    keys = set(a.keys()) | set(b.keys())
    diff_kv = {}
    for k in keys:
        if a.get(k) != b.get(k):
            diff_kv[k] = (a.get(k), b.get(k))
    return diff_kv


def version_snapshots(trade_id: int) -> Dict[int, Dict[str, Any]]:
    return {t.version: snapshot_model_dict(t) for t in repository.find_trade_versions(trade_id)}


def diff_versions(trade_id: int, from_version: int, to_version: int,
                  context: AuthorizationContext) -> Dict[str, tuple]:
    versions = repository.find_trade_versions(trade_id)
    if not versions:
        raise VersionNotFound(f"Trade not found: {trade_id}")
    authorize(Action.VIEW, versions[-1], context)
    by_number = {t.version: t for t in versions}
    if from_version not in by_number or to_version not in by_number:
        raise VersionNotFound("One or both specified versions do not exist.")
    return diff_snapshots(snapshot_model_dict(by_number[from_version]), snapshot_model_dict(by_number[to_version]))
