import logging
import operator
import re
from functools import reduce
from typing import Tuple

from django.core.exceptions import FieldDoesNotExist, ValidationError
from django.db import models
from django.db.models import Q

from ..models import Trade
from .rsql import And, Comparison, Or, parse

logger = logging.getLogger(__name__)


class InvalidOperator(ValueError): pass
class UnknownField(ValueError): pass
class InvalidQueryValue(ValueError): pass


SUPPORTED_OPERATORS = frozenset({"==", "!=", "=gt=", "=lt=", "=ge=", "=le=", "=in=", "=out=", "=like="})
ORDERED_LOOKUPS = {"=gt=": "gt", "=lt=": "lt", "=ge=": "gte", "=le=": "lte"}
TEXT_FIELDS = (models.CharField, models.TextField)


def camel_to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def resolve_field(selector: str, model=Trade) -> Tuple[str, models.Field]:
    """Map a dotted camelCase selector onto an ORM lookup path and its field."""
    parts = selector.split(".")
    current = model
    path = []
    field = None
    for position, part in enumerate(parts):
        try:
            field = current._meta.get_field(camel_to_snake(part))
        except FieldDoesNotExist:
            raise UnknownField(f"Invalid field in query: {selector}") from None
        path.append(field.name)
        if position < len(parts) - 1:
            if not field.is_relation or field.related_model is None:
                raise UnknownField(f"Cannot traverse into non-entity field: {part} in query: {selector}")
            current = field.related_model
    if not getattr(field, "concrete", False):
        raise UnknownField(f"Invalid field in query: {selector}")
    return "__".join(path), field


def _coerce(field: models.Field, value: str):
    if isinstance(field, TEXT_FIELDS):
        return value
    try:
        return field.to_python(value)
    except ValidationError as exc:
        raise InvalidQueryValue(f"Invalid value '{value}' for field {field.name}") from exc


def like_lookup(pattern: str) -> Tuple[str, str]:
    pattern = pattern.lower()
    if "*" not in pattern:
        return "iexact", pattern
    core = pattern.strip("*")
    if "*" not in core:
        leading, trailing = pattern.startswith("*"), pattern.endswith("*")
        if leading and trailing:
            return "icontains", core
        return ("istartswith", core) if trailing else ("iendswith", core)
    return "iregex", "^" + ".*".join(re.escape(piece) for piece in pattern.split("*")) + "$"


def _comparison(node: Comparison) -> Q:
    op = node.operator
    if op not in SUPPORTED_OPERATORS:
        raise InvalidOperator(f"Unsupported operator: {op}")
    if not node.arguments:
        raise InvalidQueryValue(f"No value supplied for {node.selector}")
    path, field = resolve_field(node.selector)
    textual = isinstance(field, TEXT_FIELDS)
    first = node.arguments[0]

    if op in ("==", "!="):
        q = Q(**{f"{path}__iexact": first}) if textual else Q(**{path: _coerce(field, first)})
        return q if op == "==" else ~q
    if op in ORDERED_LOOKUPS:
        return Q(**{f"{path}__{ORDERED_LOOKUPS[op]}": _coerce(field, first)})
    if op in ("=in=", "=out="):
        q = Q(**{f"{path}__in": [_coerce(field, v) for v in node.arguments]})
        return q if op == "=in=" else ~q
    if not textual:
        raise InvalidOperator(f"=like= requires a text field: {node.selector}")
    lookup, value = like_lookup(first)
    return Q(**{f"{path}__{lookup}": value})


def translate(node) -> Q:
    if node is None:
        return Q()
    if isinstance(node, Comparison):
        return _comparison(node)
    if isinstance(node, (And, Or)):
        combine = operator.and_ if isinstance(node, And) else operator.or_
        return reduce(combine, (translate(child) for child in node.children), Q())
    raise TypeError(f"Unsupported query node: {type(node).__name__}")


def translate_query(text: str) -> Q:
    q = translate(parse(text))
    logger.debug("Translated query %r to %s", text, q)
    return q
