"""Step input expression evaluation.

Evaluation is pure and total: it never raises, and a reference through a
missing path segment yields ``None``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.expressions import (
    Expression,
    ListExpression,
    LiteralExpression,
    MapExpression,
    ReferenceExpression,
)


def resolve_path(scope: Mapping[str, Any], path: list[str]) -> Any:
    """Resolve a dotted path against the scope without raising."""
    value: Any = scope
    for part in path:
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, list | tuple) and part.isdigit():
            index = int(part)
            value = value[index] if index < len(value) else None
        else:
            return None
        if value is None:
            return None
    return value


def evaluate_expression(expression: Expression, scope: Mapping[str, Any]) -> Any:
    match expression:
        case LiteralExpression(value=value):
            return value
        case ReferenceExpression(path=path):
            return resolve_path(scope, path)
        case ListExpression(elements=elements):
            return [evaluate_expression(element, scope) for element in elements]
        case MapExpression(properties=properties):
            return {
                key: evaluate_expression(value, scope)
                for key, value in properties.items()
            }
        case _:
            return None


def evaluate_attributes(
    attributes: Mapping[str, Expression], scope: Mapping[str, Any]
) -> dict[str, Any]:
    """Evaluate every attribute of a block expression against the scope."""
    return {key: evaluate_expression(value, scope) for key, value in attributes.items()}
