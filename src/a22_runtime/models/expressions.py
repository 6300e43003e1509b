"""Step expression models.

Expressions are a closed variant discriminated on ``kind``. Kinds the runtime
does not know parse into ``UnknownExpression`` instead of failing the load.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

_KIND_ALIASES = {
    "literal": "literal",
    "reference": "reference",
    "list": "list",
    "listexpression": "list",
    "map": "map",
    "mapexpression": "map",
    "block": "block",
    "blockexpression": "block",
}


class BlockKind(str, Enum):
    """Invocation kinds a workflow step can dispatch."""

    TOOL = "tool"
    AGENT = "agent"
    CAPABILITY = "capability"
    UNSUPPORTED = "unsupported"


class _Expression(BaseModel):
    model_config = ConfigDict(frozen=True)


class LiteralExpression(_Expression):
    kind: str = "literal"
    value: Any = None


class ReferenceExpression(_Expression):
    """Dotted path into the workflow scope, e.g. ``["input", "text"]``."""

    kind: str = "reference"
    path: list[str] = Field(default_factory=list)


class ListExpression(_Expression):
    kind: str = "list"
    elements: list[Expression] = Field(default_factory=list)


class MapExpression(_Expression):
    kind: str = "map"
    properties: dict[str, Expression] = Field(default_factory=dict)


class BlockExpression(_Expression):
    """Invocation of a tool, agent or capability with evaluated attributes."""

    kind: str = "block"
    type: str
    identifier: str = ""
    attributes: dict[str, Expression] = Field(default_factory=dict)

    @property
    def block_kind(self) -> BlockKind:
        try:
            return BlockKind(self.type)
        except ValueError:
            return BlockKind.UNSUPPORTED


class UnknownExpression(_Expression):
    model_config = ConfigDict(frozen=True, extra="allow")

    kind: str = "unknown"


def _expression_tag(value: Any) -> str:
    kind = value.get("kind") if isinstance(value, dict) else getattr(value, "kind", None)
    if not isinstance(kind, str):
        return "unknown"
    return _KIND_ALIASES.get(kind.lower(), "unknown")


Expression = Annotated[
    Union[
        Annotated[LiteralExpression, Tag("literal")],
        Annotated[ReferenceExpression, Tag("reference")],
        Annotated[ListExpression, Tag("list")],
        Annotated[MapExpression, Tag("map")],
        Annotated[BlockExpression, Tag("block")],
        Annotated[UnknownExpression, Tag("unknown")],
    ],
    Discriminator(_expression_tag),
]

ListExpression.model_rebuild()
MapExpression.model_rebuild()
BlockExpression.model_rebuild()
