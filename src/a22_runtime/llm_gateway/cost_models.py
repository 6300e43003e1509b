"""Static relative cost heuristic used by cost-optimized routing."""

from __future__ import annotations

DEFAULT_MODEL_COST = 50

# First matching substring wins
MODEL_COST_TIERS: tuple[tuple[str, int], ...] = (
    ("gpt-4", 100),
    ("gpt-3.5", 10),
    ("claude-3-opus", 100),
    ("claude-3-sonnet", 50),
    ("claude-3-haiku", 10),
)


def estimate_cost(model_name: str) -> int:
    """Return the relative cost tier for a model name (lower is cheaper)."""
    name = model_name.lower()
    for fragment, cost in MODEL_COST_TIERS:
        if fragment in name:
            return cost
    return DEFAULT_MODEL_COST
