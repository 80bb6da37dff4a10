"""
AI Services
===========
Deterministic, rule-based recommendation generation.

Services:
- RecommendationEngine: cache-or-compute recommendation sets per plant
- recommendation_rules: the ordered evaluator set and ``RuleContext``

All public symbols are importable via ``from app.services.ai import X``.
Imports are **lazy**: each submodule is loaded only when one of its
symbols is first accessed.
"""

from __future__ import annotations

import importlib
from typing import Any

_LAZY_IMPORTS: dict[str, str] = {
    # recommendation_engine
    "RecommendationEngine": "app.services.ai.recommendation_engine",
    # recommendation_rules
    "RULES": "app.services.ai.recommendation_rules",
    "RuleContext": "app.services.ai.recommendation_rules",
    "evaluate_all": "app.services.ai.recommendation_rules",
}

__all__ = list(_LAZY_IMPORTS)


def __getattr__(name: str) -> Any:
    module_path = _LAZY_IMPORTS.get(name)
    if module_path is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    value = getattr(importlib.import_module(module_path), name)
    globals()[name] = value
    return value
