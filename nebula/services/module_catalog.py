from __future__ import annotations

from typing import Any, Dict, List

PAIRWISE_VOTING = "pairwise-voting"
STACK_RANKING = "stack-ranking"
MARKETPLACE = "marketplace"
PRIORITY_MATRIX = "priority-matrix"
STAIRCASE = "staircase"
SURVEY = "survey"

MODULE_TYPES = (
    PAIRWISE_VOTING,
    STACK_RANKING,
    MARKETPLACE,
    PRIORITY_MATRIX,
    STAIRCASE,
    SURVEY,
)

MODULE_LABELS = {
    PAIRWISE_VOTING: "Pairwise Voting",
    STACK_RANKING: "Stack Ranking",
    MARKETPLACE: "Marketplace",
    PRIORITY_MATRIX: "Priority Matrix",
    STAIRCASE: "Staircase",
    SURVEY: "Survey",
}

_DEFAULT_MODULE_CONFIGS: Dict[str, Dict[str, Any]] = {
    PRIORITY_MATRIX: {
        "x_axis_label": "Impact",
        "y_axis_label": "Effort",
        "x_min_label": "Low",
        "x_max_label": "High",
        "y_min_label": "Low",
        "y_max_label": "High",
        "snap_to_grid": False,
        "grid_size": 4,
    },
    STAIRCASE: {
        "min_score": 0,
        "max_score": 10,
        "step_count": 11,
        "allow_decimals": False,
        "min_label": "Lowest",
        "max_label": "Highest",
        "show_distribution": True,
    },
    MARKETPLACE: {},
    PAIRWISE_VOTING: {},
    STACK_RANKING: {},
    SURVEY: {},
}


def is_known_module(module_type: str) -> bool:
    return module_type in MODULE_TYPES


def default_module_config(module_type: str) -> Dict[str, Any]:
    return dict(_DEFAULT_MODULE_CONFIGS.get(module_type, {}))


def _coerce_number(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def resolve_module_config(module_type: str, raw: Any) -> Dict[str, Any]:
    """Merge stored module config over the defaults, discarding unusable values."""
    resolved = default_module_config(module_type)
    if isinstance(raw, dict):
        for key, value in raw.items():
            if key in resolved or not resolved:
                resolved[key] = value

    if module_type == PRIORITY_MATRIX:
        resolved["snap_to_grid"] = bool(resolved.get("snap_to_grid"))
        grid_size = int(_coerce_number(resolved.get("grid_size"), 4))
        resolved["grid_size"] = grid_size if grid_size > 0 else 4
    elif module_type == STAIRCASE:
        min_score = _coerce_number(resolved.get("min_score"), 0)
        max_score = _coerce_number(resolved.get("max_score"), 10)
        if max_score <= min_score:
            min_score, max_score = 0.0, 10.0
        allow_decimals = bool(resolved.get("allow_decimals"))
        resolved["allow_decimals"] = allow_decimals
        resolved["min_score"] = min_score if allow_decimals else int(min_score)
        resolved["max_score"] = max_score if allow_decimals else int(max_score)
        step_count = int(_coerce_number(resolved.get("step_count"), 11))
        resolved["step_count"] = step_count if step_count > 1 else 11
        resolved["show_distribution"] = bool(resolved.get("show_distribution"))
    return resolved


def module_catalog() -> List[Dict[str, Any]]:
    return [
        {
            "module_type": module_type,
            "label": MODULE_LABELS[module_type],
            "default_config": default_module_config(module_type),
        }
        for module_type in MODULE_TYPES
    ]
