from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_LLM_SETTINGS = {
    "enabled": True,
    "model": "gpt-4o",
    "temperature": 0.7,
    "max_tokens": 4096,
    "timeout_seconds": 120,
}
_DEFAULT_MARKETPLACE = {
    "coin_budget": 100,
}
_DEFAULT_AI_PRICING = {
    "input_per_million_usd": 5.0,
    "output_per_million_usd": 15.0,
}
_DEFAULT_NOTES_LIMITS = {
    "content_character_limit": 500,
    "max_import_batch": 500,
}
_DEFAULT_WORKSPACE_CODE = {
    "max_attempts": 100,
}
_DEFAULT_DATABASE = {
    "url": "sqlite:///./nebula.db",
    "busy_timeout_ms": 30000,
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "write_retries": 5,
    "retry_backoff_ms": 200,
    "pool_size": 20,
    "max_overflow": 40,
    "pool_timeout_seconds": 15,
    "pool_recycle_seconds": 1800,
}


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_non_negative_float(value: Any, fallback: float) -> float:
    try:
        candidate = float(value)
        return candidate if candidate >= 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_bool(value: Any, fallback: bool) -> bool:
    if value is None:
        return fallback
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def get_llm_settings() -> Dict[str, Any]:
    """
    Return LLM settings for categorization and results generation.

    Environment variables win over config.yaml:
    NEBULA_LLM_ENABLED, NEBULA_LLM_MODEL, OPENAI_API_KEY, OPENAI_BASE_URL.
    """
    config = load_config()
    section = config.get("llm") or {}
    defaults = dict(_DEFAULT_LLM_SETTINGS)

    enabled_env = os.getenv("NEBULA_LLM_ENABLED")
    enabled = _coerce_bool(
        enabled_env if enabled_env is not None else section.get("enabled"),
        defaults["enabled"],
    )
    model = os.getenv("NEBULA_LLM_MODEL") or section.get("model") or defaults["model"]

    temperature = defaults["temperature"]
    raw_temperature = section.get("temperature")
    if raw_temperature is not None:
        temperature = min(2.0, _coerce_non_negative_float(raw_temperature, temperature))

    return {
        "enabled": enabled,
        "model": str(model),
        "temperature": temperature,
        "max_tokens": _coerce_positive_int(
            section.get("max_tokens"), defaults["max_tokens"]
        ),
        "timeout_seconds": _coerce_positive_int(
            section.get("timeout_seconds"), defaults["timeout_seconds"]
        ),
        "api_key": os.getenv("OPENAI_API_KEY") or section.get("api_key"),
        "base_url": os.getenv("OPENAI_BASE_URL") or section.get("base_url"),
    }


def get_marketplace_settings() -> Dict[str, int]:
    """Return marketplace defaults (coin budget) with safe fallbacks."""
    config = load_config()
    section = config.get("marketplace") or {}
    return {
        "coin_budget": _coerce_positive_int(
            section.get("coin_budget"), _DEFAULT_MARKETPLACE["coin_budget"]
        ),
    }


def get_ai_pricing() -> Dict[str, float]:
    config = load_config()
    section = config.get("ai_pricing") or {}
    defaults = dict(_DEFAULT_AI_PRICING)
    return {
        "input_per_million_usd": _coerce_non_negative_float(
            section.get("input_per_million_usd"), defaults["input_per_million_usd"]
        ),
        "output_per_million_usd": _coerce_non_negative_float(
            section.get("output_per_million_usd"), defaults["output_per_million_usd"]
        ),
    }


def get_notes_limits() -> Dict[str, int]:
    """Return idea submission limits sourced from config with safe defaults."""
    config = load_config()
    section = config.get("notes") or {}
    limits = dict(_DEFAULT_NOTES_LIMITS)
    limits["content_character_limit"] = _coerce_positive_int(
        section.get("content_character_limit"), limits["content_character_limit"]
    )
    limits["max_import_batch"] = _coerce_positive_int(
        section.get("max_import_batch"), limits["max_import_batch"]
    )
    return limits


def get_workspace_code_settings() -> Dict[str, int]:
    config = load_config()
    section = config.get("workspace_codes") or {}
    return {
        "max_attempts": _coerce_positive_int(
            section.get("max_attempts"), _DEFAULT_WORKSPACE_CODE["max_attempts"]
        ),
    }


def get_database_settings() -> Dict[str, Any]:
    """
    Return the database URL plus SQLite and pool tuning.

    NEBULA_DATABASE_URL overrides `database_url`; `sqlite` and `database_pool` sections tune the
    engine.
    """
    config = load_config()
    sqlite_section = config.get("sqlite") or {}
    pool_section = config.get("database_pool") or {}
    defaults = dict(_DEFAULT_DATABASE)

    settings: Dict[str, Any] = {
        "url": str(
            os.getenv("NEBULA_DATABASE_URL") or config.get("database_url") or defaults["url"]
        ),
        "journal_mode": str(sqlite_section.get("journal_mode") or defaults["journal_mode"]),
        "synchronous": str(sqlite_section.get("synchronous") or defaults["synchronous"]),
    }
    for key in ("busy_timeout_ms", "write_retries", "retry_backoff_ms"):
        settings[key] = _coerce_positive_int(sqlite_section.get(key), defaults[key])
    for key in ("pool_size", "max_overflow", "pool_timeout_seconds", "pool_recycle_seconds"):
        settings[key] = _coerce_positive_int(pool_section.get(key), defaults[key])
    return settings
