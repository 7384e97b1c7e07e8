from pathlib import Path

import pytest

import nebula.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def _clear_llm_env(monkeypatch):
    for name in ("NEBULA_LLM_ENABLED", "NEBULA_LLM_MODEL", "OPENAI_API_KEY", "OPENAI_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


def test_llm_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")

    settings = loader.get_llm_settings()

    assert settings["enabled"] is True
    assert settings["model"] == "gpt-4o"
    assert settings["temperature"] == 0.7
    assert settings["max_tokens"] == 4096
    assert settings["timeout_seconds"] == 120
    assert settings["api_key"] is None


def test_llm_coercion_and_env_overrides(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "llm:",
                "  enabled: \"no\"",
                "  model: gpt-4o-mini",
                "  temperature: \"5\"",
                "  max_tokens: \"-1\"",
                "  timeout_seconds: \"30\"",
                "  api_key: from-file",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_llm_settings()
    assert settings["enabled"] is False
    assert settings["model"] == "gpt-4o-mini"
    assert settings["temperature"] == 2.0
    assert settings["max_tokens"] == 4096
    assert settings["timeout_seconds"] == 30
    assert settings["api_key"] == "from-file"

    monkeypatch.setenv("NEBULA_LLM_ENABLED", "true")
    monkeypatch.setenv("NEBULA_LLM_MODEL", "local-model")
    monkeypatch.setenv("OPENAI_API_KEY", "from-env")

    settings = loader.get_llm_settings()
    assert settings["enabled"] is True
    assert settings["model"] == "local-model"
    assert settings["api_key"] == "from-env"


def test_marketplace_and_notes_limits(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "marketplace:",
                "  coin_budget: \"250\"",
                "notes:",
                "  content_character_limit: 0",
                "  max_import_batch: \"abc\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.get_marketplace_settings() == {"coin_budget": 250}
    assert loader.get_notes_limits() == {"content_character_limit": 500, "max_import_batch": 500}


def test_ai_pricing_rejects_negative_rates(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "ai_pricing:",
                "  input_per_million_usd: -1",
                "  output_per_million_usd: \"0.6\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    pricing = loader.get_ai_pricing()

    assert pricing["input_per_million_usd"] == 5.0
    assert pricing["output_per_million_usd"] == 0.6


def test_non_mapping_config_falls_back_to_defaults(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}
    assert loader.get_workspace_code_settings() == {"max_attempts": 100}


def test_database_settings_env_override_and_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "database_url: sqlite:///./from-file.db",
                "sqlite:",
                "  write_retries: \"0\"",
                "database_pool:",
                "  pool_size: \"7\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("NEBULA_DATABASE_URL", raising=False)

    settings = loader.get_database_settings()
    assert settings["url"] == "sqlite:///./from-file.db"
    assert settings["journal_mode"] == "WAL"
    assert settings["write_retries"] == 5
    assert settings["pool_size"] == 7

    monkeypatch.setenv("NEBULA_DATABASE_URL", "sqlite:///./from-env.db")
    assert loader.get_database_settings()["url"] == "sqlite:///./from-env.db"
