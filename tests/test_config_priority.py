from __future__ import annotations

from apirepo.config import Settings, load_settings


def test_defaults_without_sources(monkeypatch):
    for name in ("APIREPO_BASE_URL", "APIREPO_MAX_PAGE_SIZE", "APIREPO_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)

    loaded = load_settings(config_path=None, cli_overrides={})

    assert loaded.settings == Settings()
    assert loaded.sources_used == []


def test_priority_cli_over_env_over_config(tmp_path, monkeypatch):
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        "\n".join([
            'base_url: "https://cfg.local"',
            "max_page_size: 50",
            'resource_path: "/cfg"',
            "retries: 1",
        ]),
        encoding="utf-8",
    )

    monkeypatch.setenv("APIREPO_BASE_URL", "https://env.local")
    monkeypatch.setenv("APIREPO_MAX_PAGE_SIZE", "75")
    monkeypatch.setenv("APIREPO_TLS_SKIP_VERIFY", "yes")

    loaded = load_settings(
        config_path=str(cfg),
        cli_overrides={"base_url": "https://cli.local", "page_size": None},
    )

    s = loaded.settings
    assert s.base_url == "https://cli.local"
    assert s.max_page_size == 75
    assert s.resource_path == "/cfg"
    assert s.retries == 1
    assert s.tls_skip_verify is True
    assert s.page_size == 1
    assert loaded.sources_used == ["config", "env", "cli"]


def test_missing_config_file_is_ignored(tmp_path):
    loaded = load_settings(config_path=str(tmp_path / "absent.yml"), cli_overrides={"retries": None})

    assert "config" not in loaded.sources_used
