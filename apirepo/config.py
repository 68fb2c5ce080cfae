from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml


@dataclass(frozen=True)
class Settings:
    # API
    base_url: str | None = None
    api_token: str | None = None
    resource_path: str | None = None
    id_field: str = "id"

    # Paging
    max_page_size: int = 100
    page_size: int = 1
    max_pages: int | None = None

    # HTTP
    timeout_seconds: float = 20.0
    retries: int = 3
    retry_backoff_seconds: float = 0.5
    tls_skip_verify: bool = False
    ca_file: str | None = None

    # Logging
    log_dir: str = "./logs"
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadedSettings:
    settings: Settings
    sources_used: list[str]


ENV_PREFIX = "APIREPO_"


def _read_yaml_config(path: Path) -> dict:
    if not path.exists():
        return {}
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            return {}
        return data


def _env_get(name: str) -> str | None:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return None
    return v.strip()


def _parse_int(v: str) -> int:
    return int(v)


def _parse_float(v: str) -> float:
    return float(v)


def _parse_bool(v: str) -> bool:
    vv = v.lower()
    if vv in ("1", "true", "yes", "y"):
        return True
    if vv in ("0", "false", "no", "n"):
        return False
    raise ValueError(f"Invalid boolean env value: {v}")


def _parse_str(v: str) -> str:
    return v


# settings field -> parser for ENV values (APIREPO_<FIELD>)
_ENV_FIELDS = {
    "base_url": _parse_str,
    "api_token": _parse_str,
    "resource_path": _parse_str,
    "id_field": _parse_str,
    "max_page_size": _parse_int,
    "page_size": _parse_int,
    "max_pages": _parse_int,
    "timeout_seconds": _parse_float,
    "retries": _parse_int,
    "retry_backoff_seconds": _parse_float,
    "tls_skip_verify": _parse_bool,
    "ca_file": _parse_str,
    "log_dir": _parse_str,
    "log_level": _parse_str,
}


def load_settings(
    config_path: str | None,
    cli_overrides: dict,
) -> LoadedSettings:
    """
    Priority: CLI > ENV > config > defaults
    """
    sources: list[str] = []
    defaults = Settings()

    # 1) config file
    cfg: dict = {}
    if config_path:
        cfg = _read_yaml_config(Path(config_path))
        if cfg:
            sources.append("config")

    # 2) env
    env = {name: _env_get(ENV_PREFIX + name.upper()) for name in _ENV_FIELDS}
    if any(v is not None for v in env.values()):
        sources.append("env")

    merged = {name: cfg.get(name, getattr(defaults, name)) for name in _ENV_FIELDS}

    for name, raw in env.items():
        if raw is None:
            continue
        merged[name] = _ENV_FIELDS[name](raw)

    # 3) apply CLI overrides (only those explicitly passed)
    if any(v is not None for v in cli_overrides.values()):
        sources.append("cli")

    for k, v in cli_overrides.items():
        if v is None:
            continue
        merged[k] = v

    settings = Settings(
        base_url=merged["base_url"],
        api_token=merged["api_token"],
        resource_path=merged["resource_path"],
        id_field=merged["id_field"],
        max_page_size=int(merged["max_page_size"]),
        page_size=int(merged["page_size"]),
        max_pages=merged["max_pages"],
        timeout_seconds=float(merged["timeout_seconds"]),
        retries=int(merged["retries"]),
        retry_backoff_seconds=float(merged["retry_backoff_seconds"]),
        tls_skip_verify=bool(merged["tls_skip_verify"]),
        ca_file=merged["ca_file"],
        log_dir=merged["log_dir"],
        log_level=merged["log_level"],
    )

    return LoadedSettings(settings=settings, sources_used=sources)
