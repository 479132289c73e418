from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import field_validator

from igscrape.schemas import IGBaseModel

DEFAULT_HOST = "www.instagram.com"
DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000
DEFAULT_SETTLE_DELAY_MS = 1_000
DEFAULT_INTERCEPTOR_TIMEOUT_MS = 10_000
_MAX_DELAY_MS = 600_000


class WaitUntil(str, Enum):
    load = "load"
    domcontentloaded = "domcontentloaded"
    networkidle = "networkidle"
    commit = "commit"


def _parse_bool(raw: str, *, env_var: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{env_var} must be a boolean value")


def _parse_ms(raw: str, *, env_var: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{env_var} must be an integer number of milliseconds") from exc


class ScraperConfig(IGBaseModel):
    host: str = DEFAULT_HOST
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    wait_until: WaitUntil = WaitUntil.domcontentloaded
    settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS
    interceptor_timeout_ms: int = DEFAULT_INTERCEPTOR_TIMEOUT_MS
    raise_on_error: bool = False

    @field_validator("host")
    @classmethod
    def validate_host(cls, value: str) -> str:
        host = value.strip().lower()
        if not host:
            raise ValueError("host must be non-empty")
        if "/" in host or ":" in host:
            raise ValueError("host must be a bare hostname")
        return host

    @field_validator("navigation_timeout_ms", "settle_delay_ms", "interceptor_timeout_ms")
    @classmethod
    def validate_delay_range(cls, value: int) -> int:
        if value < 0 or value > _MAX_DELAY_MS:
            raise ValueError(f"delays must be between 0 and {_MAX_DELAY_MS} ms")
        return value

    @property
    def home_url(self) -> str:
        return f"https://{self.host}/"


def load_scraper_config_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    base_config: ScraperConfig | None = None,
) -> ScraperConfig:
    env = dict(os.environ if environ is None else environ)
    config = base_config or ScraperConfig()
    payload = config.model_dump(mode="python")

    if "IGSCRAPE_HOST" in env:
        payload["host"] = env["IGSCRAPE_HOST"]
    if "IGSCRAPE_WAIT_UNTIL" in env:
        payload["wait_until"] = env["IGSCRAPE_WAIT_UNTIL"].strip()
    for field_name, env_var in (
        ("navigation_timeout_ms", "IGSCRAPE_NAVIGATION_TIMEOUT_MS"),
        ("settle_delay_ms", "IGSCRAPE_SETTLE_DELAY_MS"),
        ("interceptor_timeout_ms", "IGSCRAPE_INTERCEPTOR_TIMEOUT_MS"),
    ):
        if env_var in env:
            payload[field_name] = _parse_ms(env[env_var], env_var=env_var)
    if "IGSCRAPE_RAISE_ON_ERROR" in env:
        payload["raise_on_error"] = _parse_bool(
            env["IGSCRAPE_RAISE_ON_ERROR"],
            env_var="IGSCRAPE_RAISE_ON_ERROR",
        )

    return ScraperConfig.model_validate(payload)


def load_scraper_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ScraperConfig:
    """Build a config from an optional YAML file, then apply IGSCRAPE_* overrides."""
    file_payload: dict[str, Any] = {}
    if path is not None:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"config file must contain a mapping: {path.as_posix()}")
        file_payload = loaded
    base_config = ScraperConfig.model_validate(file_payload)
    return load_scraper_config_from_env(environ, base_config=base_config)
