from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal
from typing import Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigurationError


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_LOGIN_URL = "https://online.spor.istanbul/uyegiris"
DEFAULT_MEMBER_URL = "https://online.spor.istanbul/uyespor"

DEFAULT_TYPING_DELAY_MS = 100
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_SETTLE_DELAY_MS = 10_000


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> Union[int, str]:
    # Left as a string when set so a malformed value fails model validation.
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    return raw


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only defaults so most users only need a `.env` with TCNO and PASSWORD.

    A YAML file is an optional override on top of these.
    """
    return {
        "site": {
            "login_url": os.getenv("PORTAL_LOGIN_URL", DEFAULT_LOGIN_URL),
            "member_url": os.getenv("PORTAL_MEMBER_URL", DEFAULT_MEMBER_URL),
        },
        "credentials": {
            "identifier": os.getenv("TCNO", ""),
            "secret": os.getenv("PASSWORD", ""),
        },
        "browser": {
            "backend": os.getenv("BROWSER_BACKEND", "playwright"),
            "headless": _env_bool("HEADLESS", default=True),
            "typing_delay_ms": _env_int("TYPING_DELAY_MS", DEFAULT_TYPING_DELAY_MS),
            "timeout_ms": _env_int("NAVIGATION_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            "settle_delay_ms": _env_int("SETTLE_DELAY_MS", DEFAULT_SETTLE_DELAY_MS),
            "settle_mode": os.getenv("SETTLE_MODE", "delay"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "log_root": os.getenv("LOG_ROOT", "logs"),
        },
    }


class SiteConfig(BaseModel):
    login_url: str = DEFAULT_LOGIN_URL
    member_url: str = DEFAULT_MEMBER_URL

    @field_validator("login_url", "member_url")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        value = (value or "").strip()
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"expected a full http(s) URL, got {value!r}")
        return value


class CredentialsConfig(BaseModel):
    # Turkish ID (T.C. Kimlik No) or passport number used on the login form.
    identifier: str = ""
    secret: str = Field(default="", repr=False)


class BrowserConfig(BaseModel):
    backend: Literal["playwright", "selenium"] = "playwright"
    headless: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    slow_mo_ms: int = 0

    typing_delay_ms: int = Field(default=DEFAULT_TYPING_DELAY_MS, ge=0)
    # Bound for every navigation / element wait.
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    # Extra wait after the postback lands; the session list renders after network-idle.
    settle_delay_ms: int = Field(default=DEFAULT_SETTLE_DELAY_MS, ge=0)
    settle_mode: Literal["delay", "poll"] = "delay"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_root: str = "logs"


class AppConfig(BaseModel):
    site: SiteConfig = Field(default_factory=SiteConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    try:
        return AppConfig.model_validate(merged)
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
