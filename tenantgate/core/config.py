from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off", "")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def parse_email_list(raw: str) -> frozenset[str]:
    """Split a comma separated allow-list, lowercasing and dropping blanks."""
    return frozenset(e.strip().lower() for e in raw.split(",") if e.strip())


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    super_admin_emails: frozenset[str] = frozenset()
    app_url: str = "http://localhost:3000"
    mail_webhook_url: str | None = None
    session_ttl_seconds: int = 30 * 24 * 3600
    jwt_public_key: str | None = None
    jwt_issuer: str = "tenantgate-identity"
    jwt_audience: str = "tenantgate"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _load_public_key() -> str | None:
    """PEM of the identity provider's signing key, inline or from a file."""
    inline = _getenv("JWT_PUBLIC_KEY", "")
    path = _getenv("JWT_PUBLIC_KEY_FILE", "")
    if inline and path:
        raise ValueError("set only one of JWT_PUBLIC_KEY and JWT_PUBLIC_KEY_FILE")
    if path:
        try:
            return Path(path).read_text()
        except OSError as e:
            raise ValueError(f"JWT_PUBLIC_KEY_FILE cannot be read ({e})") from None
    # Single-line env values carry the PEM newlines escaped.
    return inline.replace("\\n", "\n") or None


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _parse_int("PORT", _getenv("PORT", "8000"))
    session_ttl = _parse_int(
        "SESSION_TTL_SECONDS", _getenv("SESSION_TTL_SECONDS", str(30 * 24 * 3600))
    )
    if session_ttl <= 0:
        raise ValueError(f"SESSION_TTL_SECONDS must be positive (got {session_ttl})")

    jwt_public_key = _load_public_key()
    if app_env_raw == "prod" and jwt_public_key is None:
        raise ValueError("JWT_PUBLIC_KEY or JWT_PUBLIC_KEY_FILE is required when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_parse_bool("LOG_JSON", _getenv("LOG_JSON", "false")),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        super_admin_emails=parse_email_list(_getenv("SUPER_ADMIN_EMAILS", "")),
        app_url=_getenv("APP_URL", "http://localhost:3000").rstrip("/"),
        mail_webhook_url=_getenv("MAIL_WEBHOOK_URL", "") or None,
        session_ttl_seconds=session_ttl,
        jwt_public_key=jwt_public_key,
        jwt_issuer=_getenv("JWT_ISSUER", "tenantgate-identity"),
        jwt_audience=_getenv("JWT_AUDIENCE", "tenantgate"),
    )


# Loaded once at import; the super-admin allow-list is read from here and
# handed to the gate as a dependency, never mutated at runtime.
SETTINGS = load_settings()
