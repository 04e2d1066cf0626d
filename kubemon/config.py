"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubemon.models.config import (
    DashboardConfig,
    KubemonConfig,
    LogConfig,
    ReconcilerConfig,
    RegistryConfig,
)

# Honoured for compatibility with older deployments.
_LEGACY_DISABLE_UPDATES = "OPERATOR_DEBUG_DISABLE_UPDATES"


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEMON_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None and val < min_val:
        raise ValueError(f"KUBEMON_{key} must be >= {min_val}, got {val}")
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _disable_version_updates() -> bool:
    if os.environ.get(_LEGACY_DISABLE_UPDATES, "") == "true":
        return True
    return _env_bool("DISABLE_VERSION_UPDATES", False)


def load_config() -> KubemonConfig:
    """Load configuration from KUBEMON_* environment variables.

    Called once at process start; the result is handed to the Reconciler and
    never re-read while reconciling.
    """
    return KubemonConfig(
        operator_namespace=_env("NAMESPACE", "kubemon"),
        reconciler=ReconcilerConfig(
            disable_version_updates=_disable_version_updates(),
        ),
        registry=RegistryConfig(
            timeout_seconds=_env_float("REGISTRY_TIMEOUT", 10.0, min_val=1.0),
            verify_tls=_env_bool("REGISTRY_VERIFY_TLS", True),
            version_label=_env("REGISTRY_VERSION_LABEL", "org.opencontainers.image.version"),
        ),
        dashboard=DashboardConfig(
            api_url=_env("DASHBOARD_API_URL", "").rstrip("/"),
            token_env=_env("DASHBOARD_TOKEN_REF", ""),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
