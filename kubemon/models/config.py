"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ReconcilerConfig:
    """Convergence engine configuration."""

    disable_version_updates: bool = False


@dataclass
class RegistryConfig:
    """Container registry lookup configuration."""

    timeout_seconds: float = 10.0
    verify_tls: bool = True
    version_label: str = "org.opencontainers.image.version"


@dataclass
class DashboardConfig:
    """Dashboard registration configuration."""

    api_url: str = ""
    token_env: str = ""


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubemonConfig:
    """Top-level kubemon configuration."""

    operator_namespace: str = "kubemon"
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    dashboard: DashboardConfig = field(default_factory=DashboardConfig)
    log: LogConfig = field(default_factory=LogConfig)
