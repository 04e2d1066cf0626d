"""Published image version lookup.

Submodules:
    credentials -- registry credentials parsed from a docker config secret.
    image       -- image reference parsing (registry, repository, tag, digest).
    resolver    -- VersionResolver strategy, registry and static implementations.
"""

from kubemon.version.credentials import RegistryAuth, RegistryCredentials
from kubemon.version.image import ImageReference
from kubemon.version.resolver import (
    RegistryVersionResolver,
    StaticVersionResolver,
    VersionResolver,
)

__all__ = [
    "ImageReference",
    "RegistryAuth",
    "RegistryCredentials",
    "RegistryVersionResolver",
    "StaticVersionResolver",
    "VersionResolver",
]
