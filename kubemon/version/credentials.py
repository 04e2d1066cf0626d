"""Registry credentials taken from a docker config pull secret."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from kubemon.errors import VersionLookupError

_DOCKER_HUB_ALIASES = ("docker.io", "index.docker.io", "registry-1.docker.io", "https://index.docker.io/v1/")


@dataclass(frozen=True)
class RegistryAuth:
    """Username/password pair for one registry."""

    username: str
    password: str


@dataclass(frozen=True)
class RegistryCredentials:
    """Credentials per registry host."""

    auths: dict[str, RegistryAuth] = field(default_factory=dict)

    def for_registry(self, host: str) -> RegistryAuth | None:
        """Return the credentials for *host*, or None when anonymous."""
        if host in self.auths:
            return self.auths[host]
        if host in _DOCKER_HUB_ALIASES:
            for alias in _DOCKER_HUB_ALIASES:
                if alias in self.auths:
                    return self.auths[alias]
        return None

    @classmethod
    def from_docker_config(cls, payload: str | bytes | dict[str, Any]) -> RegistryCredentials:
        """Parse a ``.dockerconfigjson`` document.

        Each ``auths`` entry may carry ``username``/``password`` or a base64
        ``auth`` of the form ``user:password``. Hosts are normalised to bare
        host names (scheme and path stripped).

        Raises:
            VersionLookupError: if the document cannot be parsed.
        """
        try:
            doc = payload if isinstance(payload, dict) else json.loads(payload)
        except (TypeError, ValueError) as exc:
            raise VersionLookupError(f"invalid docker config: {exc}") from exc

        auths: dict[str, RegistryAuth] = {}
        for server, entry in (doc.get("auths") or {}).items():
            username = entry.get("username", "")
            password = entry.get("password", "")
            if not username and entry.get("auth"):
                try:
                    decoded = base64.b64decode(entry["auth"], validate=True).decode()
                except (binascii.Error, UnicodeDecodeError) as exc:
                    raise VersionLookupError(f"invalid auth entry for {server}: {exc}") from exc
                username, _, password = decoded.partition(":")
            auths[_normalise_host(server)] = RegistryAuth(username=username, password=password)
        return cls(auths=auths)


def _normalise_host(server: str) -> str:
    if server in _DOCKER_HUB_ALIASES:
        return "docker.io"
    host = server.split("://", 1)[-1]
    return host.split("/", 1)[0]
