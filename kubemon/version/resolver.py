"""Image version resolution.

VersionResolver          -- strategy ABC used by the Reconciler.
RegistryVersionResolver  -- default: asks the image's registry (v2 API) for
                            the manifest digest and the version label.
StaticVersionResolver    -- fixed answers, for tests and for clusters that
                            must not reach out to registries.
"""

from __future__ import annotations

import base64
import hashlib
import re
from abc import ABC, abstractmethod
from typing import Any

import httpx

from kubemon.errors import VersionLookupError
from kubemon.models.workload import VersionRecord
from kubemon.observability.logging import get_logger
from kubemon.version.credentials import RegistryAuth, RegistryCredentials
from kubemon.version.image import ImageReference

_log = get_logger("version.resolver")

_MANIFEST_ACCEPT = ", ".join(
    [
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.oci.image.manifest.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
        "application/vnd.docker.distribution.manifest.v2+json",
    ]
)
_INDEX_MEDIA_TYPES = frozenset(
    {
        "application/vnd.oci.image.index.v1+json",
        "application/vnd.docker.distribution.manifest.list.v2+json",
    }
)
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class VersionResolver(ABC):
    """Resolves the currently published version of an image."""

    @abstractmethod
    async def resolve(self, image: str, credentials: RegistryCredentials | None) -> VersionRecord:
        """Return the version and content hash *image* currently points at.

        Raises:
            VersionLookupError: the lookup failed for any reason.
        """


class StaticVersionResolver(VersionResolver):
    """Answers from a fixed table instead of the network.

    Args:
        records: image reference -> VersionRecord.
        default: returned for images missing from *records*; when None such
                 images fail with VersionLookupError.
    """

    def __init__(
        self,
        records: dict[str, VersionRecord] | None = None,
        default: VersionRecord | None = None,
    ) -> None:
        self._records = dict(records or {})
        self._default = default

    async def resolve(self, image: str, credentials: RegistryCredentials | None) -> VersionRecord:
        record = self._records.get(image, self._default)
        if record is None:
            raise VersionLookupError(f"no version known for image {image!r}")
        return record


class RegistryVersionResolver(VersionResolver):
    """Looks the image up through the registry's v2 HTTP API.

    The content hash is the manifest digest the tag points at. The version is
    read from *version_label* in the image config, falling back to the tag.
    Multi-arch images are resolved to the *platform* entry for reading labels;
    the reported hash stays the digest of the index itself.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        verify_tls: bool = True,
        version_label: str = "org.opencontainers.image.version",
        platform: tuple[str, str] = ("linux", "amd64"),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._version_label = version_label
        self._platform = platform
        self._transport = transport

    async def resolve(self, image: str, credentials: RegistryCredentials | None) -> VersionRecord:
        try:
            ref = ImageReference.parse(image)
        except ValueError as exc:
            raise VersionLookupError(str(exc)) from exc

        auth = credentials.for_registry(ref.registry) if credentials is not None else None

        try:
            async with httpx.AsyncClient(
                base_url=f"https://{ref.api_host}",
                timeout=self._timeout,
                verify=self._verify_tls,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                session = _RegistrySession(client, ref, auth)
                manifest, digest, media_type = await session.manifest(ref.reference)
                if _is_index(manifest, media_type):
                    manifest, _, _ = await session.manifest(self._select_platform(manifest, image))
                config = await session.blob(manifest["config"]["digest"])
        except httpx.HTTPError as exc:
            raise VersionLookupError(f"registry request for {image} failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise VersionLookupError(f"unexpected registry response for {image}: {exc}") from exc

        labels = (config.get("config") or {}).get("Labels") or {}
        version = labels.get(self._version_label) or ref.tag or ref.reference
        _log.debug("image_version_resolved", image=image, version=version, hash=digest)
        return VersionRecord(version=version, hash=digest)

    def _select_platform(self, index: dict[str, Any], image: str) -> str:
        os_name, arch = self._platform
        entries = index.get("manifests") or []
        for entry in entries:
            platform = entry.get("platform") or {}
            if platform.get("os") == os_name and platform.get("architecture") == arch:
                return str(entry["digest"])
        raise VersionLookupError(f"image {image} has no {os_name}/{arch} manifest")


class _RegistrySession:
    """Authenticated GETs against one repository, handling auth challenges."""

    def __init__(self, client: httpx.AsyncClient, ref: ImageReference, auth: RegistryAuth | None) -> None:
        self._client = client
        self._ref = ref
        self._auth = auth
        self._authorization: str | None = None

    async def manifest(self, reference: str) -> tuple[dict[str, Any], str, str]:
        """Return the manifest body, its digest and its media type from Content-Type."""
        response = await self._get(
            f"/v2/{self._ref.repository}/manifests/{reference}",
            {"Accept": _MANIFEST_ACCEPT},
        )
        digest = response.headers.get("Docker-Content-Digest")
        if not digest:
            digest = f"sha256:{hashlib.sha256(response.content).hexdigest()}"
        media_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip()
        return response.json(), digest, media_type

    async def blob(self, digest: str) -> dict[str, Any]:
        response = await self._get(f"/v2/{self._ref.repository}/blobs/{digest}", {})
        return response.json()

    async def _get(self, path: str, headers: dict[str, str]) -> httpx.Response:
        response = await self._client.get(path, headers=self._with_auth(headers))
        if response.status_code == 401 and self._authorization is None:
            self._authorization = await self._answer_challenge(response.headers.get("WWW-Authenticate", ""))
            response = await self._client.get(path, headers=self._with_auth(headers))
        if not response.is_success:
            raise VersionLookupError(f"registry returned {response.status_code} for {path}")
        return response

    def _with_auth(self, headers: dict[str, str]) -> dict[str, str]:
        if self._authorization is None:
            return headers
        return {**headers, "Authorization": self._authorization}

    async def _answer_challenge(self, challenge: str) -> str:
        scheme, _, params_raw = challenge.partition(" ")
        scheme = scheme.lower()

        if scheme == "basic":
            if self._auth is None:
                raise VersionLookupError(f"registry {self._ref.registry} requires credentials")
            return _basic_header(self._auth)

        if scheme != "bearer":
            raise VersionLookupError(f"unsupported registry auth challenge: {challenge!r}")

        params = dict(_CHALLENGE_PARAM.findall(params_raw))
        realm = params.pop("realm", "")
        if not realm:
            raise VersionLookupError("bearer challenge without realm")
        params.setdefault("scope", f"repository:{self._ref.repository}:pull")

        basic = httpx.BasicAuth(self._auth.username, self._auth.password) if self._auth is not None else None
        response = await self._client.get(realm, params=params, auth=basic)
        if not response.is_success:
            raise VersionLookupError(f"token endpoint returned {response.status_code}")
        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise VersionLookupError("token endpoint returned no token")
        return f"Bearer {token}"


def _is_index(manifest: dict[str, Any], media_type: str) -> bool:
    # OCI indexes may omit mediaType in the body; the header is authoritative.
    return media_type in _INDEX_MEDIA_TYPES or manifest.get("mediaType") in _INDEX_MEDIA_TYPES


def _basic_header(auth: RegistryAuth) -> str:
    encoded = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
    return f"Basic {encoded}"
