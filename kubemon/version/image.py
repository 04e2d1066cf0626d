"""Image reference parsing following Docker's naming conventions."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_REGISTRY = "docker.io"
DEFAULT_TAG = "latest"


@dataclass(frozen=True)
class ImageReference:
    """A parsed image reference such as ``quay.io/org/app:1.2``."""

    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def reference(self) -> str:
        """The manifest reference to ask the registry for (digest wins)."""
        return self.digest or self.tag or DEFAULT_TAG

    @property
    def api_host(self) -> str:
        """Host serving the registry v2 API."""
        if self.registry == DEFAULT_REGISTRY:
            return "registry-1.docker.io"
        return self.registry

    @classmethod
    def parse(cls, ref: str) -> ImageReference:
        """Split *ref* into registry, repository, tag and digest.

        The first path component is a registry when it contains a dot or a
        colon or is ``localhost``; otherwise the image lives on Docker Hub and
        single-component names get the ``library/`` prefix.
        """
        if not ref or ref != ref.strip():
            raise ValueError(f"invalid image reference: {ref!r}")

        name, digest = ref, None
        if "@" in name:
            name, digest = name.split("@", 1)

        tag = None
        last_slash = name.rfind("/")
        colon = name.rfind(":")
        if colon > last_slash:
            name, tag = name[:colon], name[colon + 1 :]

        first, sep, rest = name.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            registry, repository = first, rest
        else:
            registry, repository = DEFAULT_REGISTRY, name
            if "/" not in repository:
                repository = f"library/{repository}"

        if not repository:
            raise ValueError(f"invalid image reference: {ref!r}")
        if tag is None and digest is None:
            tag = DEFAULT_TAG
        return cls(registry=registry, repository=repository, tag=tag, digest=digest)
