"""Document stores: local files and HTTP(S) URLs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlsplit

import httpx

from catalogist.adapters.http_resilience import ResilientClient
from catalogist.config import get_document_resilience
from catalogist.domain.errors import SourceUnreadableError
from catalogist.domain.ports import DocumentStore

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from catalogist.config import ResilienceConfig

log = getLogger(__name__)


class DocumentFetchError(SourceUnreadableError):
    """Raised when a document store cannot deliver the bytes behind a reference."""


def _decode_prefix(data: bytes, limit: int) -> str:
    # four bytes per character covers any UTF-8 sequence
    return data[: limit * 4].decode("utf-8", errors="replace")[:limit]


@dataclass(slots=True)
class LocalDocumentStore:
    """Reads documents from the local filesystem.

    ``ref`` is a plain path or a ``file://`` URI. Relative paths resolve against
    ``root`` when one is set.
    """

    root: Path | None = None

    def resolve(self, ref: str) -> Path:
        parts = urlsplit(ref)
        raw = unquote(parts.path) if parts.scheme == "file" else ref
        path = Path(raw).expanduser()
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def fetch_bytes(self, ref: str) -> bytes:
        path = self.resolve(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise DocumentFetchError(f"Cannot read {path}: {exc}") from exc

    def fetch_text_prefix(self, ref: str, limit: int) -> str:
        path = self.resolve(ref)
        try:
            with path.open("rb") as handle:
                data = handle.read(limit * 4)
        except OSError as exc:
            raise DocumentFetchError(f"Cannot read {path}: {exc}") from exc
        return _decode_prefix(data, limit)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpDocumentStore:
    """Fetches documents over HTTP(S) through the cached, rate-limited client."""

    resilience: ResilienceConfig = field(default_factory=get_document_resilience)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def fetch_bytes(self, ref: str) -> bytes:
        return asyncio.run(self._fetch(ref))

    def fetch_text_prefix(self, ref: str, limit: int) -> str:
        return _decode_prefix(self.fetch_bytes(ref), limit)

    async def _fetch(self, ref: str) -> bytes:
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.get(ref, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise DocumentFetchError(
                    f"Fetching {ref} failed with HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise DocumentFetchError(f"Fetching {ref} failed: {exc}") from exc
        log.debug("Fetched %d bytes from %s", len(response.content), ref)
        return response.content


@dataclass(slots=True)
class RoutingDocumentStore:
    """Dispatches on the URI scheme of ``ref``; refs without a scheme go to ``default``."""

    default: DocumentStore
    by_scheme: Mapping[str, DocumentStore] = field(default_factory=dict)

    def route(self, ref: str) -> DocumentStore:
        scheme = urlsplit(ref).scheme.lower()
        # single letters are Windows drive names
        if len(scheme) <= 1:
            return self.default
        store = self.by_scheme.get(scheme)
        if store is None:
            raise DocumentFetchError(f"Unsupported document scheme {scheme!r} in {ref}")
        return store

    def fetch_bytes(self, ref: str) -> bytes:
        return self.route(ref).fetch_bytes(ref)

    def fetch_text_prefix(self, ref: str, limit: int) -> str:
        return self.route(ref).fetch_text_prefix(ref, limit)


def default_document_store(*, root: Path | None = None) -> RoutingDocumentStore:
    local = LocalDocumentStore(root=root)
    remote = HttpDocumentStore()
    return RoutingDocumentStore(
        default=local,
        by_scheme={"file": local, "http": remote, "https": remote},
    )


if TYPE_CHECKING:
    _local_check: DocumentStore = LocalDocumentStore()
    _http_check: DocumentStore = HttpDocumentStore()
    _routing_check: DocumentStore = RoutingDocumentStore(default=LocalDocumentStore())
