"""Ports for fetching and parsing source documents."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from catalogist.domain.model import ParsedDocument


@runtime_checkable
class DocumentStore(Protocol):
    """Object store holding source documents."""

    def fetch_bytes(self, ref: str) -> bytes:
        """Return the raw bytes of ``ref``; raise ``SourceUnreadableError`` when impossible."""
        ...

    def fetch_text_prefix(self, ref: str, limit: int) -> str:
        """Return at most ``limit`` characters of decoded text from ``ref``."""
        ...


@runtime_checkable
class DocumentParser(Protocol):
    """Layout parser returning free text plus tables. May return an empty document."""

    def parse(self, ref: str, data: bytes) -> ParsedDocument: ...


__all__ = ["DocumentParser", "DocumentStore"]
