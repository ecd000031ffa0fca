"""Public interface for the document store and layout parser adapters."""

from __future__ import annotations

from .parser import HttpDocumentParser, PlainTextDocumentParser, detect_tables
from .store import (
    DocumentFetchError,
    HttpDocumentStore,
    LocalDocumentStore,
    RoutingDocumentStore,
    default_document_store,
)

__all__ = [
    "DocumentFetchError",
    "HttpDocumentParser",
    "HttpDocumentStore",
    "LocalDocumentStore",
    "PlainTextDocumentParser",
    "RoutingDocumentStore",
    "default_document_store",
    "detect_tables",
]
