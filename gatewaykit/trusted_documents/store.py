"""Stores that map document hashes to trusted GraphQL documents."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from gatewaykit.trusted_documents.config import (
    ApolloPersistedQueryManifest,
    TrustedDocumentsFileFormat,
)

logger = logging.getLogger(__name__)


class StoreFormatError(ValueError):
    """Raised when store contents are not valid for the expected format."""


class TrustedDocumentsStore(ABC):
    """A lookup of trusted GraphQL documents by hash."""

    @abstractmethod
    def has_document(self, document_hash: str) -> bool:
        """Whether a document with this hash is known."""

    @abstractmethod
    def get_document(self, document_hash: str) -> Optional[str]:
        """The document with this hash, or None."""


class FilesystemStore(TrustedDocumentsStore):
    """An in-memory store built from the contents of a local file."""

    def __init__(self, known_documents: Optional[dict[str, str]] = None) -> None:
        self._known_documents: dict[str, str] = dict(known_documents or {})

    @classmethod
    def from_file_contents(
        cls, contents: str, file_format: TrustedDocumentsFileFormat
    ) -> "FilesystemStore":
        """Build a store from file contents; raises StoreFormatError when they are invalid."""
        logger.debug(
            "creating trusted documents store from a local file, expected format: %s",
            file_format.value,
        )
        try:
            data = json.loads(contents)
        except ValueError as exc:
            raise StoreFormatError(f"invalid JSON: {exc}") from exc

        if file_format is TrustedDocumentsFileFormat.APOLLO_PERSISTED_QUERY_MANIFEST:
            try:
                manifest = ApolloPersistedQueryManifest.from_dict(data)
            except ValueError as exc:
                raise StoreFormatError(str(exc)) from exc
            documents = {record.id: record.body for record in manifest.operations}
        else:
            if not isinstance(data, dict):
                raise StoreFormatError("expected a JSON object mapping keys to documents")
            if not all(isinstance(value, str) for value in data.values()):
                raise StoreFormatError("every document in the key-value map must be a string")
            documents = data

        store = cls(documents)
        logger.info("loaded trusted documents store from file, total records: %d", len(store))
        return store

    def has_document(self, document_hash: str) -> bool:
        return document_hash in self._known_documents

    def get_document(self, document_hash: str) -> Optional[str]:
        return self._known_documents.get(document_hash)

    def __len__(self) -> int:
        return len(self._known_documents)