"""Document store protocol for order persistence.

This module defines the abstract storage boundary used by the transition
executor. Concrete implementations adapt a specific key-value or document
database to this protocol. The engine depends only on five primitives:
read, atomic multi-field update, merge-set, a server-timestamp sentinel and
an array-append sentinel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """Location of one document: a collection path plus a document id."""

    collection: str
    doc_id: str

    def __post_init__(self) -> None:
        if not self.collection or not self.doc_id:
            raise ValueError("collection and doc_id must be non-empty")

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.doc_id}"

    @classmethod
    def from_path(cls, path: str) -> DocumentRef:
        """Split "a/b/c/d" into collection "a/b/c" and id "d"."""
        collection, sep, doc_id = path.strip("/").rpartition("/")
        if not sep:
            raise ValueError(f"Document path needs a collection: {path!r}")
        return cls(collection=collection, doc_id=doc_id)


class ServerTimestamp:
    """Sentinel replaced by the store's clock when the patch is applied."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = ServerTimestamp()


@dataclass(frozen=True, slots=True)
class ArrayUnion:
    """Sentinel appending values to an array field.

    Values already present (by equality) are not appended again.
    """

    values: tuple[Any, ...]


class DocumentNotFoundError(LookupError):
    """Raised by update_document when the target document does not exist."""

    def __init__(self, ref: DocumentRef) -> None:
        super().__init__(f"Document does not exist: {ref.path}")
        self.ref = ref


class DocumentStore(Protocol):
    """Storage boundary of the order lifecycle engine.

    Patches use dotted keys ("statusTimestamps.acceptedAt") to address nested
    fields and may contain SERVER_TIMESTAMP / ArrayUnion sentinels anywhere.
    """

    def get_document(self, ref: DocumentRef) -> dict[str, Any] | None:
        """Return a copy of the document, or None if it does not exist."""

    def update_document(self, ref: DocumentRef, patch: Mapping[str, Any]) -> None:
        """Apply all fields of patch atomically (all-or-nothing).

        Raises DocumentNotFoundError if the document does not exist.
        """

    def set_document(
        self,
        ref: DocumentRef,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        """Create or overwrite a document; merge=True deep-merges into it."""

    def server_timestamp(self) -> Any:
        """Return the sentinel resolved to the store clock on write."""

    def array_union(self, *values: Any) -> Any:
        """Return the sentinel appending values to an array field."""
