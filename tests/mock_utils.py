"""Mock utilities for Firestore."""

import unittest.mock
from typing import Any, Optional

from mockfirestore import CollectionReference, MockFirestore, Query
from mockfirestore.document import DocumentReference


def _set(ref: Any, data: Any, merge: bool) -> None:
    # mockfirestore turns a merge into an update, which needs an existing doc.
    if merge and ref.get().exists:
        ref.set(data, merge=True)
    else:
        ref.set(data)


class MockBatch:
    """Write batch that applies its queued writes when committed."""

    def __init__(self, db: Any) -> None:
        self.db = db
        self.writes: list[tuple[str, Any, Any, bool]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def update(self, ref: Any, data: Any) -> None:
        self.writes.append(("update", ref, data, False))

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append(("set", ref, data, merge))

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref, None, False))

    def _real_commit(self) -> None:
        for op, ref, data, merge in self.writes:
            if op == "delete":
                if ref.get().exists:
                    ref.delete()
            elif op == "update":
                ref.update(data)
            else:
                _set(ref, data, merge)


class ImmediateTransaction:
    """Transaction stand-in whose writes land as soon as they are issued.

    Used with ``firestore.transactional`` patched to the identity, so the
    transactional function runs exactly once against the mock database.
    """

    def __init__(self) -> None:
        self.writes: list[tuple[str, Any]] = []

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append(("set", ref))
        _set(ref, data, merge)

    def update(self, ref: Any, data: Any) -> None:
        self.writes.append(("update", ref))
        ref.update(data)

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref))
        if ref.get().exists:
            ref.delete()


class MockFirestoreBuilder:
    """Builder to modularize mockfirestore patching."""

    @staticmethod
    def patch_db_read() -> None:
        """Apply monkeypatches to mockfirestore to support FieldFilter and equality."""

        def collection_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(CollectionReference, "_where"):
            CollectionReference._where = CollectionReference.where
            CollectionReference.where = collection_where

        def query_where(
            self: Any,
            field_path: Optional[str] = None,
            op_string: Optional[str] = None,
            value: Any = None,
            filter: Any = None,
        ) -> Any:
            if filter:
                return self._where(filter.field_path, filter.op_string, filter.value)
            return self._where(field_path, op_string, value)

        if not hasattr(Query, "_where"):
            Query._where = Query.where
            Query.where = query_where

        def doc_ref_eq(self: Any, other: Any) -> bool:
            if not isinstance(other, DocumentReference):
                return False
            return self._path == other._path

        if not hasattr(DocumentReference, "_orig_eq"):
            DocumentReference._orig_eq = DocumentReference.__eq__
            DocumentReference.__eq__ = doc_ref_eq
            DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

        # Patch DocumentReference.get to handle transaction argument
        if not hasattr(DocumentReference, "_orig_get"):
            DocumentReference._orig_get = DocumentReference.get

            def doc_ref_get(self: Any, transaction: Any = None) -> Any:
                """Handle transaction argument in get."""
                return self._orig_get()

            DocumentReference.get = doc_ref_get

        # Skip the empty placeholders mockfirestore creates for bare references
        if not hasattr(CollectionReference, "_orig_stream"):
            CollectionReference._orig_stream = CollectionReference.stream

            def collection_stream(self: Any, transaction: Any = None) -> Any:
                return (doc for doc in self._orig_stream() if doc.exists)

            CollectionReference.stream = collection_stream

    @staticmethod
    def build() -> MockFirestore:
        """Return a MockFirestore with working batches and transactions."""
        MockFirestoreBuilder.patch_db_read()
        db = MockFirestore()
        db.batch = unittest.mock.MagicMock(side_effect=lambda: MockBatch(db))
        db.transaction = unittest.mock.MagicMock(side_effect=ImmediateTransaction)
        return db


def patch_transactional() -> Any:
    """Run transactional functions directly, once, with the given transaction."""
    return unittest.mock.patch(
        "firebase_admin.firestore.transactional", new=lambda func: func
    )
