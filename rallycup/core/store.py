"""Chunked batch writes and transactions against Firestore."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar

from firebase_admin import firestore
from flask import current_app, has_app_context
from google.api_core import exceptions as google_exceptions

from rallycup.errors import AppError, TransactionFailure

from .constants import FIRESTORE_BATCH_LIMIT

if TYPE_CHECKING:
    from google.cloud.firestore_v1.batch import WriteBatch
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.collection import CollectionReference
    from google.cloud.firestore_v1.document import DocumentReference

T = TypeVar("T")

# (operation, reference, data) where operation is "set", "update" or "delete"
WriteOperation = tuple[str, "DocumentReference", "dict[str, Any] | None"]


def get_batch_limit() -> int:
    """Return the configured per-batch write limit."""
    if has_app_context():
        return int(current_app.config.get("BATCH_LIMIT") or FIRESTORE_BATCH_LIMIT)
    return FIRESTORE_BATCH_LIMIT


def _commit(batch: WriteBatch, committed: int) -> None:
    try:
        batch.commit()
    except google_exceptions.GoogleAPIError as e:
        logging.error(f"Batch commit failed after {committed} writes: {e}")
        raise TransactionFailure(
            "Batch write could not be committed.", {"committedWrites": committed}
        ) from e


def commit_in_chunks(
    db: Client, operations: Iterable[WriteOperation], limit: int | None = None
) -> int:
    """Apply write operations in batches that respect the per-batch limit.

    Each chunk is atomic on its own. Returns the number of writes committed.
    """
    limit = limit or get_batch_limit()
    batch = db.batch()
    operation_count = 0
    committed = 0

    for op, ref, data in operations:
        if op == "delete":
            batch.delete(ref)
        elif op == "update":
            batch.update(ref, data)
        else:
            batch.set(ref, data)
        operation_count += 1

        if operation_count >= limit:
            _commit(batch, committed)
            committed += operation_count
            batch = db.batch()
            operation_count = 0

    if operation_count > 0:
        _commit(batch, committed)
        committed += operation_count

    return committed


def delete_documents(
    db: Client, refs: Iterable[DocumentReference], limit: int | None = None
) -> int:
    """Delete documents in chunks. Deleting a missing document is a no-op."""
    return commit_in_chunks(db, (("delete", ref, None) for ref in refs), limit)


def delete_collection(
    db: Client, collection_ref: CollectionReference, limit: int | None = None
) -> int:
    """Delete every document of a collection in chunks."""
    refs = [doc.reference for doc in collection_ref.stream()]
    return delete_documents(db, refs, limit)


def run_transaction(db: Client, func: Callable[..., T], *args: Any) -> T:
    """Run ``func(transaction, *args)`` inside a Firestore transaction.

    Application errors raised by ``func`` propagate unchanged and abort the
    transaction. Store failures surface as ``TransactionFailure``.
    """
    transaction = db.transaction()
    try:
        return firestore.transactional(func)(transaction, *args)
    except AppError:
        raise
    except (google_exceptions.GoogleAPIError, ValueError) as e:
        # ValueError is raised once the client exhausts its commit attempts.
        logging.error(f"Transaction {getattr(func, '__name__', func)} failed: {e}")
        raise TransactionFailure(f"Transaction could not be committed: {e}") from e
