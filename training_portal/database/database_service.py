"""
Async facade over Firestore used by every service.

All methods return tuples instead of raising:
    create_document -> (success, document_id, error)
    get_document    -> (success, document, error)
    query_documents -> (success, documents, error)
    update_document -> (success, error)
    delete_document -> (success, error)

Queries that need an ordering Firestore cannot serve (usually a missing
composite index) are retried without it and finished in memory.
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
import logging
import uuid

from google.cloud.firestore_v1 import FieldFilter, Increment, Query

from .collections import COLLECTIONS, COLLECTION_SCHEMAS
from .firestore_client import get_firestore_client

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]


def _matches(doc: Dict[str, Any], field: str, op: str, value: Any) -> bool:
    actual = doc.get(field)
    try:
        if op == "==":
            return actual == value
        if op == "!=":
            return actual != value
        if op == "<":
            return actual is not None and actual < value
        if op == "<=":
            return actual is not None and actual <= value
        if op == ">":
            return actual is not None and actual > value
        if op == ">=":
            return actual is not None and actual >= value
        if op == "in":
            return actual in (value or [])
        if op == "not-in":
            return actual not in (value or [])
        if op == "array-contains":
            return isinstance(actual, list) and value in actual
        if op == "array-contains-any":
            return isinstance(actual, list) and any(v in actual for v in (value or []))
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {op}")


def apply_filters(docs: List[Dict[str, Any]], filters: Optional[List[Filter]]) -> List[Dict[str, Any]]:
    """Filter already-fetched documents the way Firestore would."""
    if not filters:
        return list(docs)
    return [d for d in docs if all(_matches(d, f, op, v) for f, op, v in filters)]


def sort_documents(docs: List[Dict[str, Any]], field: str, descending: bool = False) -> List[Dict[str, Any]]:
    """Sort documents by a field; documents missing the field always go last."""
    present = [d for d in docs if d.get(field) is not None]
    missing = [d for d in docs if d.get(field) is None]
    try:
        present.sort(key=lambda d: d.get(field), reverse=descending)
    except TypeError:
        present.sort(key=lambda d: str(d.get(field)), reverse=descending)
    return present + missing


class DatabaseService:
    def __init__(self):
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    def _collection(self, collection: str):
        return self.client.collection(collection)

    @staticmethod
    def _snapshot_to_dict(snapshot) -> Dict[str, Any]:
        data = snapshot.to_dict() or {}
        data["_doc_id"] = snapshot.id
        data.setdefault("id", snapshot.id)
        return data

    @staticmethod
    def _validate(collection: str, data: Dict[str, Any]) -> Optional[str]:
        schema = COLLECTION_SCHEMAS.get(collection)
        if not schema:
            return None
        missing = [f for f in schema.get("required", []) if data.get(f) in (None, "")]
        if missing:
            return f"Missing required fields for {collection}: {', '.join(missing)}"
        return None

    async def create_document(
        self,
        collection: str,
        data: Dict[str, Any],
        document_id: Optional[str] = None,
        validate: bool = True
    ) -> Tuple[bool, Optional[str], Optional[str]]:
        try:
            if validate:
                error = self._validate(collection, data)
                if error:
                    return False, None, error

            doc_id = document_id or data.get("id") or str(uuid.uuid4())
            payload = dict(data)
            payload.setdefault("id", doc_id)
            now = datetime.now(timezone.utc)
            payload.setdefault("created_at", now)
            payload.setdefault("updated_at", now)

            self._collection(collection).document(doc_id).set(payload)
            return True, doc_id, None
        except Exception as e:
            logger.error(f"Error creating document in {collection}: {e}")
            return False, None, str(e)

    async def get_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[Dict[str, Any]], Optional[str]]:
        try:
            snapshot = self._collection(collection).document(document_id).get()
            if not snapshot.exists:
                return False, None, f"Document {document_id} not found in {collection}"
            return True, self._snapshot_to_dict(snapshot), None
        except Exception as e:
            logger.error(f"Error getting document {document_id} from {collection}: {e}")
            return False, None, str(e)

    def _run_query(self, collection: str, filters, order_by, descending, limit) -> List[Dict[str, Any]]:
        query = self._collection(collection)
        for field, op, value in filters or []:
            query = query.where(filter=FieldFilter(field, op, value))
        if order_by:
            direction = Query.DESCENDING if descending else Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit:
            query = query.limit(limit)
        return [self._snapshot_to_dict(s) for s in query.stream()]

    async def query_documents(
        self,
        collection: str,
        filters: Optional[List[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> Tuple[bool, List[Dict[str, Any]], Optional[str]]:
        try:
            return True, self._run_query(collection, filters, order_by, descending, limit), None
        except Exception as e:
            logger.warning(f"Query on {collection} failed ({e}); falling back to in-memory filtering")

        # Fallback 1: same filters, no ordering or limit
        try:
            docs = self._run_query(collection, filters, None, False, None)
        except Exception as e:
            logger.warning(f"Filtered query on {collection} failed ({e}); scanning collection")
            # Fallback 2: scan everything and filter here
            try:
                docs = apply_filters(self._run_query(collection, None, None, False, None), filters)
            except Exception as scan_error:
                logger.error(f"Error querying {collection}: {scan_error}")
                return False, [], str(scan_error)

        if order_by:
            docs = sort_documents(docs, order_by, descending)
        if limit:
            docs = docs[:limit]
        return True, docs, None

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: Dict[str, Any],
        validate: bool = True
    ) -> Tuple[bool, Optional[str]]:
        try:
            ref = self._collection(collection).document(document_id)
            if validate and not ref.get().exists:
                return False, f"Document {document_id} not found in {collection}"
            payload = dict(data)
            payload["updated_at"] = datetime.now(timezone.utc)
            ref.update(payload)
            return True, None
        except Exception as e:
            logger.error(f"Error updating document {document_id} in {collection}: {e}")
            return False, str(e)

    async def increment_field(self, collection: str, document_id: str, field: str, amount: int = 1) -> Tuple[bool, Optional[str]]:
        try:
            self._collection(collection).document(document_id).update({
                field: Increment(amount),
                "updated_at": datetime.now(timezone.utc),
            })
            return True, None
        except Exception as e:
            logger.error(f"Error incrementing {field} on {collection}/{document_id}: {e}")
            return False, str(e)

    async def delete_document(self, collection: str, document_id: str) -> Tuple[bool, Optional[str]]:
        try:
            self._collection(collection).document(document_id).delete()
            return True, None
        except Exception as e:
            logger.error(f"Error deleting document {document_id} from {collection}: {e}")
            return False, str(e)

    async def get_all_documents(self, collection: str) -> List[Dict[str, Any]]:
        success, docs, _ = await self.query_documents(collection)
        return docs if success else []


database_service = DatabaseService()

__all__ = ["DatabaseService", "database_service", "COLLECTIONS", "apply_filters", "sort_documents"]
