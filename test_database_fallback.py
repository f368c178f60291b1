import pytest

from training_portal.database.database_service import DatabaseService

# Async tests
pytestmark = pytest.mark.asyncio


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, store, doc_id):
        self.store = store
        self.doc_id = doc_id

    def get(self):
        return FakeSnapshot(self.doc_id, self.store.get(self.doc_id))

    def set(self, data):
        self.store[self.doc_id] = dict(data)

    def update(self, data):
        self.store[self.doc_id].update(data)

    def delete(self):
        self.store.pop(self.doc_id, None)


class FakeQuery:
    """Minimal Firestore query that can be told to reject ordering or filtering."""

    def __init__(self, store, fail_on_order=False, fail_on_filter=False, filters=None, limit=None):
        self.store = store
        self.fail_on_order = fail_on_order
        self.fail_on_filter = fail_on_filter
        self.filters = filters or []
        self._limit = limit
        self.ordered = False

    def _copy(self, **changes):
        query = FakeQuery(self.store, self.fail_on_order, self.fail_on_filter, list(self.filters), self._limit)
        query.ordered = self.ordered
        for key, value in changes.items():
            setattr(query, key, value)
        return query

    def where(self, filter):
        return self._copy(filters=self.filters + [filter])

    def order_by(self, field, direction=None):
        return self._copy(ordered=True)

    def limit(self, count):
        return self._copy(_limit=count)

    def stream(self):
        if self.ordered and self.fail_on_order:
            raise Exception("400 The query requires an index")
        if self.filters and self.fail_on_filter:
            raise Exception("400 The query requires an index")
        results = []
        for doc_id, data in self.store.items():
            if all(data.get(f.field_path) == f.value for f in self.filters):
                results.append(FakeSnapshot(doc_id, data))
        return results[:self._limit] if self._limit else results

    def document(self, doc_id):
        return FakeDocumentRef(self.store, doc_id)


class FakeClient:
    def __init__(self, collections, **flags):
        self.collections = collections
        self.flags = flags

    def collection(self, name):
        return FakeQuery(self.collections.setdefault(name, {}), **self.flags)


DOCS = {
    "a": {"trainee_id": "t1", "score": 40},
    "b": {"trainee_id": "t1", "score": 90},
    "c": {"trainee_id": "t2", "score": 70},
    "d": {"trainee_id": "t1"},
}


def _service(**flags):
    db = DatabaseService()
    db._client = FakeClient({"cbt_exam_attempts": dict(DOCS)}, **flags)
    return db


async def test_plain_query_runs_on_firestore():
    db = _service()
    ok, docs, error = await db.query_documents("cbt_exam_attempts", [("trainee_id", "==", "t2")])

    assert ok, error
    assert [d["_doc_id"] for d in docs] == ["c"]
    assert docs[0]["id"] == "c"


async def test_missing_index_falls_back_to_in_memory_sort():
    db = _service(fail_on_order=True)
    ok, docs, error = await db.query_documents(
        "cbt_exam_attempts", [("trainee_id", "==", "t1")], order_by="score", descending=True, limit=2
    )

    assert ok, error
    assert [d["_doc_id"] for d in docs] == ["b", "a"]


async def test_documents_without_sort_field_go_last():
    db = _service(fail_on_order=True)
    ok, docs, _ = await db.query_documents("cbt_exam_attempts", [("trainee_id", "==", "t1")], order_by="score")

    assert [d["_doc_id"] for d in docs] == ["a", "b", "d"]


async def test_rejected_filter_scans_collection():
    db = _service(fail_on_filter=True)
    ok, docs, error = await db.query_documents(
        "cbt_exam_attempts", [("score", ">=", 70)], order_by="score"
    )

    assert ok, error
    assert [d["_doc_id"] for d in docs] == ["c", "b"]


async def test_create_validates_required_fields():
    db = _service()
    ok, _, error = await db.create_document("sponsors", {"description": "no name"})

    assert not ok
    assert error == "Missing required fields for sponsors: name"


async def test_create_and_get_round_trip_sets_timestamps():
    db = _service()
    ok, doc_id, error = await db.create_document("sponsors", {"name": "Delta Skills"}, document_id="sp1")
    assert ok, error

    ok, doc, _ = await db.get_document("sponsors", "sp1")
    assert doc["name"] == "Delta Skills"
    assert doc["created_at"] is not None

    ok, _, error = await db.get_document("sponsors", "missing")
    assert not ok
    assert error == "Document missing not found in sponsors"
