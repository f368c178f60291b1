import copy
import uuid
from datetime import datetime, timezone

import pytest

from training_portal.database.database_service import DatabaseService, apply_filters, sort_documents


class FakeDB:
    """In-memory stand-in for DatabaseService with the same tuple-returning API."""

    def __init__(self, data=None):
        # {collection: {doc_id: doc}}
        self.data = {name: dict(docs) for name, docs in (data or {}).items()}
        self.created = []
        self.deleted = []
        # Collections whose create_document calls report a write failure
        self.fail_collections = set()

    def _docs(self, collection):
        return self.data.setdefault(collection, {})

    @staticmethod
    def _out(doc_id, doc):
        out = copy.deepcopy(doc)
        out["_doc_id"] = doc_id
        out.setdefault("id", doc_id)
        return out

    def seed(self, collection, doc_id, doc):
        self._docs(collection)[doc_id] = dict(doc, id=doc.get("id", doc_id))
        return doc_id

    def all(self, collection):
        return [self._out(k, v) for k, v in self._docs(collection).items()]

    async def create_document(self, collection, data, document_id=None, validate=True):
        if collection in self.fail_collections:
            return False, None, f"Write to {collection} failed"
        if validate:
            error = DatabaseService._validate(collection, data)
            if error:
                return False, None, error
        doc_id = document_id or data.get("id") or str(uuid.uuid4())
        payload = copy.deepcopy(data)
        payload.setdefault("id", doc_id)
        now = datetime.now(timezone.utc)
        payload.setdefault("created_at", now)
        payload.setdefault("updated_at", now)
        self._docs(collection)[doc_id] = payload
        self.created.append((collection, doc_id))
        return True, doc_id, None

    async def get_document(self, collection, document_id):
        doc = self._docs(collection).get(document_id)
        if doc is None:
            return False, None, f"Document {document_id} not found in {collection}"
        return True, self._out(document_id, doc), None

    async def query_documents(self, collection, filters=None, order_by=None, descending=False, limit=None):
        docs = apply_filters(self.all(collection), filters)
        if order_by:
            docs = sort_documents(docs, order_by, descending)
        if limit:
            docs = docs[:limit]
        return True, docs, None

    async def update_document(self, collection, document_id, data, validate=True):
        docs = self._docs(collection)
        if document_id not in docs:
            if validate:
                return False, f"Document {document_id} not found in {collection}"
            docs[document_id] = {"id": document_id}
        docs[document_id].update(copy.deepcopy(data))
        docs[document_id]["updated_at"] = datetime.now(timezone.utc)
        return True, None

    async def increment_field(self, collection, document_id, field, amount=1):
        doc = self._docs(collection).get(document_id)
        if doc is None:
            return False, "not found"
        doc[field] = doc.get(field, 0) + amount
        return True, None

    async def delete_document(self, collection, document_id):
        self._docs(collection).pop(document_id, None)
        self.deleted.append((collection, document_id))
        return True, None

    async def get_all_documents(self, collection):
        return self.all(collection)


class FakeEmailService:
    def __init__(self):
        self.sent = []

    async def send_verification_code(self, email, code, expires_in_minutes=10):
        self.sent.append(("verification_code", email, code))
        return True

    async def send_password_reset(self, email, link):
        self.sent.append(("password_reset", email, link))
        return True

    async def send_registration_complete(self, email, name, tag_number):
        self.sent.append(("registration_complete", email, tag_number))
        return True

    async def send_id_assigned_email(self, email, generated_id, id_type):
        self.sent.append(("id_assigned", email, generated_id))
        return True


class FakeAuth:
    def __init__(self, fail_create=False):
        self.fail_create = fail_create
        self.users = {}
        self.claims = {}
        self.deleted = []
        self.updated = {}

    async def create_user(self, email, password, display_name=None):
        if self.fail_create:
            raise Exception("User creation failed: EMAIL_EXISTS")
        uid = f"uid_{len(self.users) + 1}"
        self.users[uid] = {"email": email, "display_name": display_name}
        return {"uid": uid, "email": email}

    async def set_custom_claims(self, uid, claims):
        self.claims[uid] = claims

    async def delete_user(self, uid):
        self.deleted.append(uid)
        self.users.pop(uid, None)

    async def update_user(self, uid, **kwargs):
        self.updated.setdefault(uid, {}).update(kwargs)

    async def generate_password_reset_link(self, email):
        if any(u["email"] == email for u in self.users.values()):
            return f"https://example.test/reset?email={email}"
        return None


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def fake_email():
    return FakeEmailService()


@pytest.fixture
def fake_auth():
    return FakeAuth()
