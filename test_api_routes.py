import pytest
from fastapi.testclient import TestClient

from training_portal.auth.dependencies import get_current_user
from training_portal.main import app
from training_portal.services.cbt_service import cbt_service
from training_portal.services.certificate_service import certificate_service
from training_portal.services.generated_id_service import generated_id_service
from training_portal.services.personnel_service import personnel_service
from training_portal.services.registration_service import registration_service

ADMIN = {"uid": "admin_1", "email": "admin@example.com", "role": "admin", "name": "Admin"}
TRAINEE = {"uid": "t1", "email": "ada@example.com", "role": "trainee", "name": "Ada Obi",
           "sponsor_id": "sp1", "tag_number": "TRN20250001"}


@pytest.fixture
def as_user():
    """Log the test client in as the given token payload."""
    current = {}
    app.dependency_overrides[get_current_user] = lambda: current["user"]

    def login(user):
        current["user"] = user

    yield login
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def client(fake_db, fake_email, monkeypatch):
    for service in (cbt_service, certificate_service, generated_id_service, personnel_service, registration_service):
        monkeypatch.setattr(service, "db", fake_db)
    monkeypatch.setattr(generated_id_service, "email_service", fake_email)
    monkeypatch.setattr(certificate_service, "cbt_service", cbt_service)
    fake_db.seed("trainees", "t1", {"trainee_id": "t1", "first_name": "Ada", "surname": "Obi",
                                    "email": "ada@example.com", "tag_number": "TRN20250001",
                                    "sponsor_id": "sp1", "is_active": True})
    fake_db.seed("trainees", "t2", {"trainee_id": "t2", "first_name": "Bola", "surname": "Ade",
                                    "email": "bola@example.com", "tag_number": "TRN20250002",
                                    "sponsor_id": "sp1", "is_active": True})
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["failed_routers"] == 0
    assert "storage_available" in response.json()


def test_protected_route_needs_a_token(client):
    response = client.get("/api/trainees/t1")
    assert response.status_code in (401, 403)


def test_trainee_reads_only_own_record(client, as_user):
    as_user(TRAINEE)

    response = client.get("/api/trainees/t1")
    assert response.status_code == 200
    assert response.json()["trainee"]["tag_number"] == "TRN20250001"

    response = client.get("/api/trainees/t2")
    assert response.status_code == 403


def test_trainee_cannot_list_trainees(client, as_user):
    as_user(TRAINEE)
    assert client.get("/api/trainees/").status_code == 403

    as_user(ADMIN)
    response = client.get("/api/trainees/", params={"sponsor_id": "sp1"})
    assert response.status_code == 200
    assert response.json()["count"] == 2


def test_generate_and_validate_ids(client, as_user):
    as_user(ADMIN)
    response = client.post("/api/generated-ids/generate", json={"id_type": "staff", "count": 2})
    assert response.status_code == 200
    assert response.json()["ids"] == ["ST-0C0S0S1", "ST-0C0S0S2"]

    response = client.post("/api/registration/validate-id", json={"generated_id": "st-0c0s0s2"})
    assert response.json() == {"generated_id": "ST-0C0S0S2", "valid": True, "message": "ID is available"}

    response = client.post("/api/generated-ids/ST-0C0S0S2/free", json={"reason": "test"})
    assert response.status_code == 400

    as_user(TRAINEE)
    response = client.post("/api/generated-ids/generate", json={"id_type": "staff", "count": 1})
    assert response.status_code == 403


def test_exam_flow_hides_answers_until_submitted(client, as_user):
    as_user(ADMIN)
    response = client.post("/api/cbt/exams", json={"title": "Safety", "duration": 20, "passing_score": 50})
    assert response.status_code == 200, response.text
    exam_id = response.json()["exam_id"]

    question_ids = []
    for correct in ["A", "B"]:
        response = client.post("/api/cbt/questions", json={
            "exam_id": exam_id, "question": f"Pick {correct}", "options": ["A", "B", "C"], "correct_answer": correct
        })
        assert response.status_code == 200, response.text
        question_ids.append(response.json()["question_id"])

    as_user(TRAINEE)
    response = client.post(f"/api/cbt/exams/{exam_id}/start")
    assert response.status_code == 200, response.text
    body = response.json()
    assert len(body["questions"]) == 2
    assert all("correct_answer" not in q for q in body["questions"])

    answers = {question_ids[0]: "A", question_ids[1]: "C"}
    response = client.post(f"/api/cbt/attempts/{body['attempt']['id']}/submit", json={"answers": answers})
    assert response.status_code == 200, response.text
    assert response.json()["result"]["score"] == 50
    assert response.json()["result"]["is_passed"] is True

    response = client.post(f"/api/cbt/exams/{exam_id}/start")
    assert response.status_code == 400
    assert response.json()["detail"] == "You have already taken this exam"

    assert client.get(f"/api/cbt/exams/{exam_id}/has-taken").json()["has_taken"] is True


def test_admin_only_question_bank(client, as_user):
    as_user(TRAINEE)
    response = client.post("/api/cbt/questions", json={"question": "Q", "correct_answer": "A", "options": ["A", "B"]})
    assert response.status_code == 403


def test_certificate_issue_and_public_verify(client, as_user):
    assert client.get("/api/certificates/verify/CERT-NOPE-000000").status_code == 404

    as_user(ADMIN)
    response = client.post("/api/certificates/issue", json={"trainee_ids": ["t1"], "title": "Welding Level 1"})
    assert response.status_code == 200, response.text
    certificate_id = response.json()["issued"][0]["id"]

    app.dependency_overrides.pop(get_current_user, None)
    response = client.get(f"/api/certificates/verify/{certificate_id.lower()}")
    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["trainee_name"] == "Ada Obi"


def test_hidden_results_stay_hidden_after_submit(client, as_user):
    as_user(ADMIN)
    response = client.post("/api/cbt/exams", json={"title": "Maths", "duration": 10, "show_results": False})
    exam_id = response.json()["exam_id"]
    response = client.post("/api/cbt/questions", json={
        "exam_id": exam_id, "question": "2+2", "question_type": "fill_blank", "correct_answer": "four,4"
    })
    assert response.status_code == 200, response.text

    as_user(TRAINEE)
    attempt_id = client.post(f"/api/cbt/exams/{exam_id}/start").json()["attempt"]["id"]
    response = client.post(f"/api/cbt/attempts/{attempt_id}/submit", json={"answers": {}})
    assert response.status_code == 200, response.text
    assert "question_results" not in response.json()["result"]

    attempt = client.get(f"/api/cbt/attempts/{attempt_id}").json()["attempt"]
    assert attempt["score"] == 0
    assert "question_results" not in attempt
    assert "question_results" not in client.get(f"/api/cbt/exams/{exam_id}/my-attempt").json()["attempt"]
    assert all("question_results" not in a for a in client.get("/api/cbt/attempts").json()["attempts"])

    as_user(dict(TRAINEE, uid="t2", email="bola@example.com"))
    assert client.get(f"/api/cbt/attempts/{attempt_id}").status_code == 403

    as_user(ADMIN)
    attempt = client.get(f"/api/cbt/attempts/{attempt_id}").json()["attempt"]
    assert attempt["question_results"][0]["correct_answer"] == "four,4"


def test_trainee_progress_is_owner_or_personnel(client, as_user, fake_db, monkeypatch):
    from training_portal.services.content_service import content_service
    monkeypatch.setattr(content_service, "db", fake_db)

    as_user(TRAINEE)
    assert client.get("/api/content/progress/t1").status_code == 200
    assert client.get("/api/content/progress/t2").status_code == 403

    as_user(dict(ADMIN, role="resource_person"))
    assert client.get("/api/content/progress/t2").status_code == 200


def test_evaluation_questionnaire_routes(client, as_user, fake_db, monkeypatch):
    from training_portal.services.evaluation_service import evaluation_service
    monkeypatch.setattr(evaluation_service, "db", fake_db)

    as_user(TRAINEE)
    assert client.post("/api/evaluations/questions", json={"question": "Useful?"}).status_code == 403

    as_user(ADMIN)
    response = client.post("/api/evaluations/questions", json={"question": "Useful?", "is_published": True})
    assert response.status_code == 200, response.text
    question_id = response.json()["question_id"]
    client.post("/api/evaluations/questions", json={"question": "Draft", "type": "expression"})

    as_user(TRAINEE)
    assert client.get("/api/evaluations/questions").json()["count"] == 1
    response = client.post("/api/evaluations/responses", json={"responses": [{"question_id": question_id, "answer": "Yes"}]})
    assert response.status_code == 200, response.text
    assert client.get("/api/evaluations/status").json()["has_submitted"] is True
    assert client.get("/api/evaluations/responses").status_code == 403

    as_user(ADMIN)
    [row] = client.get("/api/evaluations/responses").json()["responses"]
    assert row["answer"] == "yes"
    assert row["trainee_email"] == "ada@example.com"
