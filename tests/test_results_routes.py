"""Study history endpoints."""
import pytest

from conftest import make_analysis_payload
from studia.models.study_result import StudyResult
from studia.schemas.study import AnalysisResult
from studia.services.study_results import save_study_result

U1 = {"Authorization": "Bearer token-u1"}
U2 = {"Authorization": "Bearer token-u2"}


@pytest.fixture()
def saved(db_session):
    """Two results for u1 and one for u2."""
    db_session.query(StudyResult).delete()
    db_session.commit()

    result = AnalysisResult.model_validate(make_analysis_payload(2))
    rows = [
        save_study_result(db_session, user_id="u1", file_name="a.pdf", storage_path="u1/a.pdf", result=result),
        save_study_result(db_session, user_id="u1", file_name="b.pdf", storage_path="u1/b.pdf", result=result),
        save_study_result(db_session, user_id="u2", file_name="c.pdf", storage_path="u2/c.pdf", result=result),
    ]
    return [row.id for row in rows]


def test_list_newest_first_and_scoped_to_caller(client, verifier, saved):
    resp = client.get("/api/results", headers=U1)
    assert resp.status_code == 200
    data = resp.json()
    assert [r["file_name"] for r in data] == ["b.pdf", "a.pdf"]
    assert all(r["user_id"] == "u1" for r in data)
    assert len(data[0]["hard_quiz"]) == 2
    assert data[0]["key_concepts"][0]["term"] == "Term 0"


def test_get_single_result(client, verifier, saved):
    resp = client.get(f"/api/results/{saved[0]}", headers=U1)
    assert resp.status_code == 200
    assert resp.json()["storage_path"] == "u1/a.pdf"


def test_other_users_result_is_not_found(client, verifier, saved):
    assert client.get(f"/api/results/{saved[2]}", headers=U1).status_code == 404
    assert client.delete(f"/api/results/{saved[2]}", headers=U1).status_code == 404


def test_delete(client, verifier, saved, db_session):
    resp = client.delete(f"/api/results/{saved[0]}", headers=U1)
    assert resp.status_code == 204
    assert client.get(f"/api/results/{saved[0]}", headers=U1).status_code == 404
    db_session.expire_all()
    assert db_session.query(StudyResult).filter(StudyResult.user_id == "u1").count() == 1


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nope"}])
def test_requires_valid_token(client, verifier, headers):
    resp = client.get("/api/results", headers=headers)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
