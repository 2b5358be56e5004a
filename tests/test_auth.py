import jwt
import pytest

from allocatr.api.auth import Principal, TokenVerifier
from allocatr.models.entities import UserRole


class TestTokenVerifier:
    def test_issued_token_round_trips(self, verifier):
        token = verifier.issue("eng-1", UserRole.ENGINEER)
        assert verifier.verify(token) == Principal(user_id="eng-1", role=UserRole.ENGINEER)

    def test_wrong_secret_rejected(self, verifier):
        token = TokenVerifier("other-secret").issue("eng-1", UserRole.MANAGER)
        with pytest.raises(jwt.InvalidTokenError):
            verifier.verify(token)

    def test_unknown_role_rejected(self, verifier):
        token = jwt.encode({"sub": "x", "role": "admin"}, "test-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verifier.verify(token)

    def test_user_id_claim_accepted(self, verifier):
        token = jwt.encode({"userId": "eng-1", "role": "engineer"}, "test-secret", algorithm="HS256")
        assert verifier.verify(token) == Principal(user_id="eng-1", role=UserRole.ENGINEER)

    def test_user_id_claim_preferred_over_sub(self, verifier):
        token = jwt.encode({"userId": "eng-1", "sub": "other", "role": "manager"}, "test-secret", algorithm="HS256")
        assert verifier.verify(token).user_id == "eng-1"

    def test_missing_subject_rejected(self, verifier):
        token = jwt.encode({"role": "manager"}, "test-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verifier.verify(token)


class TestAuthDependencies:
    """Authentication and role checks through the HTTP layer."""

    def test_missing_token_is_401(self, client):
        response = client.get("/api/engineers/")
        assert response.status_code == 401

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/engineers/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_engineer_cannot_create_projects(self, client, engineer_headers):
        payload = {
            "name": "X",
            "description": "Y",
            "start_date": "2024-01-01",
            "end_date": "2024-02-01",
            "team_size": 1,
        }
        response = client.post("/api/projects/", json=payload, headers=engineer_headers)
        assert response.status_code == 403

    def test_engineer_cannot_read_someone_else(self, client, engineer_headers):
        response = client.get("/api/engineers/eng-2", headers=engineer_headers)
        assert response.status_code == 403
