"""
Shared fixtures for unit and integration tests.
"""

import os
import sys
import copy
import jwt
import pytest
from unittest.mock import MagicMock

# ── Ensure gateway / portal packages are importable without installing ──
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(ROOT, "backend"))
sys.path.insert(0, os.path.join(ROOT, "frontend"))

# ── Fake .env values used by every test ──
ENV_DEFAULTS = {
    "BACKEND_URL": "http://backend.test",
    "PROXY_TIMEOUT": "10",
    "CORS_ORIGINS": "*",
    "LOG_LEVEL": "DEBUG",
    "API_BASE": "http://gateway.test",
    "REQUEST_TIMEOUT": "15",
    "PUSHER_KEY": "test-key",
    "PUSHER_CLUSTER": "eu",
    "TEMPLATE_POLL_SECONDS": "5",
}

TEMPLATE_PAYLOAD = {
    "id": "tpl-1",
    "title": "ISO 27001 Controls",
    "status": "AVAILABLE",
    "categoriesCount": 2,
    "requirementsCount": 3,
    "categories": [
        {
            "id": "cat-1",
            "name": "Access Control",
            "requirements": [
                {"id": "req-1", "title": "Password policy",
                 "description": "Passwords must be at least 12 characters."},
                {"id": "req-2", "title": "Multi-factor authentication",
                 "description": "MFA is enforced for privileged accounts."},
            ],
        },
        {
            "id": "cat-2",
            "name": "Cryptography",
            "requirements": [
                {"id": "req-3", "title": "Data in transit",
                 "description": "All traffic is encrypted with TLS 1.2 or higher."},
            ],
        },
    ],
}


@pytest.fixture(autouse=True)
def mock_env(monkeypatch):
    """Inject all required env vars so modules never blow up on import."""
    for k, v in ENV_DEFAULTS.items():
        monkeypatch.setenv(k, v)


def make_token(claims: dict, secret: str = "not-the-backend-secret") -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def assessment_payload(submissions=None, **overrides) -> dict:
    data = {
        "id": "asm-1",
        "userId": "user-1",
        "templateId": "tpl-1",
        "status": "IN_PROGRESS",
        "submissions": submissions if submissions is not None else [],
    }
    data.update(overrides)
    return data


@pytest.fixture
def template_payload():
    return copy.deepcopy(TEMPLATE_PAYLOAD)


def _session(role: str):
    from portal.models import AuthToken, AuthUser
    from portal.session import Session

    session = Session({}).init()
    session.sign_in(AuthToken(
        access_token="tok-123",
        user=AuthUser(id="user-1", email=f"{role.lower()}@example.com", role=role),
    ))
    return session


@pytest.fixture
def user_session():
    return _session("USER")


@pytest.fixture
def admin_session():
    return _session("ADMIN")


@pytest.fixture
def mock_portal_client(template_payload):
    """A MagicMock standing in for PortalClient, serving one assessment + template."""
    from portal.models import Assessment, TemplateDetail

    client = MagicMock()
    client.get_assessment.return_value = Assessment.model_validate(assessment_payload())
    client.get_template.return_value = TemplateDetail.model_validate(template_payload)
    return client


@pytest.fixture
def make_form(mock_portal_client, user_session):
    """Build and load an AssessmentForm over the given submissions."""
    from portal.assessment_form import AssessmentForm
    from portal.models import Assessment
    from portal.query_cache import QueryCache

    def _make(submissions=None, session=None):
        mock_portal_client.get_assessment.return_value = Assessment.model_validate(
            assessment_payload(submissions)
        )
        form = AssessmentForm("asm-1", mock_portal_client, QueryCache(), session or user_session)
        form.load()
        return form

    return _make
