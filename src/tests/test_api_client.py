"""
Unit tests for portal/api_client.py

Covers:
  - URL building and bearer header
  - request bodies (camelCase, optional reviewNote, multipart upload)
  - HTTP errors propagate
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from conftest import assessment_payload
from portal.api_client import PortalClient
from portal.session import Session


def _response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


@pytest.fixture
def client(user_session):
    return PortalClient(user_session)


class TestRequests:
    def test_defaults_from_env(self, client):
        assert client.base_url == "http://gateway.test"
        assert client.timeout == 15

    @patch("portal.api_client.requests.get")
    def test_get_assessment(self, mock_get, client):
        mock_get.return_value = _response(assessment_payload())

        a = client.get_assessment("asm-1")

        assert a.id == "asm-1"
        url = mock_get.call_args[0][0]
        assert url == "http://gateway.test/api/assessments/asm-1"
        assert mock_get.call_args[1]["headers"] == {"Authorization": "Bearer tok-123"}
        assert mock_get.call_args[1]["timeout"] == 15

    @patch("portal.api_client.requests.get")
    def test_no_token_no_header(self, mock_get):
        mock_get.return_value = _response([])
        PortalClient(Session({}).init()).list_templates()
        assert mock_get.call_args[1]["headers"] == {}

    @patch("portal.api_client.requests.post")
    def test_create_assessment(self, mock_post, client):
        mock_post.return_value = _response(assessment_payload(id="asm-2"))

        a = client.create_assessment("tpl-1")

        assert a.id == "asm-2"
        assert mock_post.call_args[0][0] == "http://gateway.test/api/assessments"
        assert mock_post.call_args[1]["json"] == {"templateId": "tpl-1"}


class TestSubmissions:
    @patch("portal.api_client.requests.put")
    def test_upsert_body(self, mock_put, client):
        mock_put.return_value = _response({"id": "sub-1"})

        client.upsert_submission("asm-1", "req-1", implementation_detail="MFA", evidence_link="")

        assert mock_put.call_args[0][0] == "http://gateway.test/api/submissions"
        assert mock_put.call_args[1]["json"] == {
            "assessmentId": "asm-1",
            "requirementId": "req-1",
            "implementationDetail": "MFA",
            "evidenceLink": "",
        }

    @patch("portal.api_client.requests.put")
    def test_review_without_note(self, mock_put, client):
        mock_put.return_value = _response({})
        client.review_submission("sub-1", "REJECTED")
        assert mock_put.call_args[0][0] == "http://gateway.test/api/submissions/sub-1/review"
        assert mock_put.call_args[1]["json"] == {"status": "REJECTED"}

    @patch("portal.api_client.requests.put")
    def test_review_with_note(self, mock_put, client):
        mock_put.return_value = _response({})
        client.review_submission("sub-1", "COMPLIANT", review_note="Looks good")
        assert mock_put.call_args[1]["json"] == {"status": "COMPLIANT", "reviewNote": "Looks good"}

    @patch("portal.api_client.requests.put")
    def test_http_error_propagates(self, mock_put, client):
        resp = _response({})
        resp.raise_for_status.side_effect = requests.HTTPError("500")
        mock_put.return_value = resp
        with pytest.raises(requests.HTTPError):
            client.review_submission("sub-1", "COMPLIANT")


class TestTemplates:
    @patch("portal.api_client.requests.post")
    def test_upload_multipart(self, mock_post, client):
        mock_post.return_value = _response({"id": "tpl-9", "title": "SOC 2", "status": "PROCESSING"})

        t = client.upload_template("soc2.pdf", b"%PDF", "SOC 2")

        assert t.status == "PROCESSING"
        kwargs = mock_post.call_args[1]
        assert mock_post.call_args[0][0] == "http://gateway.test/api/templates/upload"
        assert kwargs["files"] == {"file": ("soc2.pdf", b"%PDF", "application/pdf")}
        assert kwargs["data"] == {"title": "SOC 2"}

    @patch("portal.api_client.requests.get")
    def test_list_templates(self, mock_get, client, template_payload):
        mock_get.return_value = _response([template_payload])
        templates = client.list_templates()
        assert templates[0].requirements_count == 3
