import os

import requests
from dotenv import load_dotenv

from .models import Assessment, ReviewStatus, Template, TemplateDetail
from .session import Session

load_dotenv()


class PortalClient:
    """HTTP client for the gateway's /api routes.

    Every call carries the session's bearer token when there is one. Non-2xx
    responses raise ``requests.HTTPError``; transport problems raise the usual
    ``requests`` exceptions.
    """

    def __init__(self, session: Session, base_url: str = None, timeout: int = None):
        self.session = session
        self.base_url = (base_url or os.getenv("API_BASE", "http://localhost:8000")).rstrip("/")
        self.timeout = timeout or int(os.getenv("REQUEST_TIMEOUT", "30"))

    def _headers(self) -> dict:
        token = self.session.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def _get(self, path: str):
        r = requests.get(self._url(path), headers=self._headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _put(self, path: str, body: dict):
        r = requests.put(self._url(path), json=body, headers=self._headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # ── assessments ──
    def list_assessments(self) -> list[Assessment]:
        return [Assessment.model_validate(a) for a in self._get("/assessments")]

    def get_assessment(self, assessment_id: str) -> Assessment:
        return Assessment.model_validate(self._get(f"/assessments/{assessment_id}"))

    def create_assessment(self, template_id: str) -> Assessment:
        r = requests.post(self._url("/assessments"), json={"templateId": template_id},
                          headers=self._headers(), timeout=self.timeout)
        r.raise_for_status()
        return Assessment.model_validate(r.json())

    # ── submissions ──
    def upsert_submission(self, assessment_id: str, requirement_id: str,
                          implementation_detail: str, evidence_link: str) -> dict:
        return self._put("/submissions", {
            "assessmentId": assessment_id,
            "requirementId": requirement_id,
            "implementationDetail": implementation_detail,
            "evidenceLink": evidence_link,
        })

    def review_submission(self, submission_id: str, status: ReviewStatus,
                          review_note: str | None = None) -> dict:
        body = {"status": status}
        if review_note:
            body["reviewNote"] = review_note
        return self._put(f"/submissions/{submission_id}/review", body)

    # ── templates ──
    def list_templates(self) -> list[Template]:
        return [Template.model_validate(t) for t in self._get("/templates")]

    def get_template(self, template_id: str) -> TemplateDetail:
        return TemplateDetail.model_validate(self._get(f"/templates/{template_id}"))

    def upload_template(self, filename: str, content: bytes, title: str) -> Template:
        r = requests.post(
            self._url("/templates/upload"),
            files={"file": (filename, content, "application/pdf")},
            data={"title": title},
            headers=self._headers(),
            timeout=self.timeout,
        )
        r.raise_for_status()
        return Template.model_validate(r.json())
