import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, Header, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .forwarder import BackendForwarder
from .models import CreateAssessmentRequest, ReviewSubmissionRequest, UpsertSubmissionRequest

load_dotenv()

# ── configurable via .env ──
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:3001")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)-8s %(name)s: %(message)s")

app = FastAPI(title="Compliance Portal API Gateway", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS, allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

backend = BackendForwarder(BACKEND_URL)


@app.get("/health")
def health():
    return {"status": "ok", "backend_url": backend.base_url}


# ============== Assessments ==============

@app.get("/api/assessments")
def list_assessments(authorization: str | None = Header(None)):
    """Fetch all assessments for the current user."""
    return backend.forward("GET", "/assessments", authorization,
                           error="Failed to fetch assessments")


@app.post("/api/assessments")
def create_assessment(req: CreateAssessmentRequest, authorization: str | None = Header(None)):
    """Create a new assessment from a template."""
    return backend.forward("POST", "/assessments", authorization, json=req.to_backend(),
                           status_code=201, error="Failed to create assessment")


@app.get("/api/assessments/{assessment_id}")
def get_assessment(assessment_id: str, authorization: str | None = Header(None)):
    return backend.forward("GET", f"/assessments/{assessment_id}", authorization,
                           error="Failed to fetch assessment")


# ============== Submissions ==============

@app.put("/api/submissions")
def upsert_submission(req: UpsertSubmissionRequest, authorization: str | None = Header(None)):
    """Create or update the submission for an assessment requirement."""
    return backend.forward("PUT", "/submissions", authorization, json=req.to_backend(),
                           error="Failed to update submission")


@app.put("/api/submissions/{submission_id}/review")
def review_submission(submission_id: str, req: ReviewSubmissionRequest,
                      authorization: str | None = Header(None)):
    """Review a submission. The backend only allows this for admins."""
    return backend.forward("PUT", f"/submissions/{submission_id}/review", authorization,
                           json=req.to_backend(), error="Failed to review submission")


# ============== Templates ==============

@app.get("/api/templates")
def list_templates(authorization: str | None = Header(None)):
    return backend.forward("GET", "/templates", authorization,
                           error="Failed to fetch templates")


@app.get("/api/templates/{template_id}")
def get_template(template_id: str, authorization: str | None = Header(None)):
    return backend.forward("GET", f"/templates/{template_id}", authorization,
                           error="Failed to fetch template")


@app.post("/api/templates/upload")
def upload_template(file: UploadFile | None = File(None), title: str | None = Form(None),
                    authorization: str | None = Header(None)):
    """Forward a PDF upload; the backend answers before processing is done."""
    if file is None:
        return JSONResponse({"error": "No file provided"}, status_code=400)

    files = {"file": (file.filename, file.file.read(), file.content_type or "application/pdf")}
    data = {"title": title} if title else None
    return backend.forward("POST", "/templates/upload", authorization, files=files, data=data,
                           status_code=202, error="Failed to upload template")
