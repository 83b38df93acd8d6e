"""Assessment form: selection, edit/review buffers and the actions on them.

Everything the view shows is recomputed by ``derive_view`` from the fetched
assessment and template plus local state. Server data is only ever read
through the query cache; ``save`` and ``complete_review`` invalidate it and
the next ``load`` re-fetches.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum

import requests
from pydantic import ValidationError

from .api_client import PortalClient
from .errors import ActionInProgress, FormValidationError, RequestFailed
from .models import (
    Assessment, Category, Requirement, ReviewStatus, Submission,
    SubmissionStatus, TemplateDetail,
)
from .query_cache import ASSESSMENTS, QueryCache, assessment_key, template_key
from .session import Session

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("implementation_detail", "evidence_link")
REVIEWED_STATUSES = {"COMPLIANT", "REJECTED"}


class StatusDot(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    IN_REVIEW = "in_review"
    COMPLIANT = "compliant"
    REJECTED = "rejected"


@dataclass
class FormEntry:
    implementation_detail: str = ""
    evidence_link: str = ""
    status: SubmissionStatus = "PENDING"

    @property
    def has_data(self) -> bool:
        return bool(self.implementation_detail or self.evidence_link)


@dataclass
class ReviewEntry:
    review_status: ReviewStatus | None = None
    review_note: str = ""


@dataclass(frozen=True)
class FormView:
    category: Category | None = None
    requirement: Requirement | None = None
    submission: Submission | None = None
    current_status: SubmissionStatus | None = None
    has_submission: bool = False
    is_pending_submission: bool = False
    show_review_button: bool = False
    can_review: bool = False
    can_save: bool = True


# ---------- Derivations ----------
def seed_form_data(submissions: list[Submission]) -> dict[str, FormEntry]:
    return {
        s.requirement_id: FormEntry(
            implementation_detail=s.implementation_detail or "",
            evidence_link=s.evidence_link or "",
            status=s.status or "PENDING",
        )
        for s in submissions
    }


def select_category(template: TemplateDetail | None, category_id: str | None) -> Category | None:
    if template is None or not template.categories:
        return None
    for c in template.categories:
        if c.id == category_id:
            return c
    return template.categories[0]


def select_requirement(category: Category | None, requirement_id: str | None) -> Requirement | None:
    if category is None or not category.requirements:
        return None
    for r in category.requirements:
        if r.id == requirement_id:
            return r
    return category.requirements[0]


def find_submission(assessment: Assessment | None, requirement_id: str) -> Submission | None:
    if assessment is None or not assessment.submissions:
        return None
    return next((s for s in assessment.submissions if s.requirement_id == requirement_id), None)


def status_dot(entry: FormEntry | None, is_active: bool) -> StatusDot:
    if entry is None or not entry.has_data:
        return StatusDot.ACTIVE if is_active else StatusDot.IDLE
    if entry.status == "COMPLIANT":
        return StatusDot.COMPLIANT
    if entry.status == "REJECTED":
        return StatusDot.REJECTED
    return StatusDot.IN_REVIEW


def derive_view(
    assessment: Assessment | None,
    template: TemplateDetail | None,
    *,
    is_admin: bool,
    selected_category_id: str | None,
    selected_requirement_id: str | None,
    form_data: dict[str, FormEntry],
    show_review_panel: bool,
) -> FormView:
    category = select_category(template, selected_category_id)
    requirement = select_requirement(category, selected_requirement_id)
    if requirement is None:
        return FormView(category=category)

    submission = find_submission(assessment, requirement.id)
    entry = form_data.get(requirement.id)
    current_status = entry.status if entry else None
    has_submission = submission is not None
    is_pending = is_admin and has_submission and current_status == "PENDING"

    return FormView(
        category=category,
        requirement=requirement,
        submission=submission,
        current_status=current_status,
        has_submission=has_submission,
        is_pending_submission=is_pending,
        show_review_button=is_admin and (show_review_panel or is_pending),
        can_review=is_admin and show_review_panel,
        can_save=current_status not in REVIEWED_STATUSES,
    )


# ---------- State machine ----------
class AssessmentForm:
    def __init__(self, assessment_id: str, client: PortalClient, cache: QueryCache, session: Session):
        self.assessment_id = assessment_id
        self.client = client
        self.cache = cache
        self.session = session

        self.assessment: Assessment | None = None
        self.template: TemplateDetail | None = None

        self.selected_category_id: str | None = None
        self.selected_requirement_id: str | None = None
        self.show_review_panel = False
        self.form_data: dict[str, FormEntry] = {}
        self.review_data: dict[str, ReviewEntry] = {}

        self.is_saving = False
        self.is_reviewing = False
        self._seeded = False

    @property
    def is_admin(self) -> bool:
        return self.session.is_admin

    @property
    def view(self) -> FormView:
        return derive_view(
            self.assessment,
            self.template,
            is_admin=self.is_admin,
            selected_category_id=self.selected_category_id,
            selected_requirement_id=self.selected_requirement_id,
            form_data=self.form_data,
            show_review_panel=self.show_review_panel,
        )

    def load(self) -> None:
        """Read assessment and template through the cache (re-fetching if invalidated)."""
        try:
            self.assessment = self.cache.fetch(
                assessment_key(self.assessment_id),
                lambda: self.client.get_assessment(self.assessment_id),
            )
            template_id = self.assessment.template_id
            self.template = self.cache.fetch(
                template_key(template_id),
                lambda: self.client.get_template(template_id),
            )
        except (requests.RequestException, ValidationError) as e:
            logger.exception("Failed to load assessment %s", self.assessment_id)
            raise RequestFailed("Failed to load assessment") from e

        # edits survive background refetches; only the first load seeds them
        if not self._seeded and self.assessment.submissions is not None:
            self._seeded = True
            self.form_data = seed_form_data(self.assessment.submissions)
        self._run_effects()

    def _run_effects(self) -> None:
        if not self.show_review_panel:
            return
        status = self.view.current_status
        if status is not None and status != "PENDING":
            self.show_review_panel = False

    # ── selection ──
    def select_category(self, category_id: str) -> None:
        self.selected_category_id = category_id
        self.selected_requirement_id = None
        self._run_effects()

    def select_requirement(self, requirement_id: str) -> None:
        self.selected_requirement_id = requirement_id
        self._run_effects()

    def toggle_review_panel(self) -> None:
        if not self.is_admin:
            return
        self.show_review_panel = not self.show_review_panel
        self._run_effects()

    # ── edit buffers ──
    def entry_for(self, requirement_id: str) -> FormEntry:
        return self.form_data.get(requirement_id) or FormEntry()

    def dot_for(self, requirement_id: str) -> StatusDot:
        active = self.view.requirement
        is_active = active is not None and active.id == requirement_id
        return status_dot(self.form_data.get(requirement_id), is_active)

    def update_field(self, requirement_id: str, field: str, value: str) -> None:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown field: {field}")
        self.form_data[requirement_id] = replace(self.entry_for(requirement_id), **{field: value})
        self._run_effects()

    @property
    def current_review(self) -> ReviewEntry:
        submission = self.view.submission
        if submission is None:
            return ReviewEntry()
        return self.review_data.get(submission.id) or ReviewEntry()

    def set_review(self, status: ReviewStatus | None = None, note: str | None = None) -> None:
        submission = self.view.submission
        if submission is None:
            return
        patch = {}
        if status is not None:
            patch["review_status"] = status
        if note is not None:
            patch["review_note"] = note
        self.review_data[submission.id] = replace(self.current_review, **patch)

    # ── actions ──
    def save(self, requirement_id: str | None = None) -> None:
        if requirement_id is None:
            requirement = self.view.requirement
            if requirement is None:
                raise FormValidationError("Select a requirement first")
            requirement_id = requirement.id

        entry = self.form_data.get(requirement_id)
        if entry is None or not entry.has_data:
            raise FormValidationError("Please fill in at least one field")
        if entry.status in REVIEWED_STATUSES:
            raise FormValidationError("This requirement has already been reviewed")
        if self.is_saving:
            raise ActionInProgress("A save is already in progress")

        self.is_saving = True
        try:
            self.client.upsert_submission(
                self.assessment_id,
                requirement_id,
                implementation_detail=entry.implementation_detail,
                evidence_link=entry.evidence_link,
            )
        except requests.RequestException as e:
            logger.exception("Failed to save submission for requirement %s", requirement_id)
            raise RequestFailed("Failed to save submission") from e
        finally:
            self.is_saving = False

        # covers this assessment and the list
        self.cache.invalidate(ASSESSMENTS)

    def complete_review(self) -> None:
        if not self.is_admin:
            raise FormValidationError("Only administrators can review submissions")
        submission = self.view.submission
        if submission is None:
            raise FormValidationError("This requirement has no submission yet")
        review = self.current_review
        if not review.review_status:
            raise FormValidationError("Please select a review status")
        if self.is_reviewing:
            raise ActionInProgress("A review is already in progress")

        self.is_reviewing = True
        try:
            self.client.review_submission(
                submission.id,
                review.review_status,
                review_note=review.review_note or None,
            )
        except requests.RequestException as e:
            logger.exception("Failed to review submission %s", submission.id)
            raise RequestFailed("Failed to submit review") from e
        finally:
            self.is_reviewing = False

        # show the outcome before the refetch lands
        self.form_data[submission.requirement_id] = replace(
            self.entry_for(submission.requirement_id), status=review.review_status
        )
        self.cache.invalidate(ASSESSMENTS)
        self._run_effects()
