from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


TemplateStatus = Literal["PROCESSING", "AVAILABLE", "FAILED"]
AssessmentStatus = Literal["IN_PROGRESS", "SUBMITTED", "REVIEWED"]
SubmissionStatus = Literal["PENDING", "COMPLIANT", "REJECTED"]
ReviewStatus = Literal["COMPLIANT", "REJECTED"]

ADMIN_ROLE = "ADMIN"


class WireModel(BaseModel):
    # backend speaks camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Requirement(WireModel):
    id: str
    title: str
    description: str = ""


class Category(WireModel):
    id: str
    name: str
    requirements: list[Requirement] = []


class Template(WireModel):
    id: str
    title: str
    status: TemplateStatus
    categories_count: int | None = None
    requirements_count: int | None = None
    created_at: str | None = None


class TemplateDetail(Template):
    categories: list[Category] = []


class Submission(WireModel):
    id: str
    requirement_id: str
    implementation_detail: str | None = None
    evidence_link: str | None = None
    status: SubmissionStatus = "PENDING"


class Assessment(WireModel):
    id: str
    user_id: str
    template_id: str
    status: AssessmentStatus
    submissions: list[Submission] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AuthUser(BaseModel):
    id: str
    email: str = ""
    role: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class AuthToken(BaseModel):
    access_token: str
    user: AuthUser
