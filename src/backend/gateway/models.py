from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_backend(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateAssessmentRequest(WireModel):
    template_id: str


class UpsertSubmissionRequest(WireModel):
    assessment_id: str
    requirement_id: str
    implementation_detail: str | None = None
    evidence_link: str | None = None


class ReviewSubmissionRequest(WireModel):
    status: Literal["COMPLIANT", "REJECTED"]
    review_note: str | None = None
