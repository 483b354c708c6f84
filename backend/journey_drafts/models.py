"""Authoring-side domain model for an in-progress training journey draft."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

SECTION_TYPE_ALIASES = {
    "youtube": "video",
    "interactive": "document",
    "pdf": "document",
    "word": "document",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DraftModel(BaseModel):
    """Base for draft models: snake_case attributes, camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_tree(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Company(DraftModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = ""
    industry: Optional[str] = None
    size: Optional[str] = None
    setup_complete: bool = False


class TrainingMethodology(DraftModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = ""
    description: str = ""


class ContentUpload(DraftModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str
    type: Literal["document", "video", "audio", "presentation", "image"] = "document"
    size: int = Field(default=0, ge=0)
    uploaded_at: Optional[str] = None
    status: Literal["uploading", "processing", "analyzed", "error"] = "uploading"
    error: Optional[str] = None


class TrainingJourney(DraftModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    company_id: Optional[str] = None
    name: str = ""
    title: Optional[str] = None
    description: str = ""
    industry: Optional[str] = None
    vision: Optional[str] = None
    status: Literal["draft", "rehearsal", "active", "completed", "archived"] = "draft"
    target_roles: List[str] = Field(default_factory=list)
    estimated_duration: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def display_title(self) -> str:
        return self.title or self.name


class ContentFile(DraftModel):
    id: Optional[str] = None
    name: str = ""
    type: Optional[str] = None
    url: Optional[str] = None
    storage_key: Optional[str] = None
    mime_type: Optional[str] = None
    size: int = Field(default=0, ge=0)


class DocumentSectionContent(DraftModel):
    text: str = ""
    file: Optional[ContentFile] = None
    key_points: List[str] = Field(default_factory=list)


class TextSectionContent(DraftModel):
    text: str = ""
    key_points: List[str] = Field(default_factory=list)


class VideoSectionContent(DraftModel):
    youtube_url: Optional[str] = None
    file: Optional[ContentFile] = None
    key_points: List[str] = Field(default_factory=list)


class _SectionBase(DraftModel):
    id: Optional[str] = None
    title: str = ""
    estimated_duration: int = Field(default=10, ge=0, description="Minutes")


class DocumentSection(_SectionBase):
    type: Literal["document"] = "document"
    content: DocumentSectionContent = Field(default_factory=DocumentSectionContent)


class TextSection(_SectionBase):
    type: Literal["text"] = "text"
    content: TextSectionContent = Field(default_factory=TextSectionContent)


class VideoSection(_SectionBase):
    type: Literal["video"] = "video"
    content: VideoSectionContent = Field(default_factory=VideoSectionContent)


Section = Annotated[
    Union[DocumentSection, TextSection, VideoSection],
    Field(discriminator="type"),
]


class _QuestionBase(DraftModel):
    id: Optional[str] = None
    text: str = ""
    explanation: str = ""
    points: int = Field(default=1, ge=0)


class MultipleChoiceQuestion(_QuestionBase):
    type: Literal["multiple-choice"] = "multiple-choice"
    options: List[str] = Field(default_factory=list)
    correct_answer: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _answer_in_range(self) -> "MultipleChoiceQuestion":
        if self.options and self.correct_answer >= len(self.options):
            raise ValueError(
                f"correct_answer {self.correct_answer} is outside the {len(self.options)} options"
            )
        return self


class TrueFalseQuestion(_QuestionBase):
    type: Literal["true-false"] = "true-false"
    correct_answer: bool = True


class MultipleCorrectQuestion(_QuestionBase):
    type: Literal["multiple-correct"] = "multiple-correct"
    options: List[str] = Field(default_factory=list)
    correct_answer: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _answers_in_range(self) -> "MultipleCorrectQuestion":
        out_of_range = [index for index in self.correct_answer if not 0 <= index < len(self.options)]
        if out_of_range:
            raise ValueError(f"correct_answer indices {out_of_range} are outside the options")
        return self


Question = Annotated[
    Union[MultipleChoiceQuestion, TrueFalseQuestion, MultipleCorrectQuestion],
    Field(discriminator="type"),
]

_QUESTION_TYPES = {"multiple-choice", "true-false", "multiple-correct"}


class Assessment(DraftModel):
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    type: Literal["quiz", "practical", "project"] = "quiz"
    questions: List[Question] = Field(default_factory=list)
    passing_score: int = Field(default=70, ge=0, le=100)
    time_limit: Optional[int] = Field(default=None, ge=1, description="Minutes; None is unlimited")
    max_attempts: int = Field(default=3, ge=1)

    @field_validator("questions", mode="before")
    @classmethod
    def _drop_unsupported_questions(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for entry in value:
            if isinstance(entry, dict):
                kind = entry.get("type", "multiple-choice")
                if kind not in _QUESTION_TYPES:
                    logger.warning("Skipping question with unsupported type %r", kind)
                    continue
                entry = {**entry, "type": kind}
            kept.append(entry)
        return kept


class TrainingModule(DraftModel):
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    duration: float = Field(default=0.0, ge=0, description="Hours")
    difficulty: Literal["beginner", "intermediate", "advanced"] = "beginner"
    learning_objectives: List[str] = Field(default_factory=list)
    prerequisites: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)
    sections: List[Section] = Field(default_factory=list)
    assessments: List[Assessment] = Field(default_factory=list)

    @field_validator("sections", mode="before")
    @classmethod
    def _coerce_section_types(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        coerced = []
        for entry in value:
            if isinstance(entry, dict):
                kind = str(entry.get("type") or "document")
                entry = {**entry, "type": SECTION_TYPE_ALIASES.get(kind, kind)}
            coerced.append(entry)
        return coerced


class JourneyDraft(DraftModel):
    """The unit of persistence for one authoring session."""

    company: Optional[Company] = None
    journey: Optional[TrainingJourney] = None
    methodology: Optional[TrainingMethodology] = None
    uploads: List[ContentUpload] = Field(default_factory=list)
    modules: List[TrainingModule] = Field(default_factory=list)
    current_step: int = Field(default=0, ge=0)
    selected_gig_id: Optional[str] = None
    last_saved: datetime = Field(default_factory=_now)
    draft_id: Optional[str] = None

    def is_syncable(self) -> bool:
        """Only drafts with a journey and at least one module go upstream."""
        return self.journey is not None and len(self.modules) > 0


__all__ = [
    "Assessment",
    "Company",
    "ContentFile",
    "ContentUpload",
    "DocumentSection",
    "DocumentSectionContent",
    "DraftModel",
    "JourneyDraft",
    "MultipleChoiceQuestion",
    "MultipleCorrectQuestion",
    "Question",
    "Section",
    "TextSection",
    "TextSectionContent",
    "TrainingJourney",
    "TrainingMethodology",
    "TrainingModule",
    "TrueFalseQuestion",
    "VideoSection",
    "VideoSectionContent",
]
