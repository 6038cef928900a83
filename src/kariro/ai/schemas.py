"""Pydantic schemas for structured AI results.

Field names are snake_case in Python and camelCase on the wire, matching what
the API returns to clients and what the model is asked to produce.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """Serialize with wire (camelCase) keys."""

        return self.model_dump(mode="json", by_alias=True)


class SalaryRange(_CamelModel):
    min: int | None = None
    max: int | None = None
    currency: str = "USD"


class JobAnalysisResult(_CamelModel):
    """Structured fields extracted from a job posting plus a fit assessment."""

    company_name: str
    role_title: str
    location: str | None = None
    work_mode: Literal["remote", "hybrid", "onsite"] | None = None
    salary_range: SalaryRange | None = None
    required_skills: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)
    experience_level: Literal["junior", "mid", "senior", "lead", "principal"]
    key_responsibilities: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    fit_score: int = Field(ge=0, le=100)
    fit_explanation: str
    missing_skills: list[str] = Field(default_factory=list)
    summary: str


class TechnicalQuestion(_CamelModel):
    question: str
    suggested_answer: str
    difficulty: Literal["easy", "medium", "hard"]


class BehavioralQuestion(_CamelModel):
    question: str
    suggested_answer: str
    tip: str


class InterviewPrepResult(_CamelModel):
    technical_questions: list[TechnicalQuestion] = Field(default_factory=list)
    behavioral_questions: list[BehavioralQuestion] = Field(default_factory=list)
    company_research_tips: list[str] = Field(default_factory=list)
    questions_to_ask: list[str] = Field(default_factory=list)
    preparation_checklist: list[str] = Field(default_factory=list)


class MatchedSkill(_CamelModel):
    skill: str
    evidence_from_resume: str


class MissingSkill(_CamelModel):
    skill: str
    importance: Literal["required", "nice-to-have"]
    suggestion: str


class ResumeGapResult(_CamelModel):
    matched_skills: list[MatchedSkill] = Field(default_factory=list)
    missing_skills: list[MissingSkill] = Field(default_factory=list)
    overall_match: int = Field(ge=0, le=100)
    resume_suggestions: list[str] = Field(default_factory=list)
    talking_points: list[str] = Field(default_factory=list)


class CoverLetterResult(_CamelModel):
    """Tracking-record result for a generated cover letter."""

    content: str
    tone: str
    application_id: str
