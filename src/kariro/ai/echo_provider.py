"""Deterministic offline provider for smoke runs and tests."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from kariro.ai.base import AiProviderError, Prompt, ResultT
from kariro.ai.prompts import NO_PROFILE_EXPLANATION
from kariro.ai.schemas import InterviewPrepResult, JobAnalysisResult, ResumeGapResult

_POSTING_RE = re.compile(r"<job_posting>\n(.*?)\n</job_posting>", re.DOTALL)
_SKILL_SPLIT_RE = re.compile(r"[,;\n]")
_LEVELS: tuple[str, ...] = ("principal", "lead", "senior", "junior")


class EchoProvider:
    """Builds plausible results from the job posting text without any network call."""

    name = "echo"

    def __init__(self) -> None:
        self._factories: dict[type, Callable[[str], dict[str, Any]]] = {
            JobAnalysisResult: _job_analysis,
            InterviewPrepResult: _interview_prep,
            ResumeGapResult: _resume_gap,
        }

    def generate_text(self, prompt: Prompt) -> str:
        posting = _posting_text(prompt)
        headline = posting.split("\n", 1)[0][:200]
        return (
            "Dear Hiring Manager,\n\n"
            f"I am writing to apply for the position described as: {headline}.\n\n"
            "My experience maps directly to the requirements you listed, and I would welcome "
            "the chance to discuss how I can contribute.\n\n"
            "Thank you for your consideration."
        )

    def generate_object(self, prompt: Prompt, schema: type[ResultT]) -> ResultT:
        factory = self._factories.get(schema)
        if factory is None:
            raise AiProviderError(
                f"Echo provider has no factory for {schema.__name__}",
                retryable=False,
            )
        return schema.model_validate(factory(_posting_text(prompt)))


def _posting_text(prompt: Prompt) -> str:
    match = _POSTING_RE.search(prompt.user)
    return (match.group(1) if match else prompt.user).strip()


def _skills(posting: str) -> list[str]:
    parts = [part.strip() for part in _SKILL_SPLIT_RE.split(posting)]
    return [part for part in parts[1:] if part][:5]


def _job_analysis(posting: str) -> dict[str, Any]:
    lowered = posting.lower()
    level = next((name for name in _LEVELS if name in lowered), "mid")
    role = _SKILL_SPLIT_RE.split(posting, 1)[0].strip()[:120] or "Unknown Role"
    return {
        "companyName": "Unknown Company",
        "roleTitle": role,
        "location": None,
        "workMode": "remote" if "remote" in lowered else None,
        "salaryRange": None,
        "requiredSkills": _skills(posting),
        "niceToHaveSkills": [],
        "experienceLevel": level,
        "keyResponsibilities": [],
        "redFlags": [],
        "fitScore": 50,
        "fitExplanation": NO_PROFILE_EXPLANATION,
        "missingSkills": [],
        "summary": posting[:280],
    }


def _interview_prep(posting: str) -> dict[str, Any]:
    skills = _skills(posting) or ["the core stack"]
    return {
        "technicalQuestions": [
            {
                "question": f"How have you used {skill} in production?",
                "suggestedAnswer": f"Describe a concrete project that relied on {skill}.",
                "difficulty": "medium",
            }
            for skill in skills
        ],
        "behavioralQuestions": [
            {
                "question": "Tell me about a time you disagreed with a technical decision.",
                "suggestedAnswer": "Explain the context, your reasoning and the outcome.",
                "tip": "Use the STAR format.",
            },
        ],
        "companyResearchTips": ["Read the company's recent engineering blog posts."],
        "questionsToAsk": ["What does success look like in the first 90 days?"],
        "preparationChecklist": ["Review the job posting", "Prepare two project stories"],
    }


def _resume_gap(posting: str) -> dict[str, Any]:
    return {
        "matchedSkills": [],
        "missingSkills": [
            {
                "skill": skill,
                "importance": "required",
                "suggestion": f"Add a resume bullet that demonstrates {skill}.",
            }
            for skill in _skills(posting)
        ],
        "overallMatch": 50,
        "resumeSuggestions": ["Quantify the impact of your most recent role."],
        "talkingPoints": ["Connect your past projects to the listed responsibilities."],
    }
