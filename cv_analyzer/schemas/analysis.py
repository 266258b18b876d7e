"""Structured outputs expected from each analysis call.

The model is asked for JSON matching these models; anything that fails
validation is treated as a failed call.
"""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Importance = Literal["critical", "high", "medium", "low"]
Score = Annotated[float, Field(ge=0, le=100)]


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# ATS (résumé vs job description)
# ---------------------------------------------------------------------------

class MatchedKeyword(_Schema):
    keyword: str
    frequency: int = Field(ge=0)
    importance: Importance


class MissingKeyword(_Schema):
    keyword: str
    importance: Importance
    reason: str


class KeywordAnalysis(_Schema):
    matchedKeywords: List[MatchedKeyword]
    missingKeywords: List[MissingKeyword]
    matchPercentage: Score
    analysis: str


class MatchedSkill(_Schema):
    skill: str
    category: str
    proficiency: Literal["expert", "intermediate", "beginner"]
    importance: Importance


class MissingSkill(_Schema):
    skill: str
    category: str
    priority: Literal["must-have", "nice-to-have"]
    importance: Importance


class SkillsAnalysis(_Schema):
    matchedSkills: List[MatchedSkill]
    missingSkills: List[MissingSkill]
    matchPercentage: Score
    skillGaps: List[str]
    analysis: str


class FormattingCheck(_Schema):
    score: Score
    issues: List[str]
    suggestions: List[str]


class StructureCheck(_Schema):
    score: Score
    sections: List[str]
    missingSections: List[str]


class ReadabilityCheck(_Schema):
    score: Score
    issues: List[str]


class ATSCompatibility(_Schema):
    atsScore: Score
    formatting: FormattingCheck
    structure: StructureCheck
    readability: ReadabilityCheck
    analysis: str


class Improvement(_Schema):
    category: Literal["keywords", "skills", "formatting", "content", "structure"]
    title: str
    description: str
    priority: Literal["high", "medium", "low"]
    action: str


class ATSWarning(_Schema):
    warning: str
    severity: Literal["critical", "warning", "info"]
    suggestion: str


class BestPractice(_Schema):
    practice: str
    benefit: str
    implementation: str


class Recommendations(_Schema):
    improvements: List[Improvement]
    atsWarnings: List[ATSWarning]
    bestPractices: List[BestPractice]


class SectionScore(_Schema):
    score: Score
    feedback: str


class SectionScores(_Schema):
    header: SectionScore
    summary: SectionScore
    experience: SectionScore
    skills: SectionScore
    education: SectionScore


# ---------------------------------------------------------------------------
# Roast (single document)
# ---------------------------------------------------------------------------

class FeedbackPoint(_Schema):
    title: str
    content: str
    category: str
    severity: Literal["low", "medium", "high"]
    tip: Optional[str] = None


class MarketReadiness(_Schema):
    score: Score
    strengths: List[str]
    priorities: List[str]


class RoastAnalysis(_Schema):
    overall: str
    feedback: List[FeedbackPoint] = Field(min_length=1)
    marketReadiness: MarketReadiness
    jobMarketTips: List[str] = Field(default_factory=list)
