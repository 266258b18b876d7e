# cv_analyzer/services/pipelines.py
"""
Analysis pipelines: which independent model calls a job kind runs, and which
of their outputs are scored dimensions.

`ats`   - resume against a job description, five calls, three scored dimensions
`roast` - single document, one call, market readiness is the only scored dimension
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from cv_analyzer.errors import AnalysisCallError
from cv_analyzer.schemas.analysis import (
    ATSCompatibility,
    KeywordAnalysis,
    Recommendations,
    RoastAnalysis,
    SectionScores,
    SkillsAnalysis,
)
from cv_analyzer.services import prompts
from cv_analyzer.services.scoring import clamp_score, overall_score


@dataclass(frozen=True)
class JobInput:
    """Snapshot of what the calls need from a job."""

    input_text: str
    reference_text: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


PromptBuilder = Callable[[JobInput], Tuple[str, str]]  # -> (system, prompt)


@dataclass(frozen=True)
class AnalysisCall:
    name: str
    schema: Type[BaseModel]
    build: PromptBuilder
    temperature: Callable[[JobInput], float] = lambda _inp: 0.7

    async def run(self, client, job_input: JobInput):
        system, prompt = self.build(job_input)
        try:
            return await client.generate(
                call=self.name,
                system=system,
                prompt=prompt,
                schema=self.schema,
                temperature=self.temperature(job_input),
            )
        except AnalysisCallError:
            raise
        except Exception as e:
            raise AnalysisCallError(self.name, str(e) or e.__class__.__name__) from e


@dataclass(frozen=True)
class Pipeline:
    kind: str
    calls: List[AnalysisCall]
    # dimension -> (call name, sub-score getter on the validated output)
    scored: Dict[str, Tuple[str, Callable[[Any], float]]]

    def aggregate(self, results: Dict[str, Any]) -> Tuple[int, Dict[str, int], Dict[str, Any]]:
        """Returns (overall score, sub-scores, findings) from validated call outputs."""
        raw = {
            dimension: float(getter(results[call_name].data))
            for dimension, (call_name, getter) in self.scored.items()
        }
        # overall is taken over the raw values; the per-dimension scores are rounded for display
        scores = {dimension: clamp_score(value) for dimension, value in raw.items()}
        findings = {name: result.data.model_dump(mode="json") for name, result in results.items()}
        return overall_score(raw.values()), scores, findings


# ---------------------------
# ATS
# ---------------------------

def _ats(builder: Callable[[str, str], str]) -> PromptBuilder:
    def build(inp: JobInput) -> Tuple[str, str]:
        return prompts.ATS_SYSTEM_PROMPT, builder(inp.input_text, inp.reference_text or "")
    return build


ATS_PIPELINE = Pipeline(
    kind="ats",
    calls=[
        AnalysisCall("keywords", KeywordAnalysis, _ats(prompts.keyword_prompt),
                     temperature=lambda _inp: 0.3),
        AnalysisCall("skills", SkillsAnalysis, _ats(prompts.skills_prompt)),
        AnalysisCall("compatibility", ATSCompatibility, _ats(prompts.compatibility_prompt)),
        AnalysisCall("recommendations", Recommendations, _ats(prompts.recommendations_prompt)),
        AnalysisCall("sections", SectionScores, _ats(prompts.section_scores_prompt)),
    ],
    scored={
        "keyword_strength": ("keywords", lambda d: d.matchPercentage),
        "skills_match": ("skills", lambda d: d.matchPercentage),
        "ats_ready": ("compatibility", lambda d: d.atsScore),
    },
)


# ---------------------------
# Roast
# ---------------------------

def _roast_build(inp: JobInput) -> Tuple[str, str]:
    p = inp.params or {}
    system = prompts.roast_system_prompt(
        roast_tone=p.get("roastTone", "light"),
        focus_areas=p.get("focusAreas") or [],
        show_emojis=bool(p.get("showEmojis", False)),
        user_context=p.get("userContext") or {},
    )
    return system, prompts.roast_prompt(inp.input_text)


def _roast_temperature(inp: JobInput) -> float:
    return 0.8 if (inp.params or {}).get("roastTone") == "heavy" else 0.6


ROAST_PIPELINE = Pipeline(
    kind="roast",
    calls=[AnalysisCall("roast", RoastAnalysis, _roast_build, temperature=_roast_temperature)],
    scored={"market_readiness": ("roast", lambda d: d.marketReadiness.score)},
)


PIPELINES: Dict[str, Pipeline] = {p.kind: p for p in (ATS_PIPELINE, ROAST_PIPELINE)}


def get_pipeline(kind: str) -> Pipeline:
    try:
        return PIPELINES[kind]
    except KeyError:
        raise ValueError(f"Unknown analysis kind: {kind!r}") from None
