# cv_analyzer/services/prompts.py
from typing import Any, Dict, Iterable, Optional

ATS_SYSTEM_PROMPT = (
    "You are an ATS (Applicant Tracking System) analyst. You know how ATS software "
    "parses and ranks resumes, how keyword density and placement affect ranking, and "
    "which formatting choices break parsing. Be specific and practical, ground every "
    "finding in the resume and job description you are given, and answer with JSON only."
)


def _ats_block(resume_text: str, job_description: str) -> str:
    return f"RESUME:\n{resume_text}\n\nJOB DESCRIPTION:\n{job_description}\n"


def keyword_prompt(resume_text: str, job_description: str) -> str:
    return (
        "Compare the keywords of the job description with the resume.\n\n"
        + _ats_block(resume_text, job_description)
        + "\nReturn JSON with:\n"
        "- matchedKeywords: [{keyword, frequency, importance}] present in both\n"
        "- missingKeywords: [{keyword, importance, reason}] required but absent from the resume\n"
        "- matchPercentage: keyword coverage, 0-100\n"
        "- analysis: two or three sentences on keyword optimisation\n"
        "importance is one of critical, high, medium, low. Consider technical terms, tools, "
        "industry language, responsibilities and required qualifications."
    )


def skills_prompt(resume_text: str, job_description: str) -> str:
    return (
        "Match the skills in the resume against the job requirements.\n\n"
        + _ats_block(resume_text, job_description)
        + "\nReturn JSON with:\n"
        "- matchedSkills: [{skill, category, proficiency, importance}]\n"
        "- missingSkills: [{skill, category, priority, importance}]\n"
        "- matchPercentage: skills coverage, 0-100\n"
        "- skillGaps: short list of the gaps that matter most\n"
        "- analysis: two or three sentences\n"
        "proficiency is expert, intermediate or beginner; priority is must-have or "
        "nice-to-have; importance is critical, high, medium or low."
    )


def compatibility_prompt(resume_text: str, job_description: str) -> str:
    return (
        "Evaluate how well the resume survives ATS parsing and how it is structured.\n\n"
        + _ats_block(resume_text, job_description)
        + "\nReturn JSON with:\n"
        "- atsScore: overall ATS compatibility, 0-100\n"
        "- formatting: {score, issues, suggestions}\n"
        "- structure: {score, sections, missingSections}\n"
        "- readability: {score, issues}\n"
        "- analysis: two or three sentences\n"
        "Look at headers, bullet points, standard sections (header, summary, experience, "
        "skills, education), keyword placement and anything likely to confuse a parser."
    )


def recommendations_prompt(resume_text: str, job_description: str) -> str:
    return (
        "Write prioritised, actionable recommendations that improve this resume for this job.\n\n"
        + _ats_block(resume_text, job_description)
        + "\nReturn JSON with:\n"
        "- improvements: [{category, title, description, priority, action}] where category is "
        "keywords, skills, formatting, content or structure and priority is high, medium or low\n"
        "- atsWarnings: [{warning, severity, suggestion}] with severity critical, warning or info\n"
        "- bestPractices: [{practice, benefit, implementation}] for this role and industry"
    )


def section_scores_prompt(resume_text: str, job_description: str) -> str:
    return (
        "Score each major resume section on how well it supports this application.\n\n"
        + _ats_block(resume_text, job_description)
        + "\nReturn JSON with keys header, summary, experience, skills, education. Each "
        "value is {score, feedback}: score 0-100 for relevance, completeness and ATS "
        "friendliness, feedback naming strengths and the concrete change to make."
    )


# ---------------------------------------------------------------------------
# Roast
# ---------------------------------------------------------------------------

_TONES = {
    "light": (
        "Be witty but kind. Tease the weak spots gently and always pair a joke with "
        "a useful fix."
    ),
    "heavy": (
        "Be brutally honest and sharp. Do not soften the verdict, but every criticism "
        "must still come with a concrete fix."
    ),
}


def roast_system_prompt(
    roast_tone: str = "light",
    focus_areas: Optional[Iterable[str]] = None,
    show_emojis: bool = False,
    user_context: Optional[Dict[str, Any]] = None,
) -> str:
    parts = [
        "You are a senior recruiter reviewing a CV for the local job market.",
        _TONES.get(roast_tone, _TONES["light"]),
    ]
    focus = [f for f in (focus_areas or []) if f]
    if focus:
        parts.append("Focus on: " + ", ".join(focus) + ".")
    parts.append("Use emojis where they help." if show_emojis else "Do not use emojis.")

    ctx = user_context or {}
    if ctx.get("targetRole"):
        parts.append(f"The candidate is targeting the role: {ctx['targetRole']}.")
    if ctx.get("experience"):
        parts.append(f"Experience level: {ctx['experience']}.")
    if ctx.get("industry"):
        parts.append(f"Industry: {ctx['industry']}.")

    parts.append("Answer with JSON only.")
    return " ".join(parts)


def roast_prompt(cv_text: str) -> str:
    return (
        "Review this CV.\n\n"
        f"CV:\n{cv_text}\n\n"
        "Return JSON with:\n"
        "- overall: one paragraph verdict\n"
        "- feedback: [{title, content, category, severity, tip}] with severity low, medium "
        "or high; at least one item\n"
        "- marketReadiness: {score, strengths, priorities} where score is 0-100\n"
        "- jobMarketTips: short, practical tips for the candidate's market"
    )
