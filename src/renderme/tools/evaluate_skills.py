"""Deterministic skill scoring for front-end resumes.

Score starts at 5 and is clamped to [5, 10]; bonuses come from skill count
relative to experience, years of experience, absence of weak wording and use
of modern front-end technology.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import Tool, ToolContext


WEAK_TERMS = ("了解", "understand")
MODERN_TECH = ("react", "vue", "typescript", "next.js", "tailwind", "node.js", "graphql")


class EvaluateSkillsArgs(BaseModel):
    graduation_year: int = Field(description="Year the candidate graduated (or will graduate)")
    skills: List[str] = Field(description="List of technical skills from the resume")


def evaluate_skills(graduation_year: int, skills: List[str], current_year: Optional[int] = None) -> Dict[str, Any]:
    year_now = current_year if current_year is not None else date.today().year
    years = max(0, year_now - int(graduation_year))
    skill_count = len(skills)
    expected = min(15, 5 + years * 2)

    score = 5.0
    suggestions: List[str] = []

    if skill_count >= expected:
        score += 2
    elif skill_count >= expected * 0.7:
        score += 1
        suggestions.append(f"With {years} year(s) of experience, list around {expected} relevant skills.")
    else:
        suggestions.append(
            f"Only {skill_count} skills listed; {expected} or more is expected for {years} year(s) of experience."
        )

    if years >= 3:
        score += 2
        suggestions.append("Highlight architecture decisions and mentoring on senior projects.")
    elif years >= 1:
        score += 1.5
        suggestions.append("Show measurable impact in the projects you delivered.")
    else:
        score += 1
        suggestions.append("Emphasise coursework, internships and personal projects.")

    joined = " ".join(skills).lower()
    if any(term in joined for term in WEAK_TERMS):
        suggestions.append("Avoid weak wording such as '了解' or 'understand'; describe what you built instead.")
    else:
        score += 0.5

    if any(tech in joined for tech in MODERN_TECH):
        score += 0.5
    else:
        suggestions.append("Mention modern stack experience (React, Vue, TypeScript, Next.js, Node.js).")

    score = min(10.0, max(5.0, score))
    if score >= 9:
        summary = "Excellent skill profile"
    elif score >= 7.5:
        summary = "Strong skill profile with room to polish"
    elif score >= 6:
        summary = "Adequate skill profile; needs strengthening"
    else:
        summary = "Skill profile needs significant work"

    return {
        "score": round(score, 1),
        "years_of_experience": years,
        "skill_count": skill_count,
        "expected_skill_count": expected,
        "summary": summary,
        "suggestions": suggestions,
    }


def _handle(args: EvaluateSkillsArgs, context: Optional[ToolContext]) -> Dict[str, Any]:
    return evaluate_skills(args.graduation_year, args.skills)


EVALUATE_SKILLS_TOOL = Tool(
    name="evaluateSkills",
    description="Score a candidate's technical skills (5-10) from graduation year and skill list, with suggestions.",
    args_model=EvaluateSkillsArgs,
    handler=_handle,  # type: ignore[arg-type]
)
