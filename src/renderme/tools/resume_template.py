from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .base import Tool, ToolContext


TechStack = Literal["react", "vue", "fullstack", "nodejs"]
Level = Literal["junior", "mid", "senior"]

_STACK_SKILLS: Dict[str, List[str]] = {
    "react": ["React / React Hooks", "Redux Toolkit / Zustand", "Next.js", "TypeScript", "Webpack / Vite"],
    "vue": ["Vue 3 / Composition API", "Pinia / Vuex", "Nuxt.js", "TypeScript", "Vite"],
    "fullstack": ["React or Vue", "Node.js / Express / NestJS", "PostgreSQL / MongoDB", "Docker", "REST / GraphQL"],
    "nodejs": ["Node.js", "Express / Koa / NestJS", "Redis", "MySQL / MongoDB", "Message queues"],
}

_LEVEL_TITLES = {
    "junior": "Junior Front-end Engineer",
    "mid": "Front-end Engineer",
    "senior": "Senior Front-end Engineer",
}


class ResumeTemplateArgs(BaseModel):
    name: str = Field(default="张三", description="Candidate name")
    years_of_experience: int = Field(default=1, ge=0, le=20)
    tech_stack: TechStack = "react"
    level: Level = "mid"


def generate_resume_template(
    name: str = "张三",
    years_of_experience: int = 1,
    tech_stack: str = "react",
    level: str = "mid",
) -> str:
    if tech_stack not in _STACK_SKILLS:
        raise ValueError(f"unknown tech stack: {tech_stack}")
    if level not in _LEVEL_TITLES:
        raise ValueError(f"unknown level: {level}")
    if not 0 <= years_of_experience <= 20:
        raise ValueError("years_of_experience must be between 0 and 20")

    skills = "\n".join(f"- {s}" for s in _STACK_SKILLS[tech_stack])
    project_count = 2 if level == "junior" else 3
    projects = "\n\n".join(
        f"### Project {i}: <name>\n"
        f"- **Stack**: {', '.join(_STACK_SKILLS[tech_stack][:3])}\n"
        f"- **Role**: <what you owned>\n"
        f"- **Result**: <measurable outcome, e.g. load time -40%>"
        for i in range(1, project_count + 1)
    )
    return (
        f"# {name}\n\n"
        f"**{_LEVEL_TITLES[level]}** | {years_of_experience} year(s) of experience\n\n"
        "## Contact\n- Phone: <phone>\n- Email: <email>\n- GitHub: <link>\n\n"
        f"## Skills\n{skills}\n\n"
        "## Experience\n### <Company> | <Title> | <Dates>\n- <Achievement with numbers>\n\n"
        f"## Projects\n{projects}\n\n"
        "## Education\n- <University>, <Degree>, <Year>\n"
    )


def _handle(args: ResumeTemplateArgs, context: Optional[ToolContext]) -> Dict[str, str]:
    return {
        "template": generate_resume_template(args.name, args.years_of_experience, args.tech_stack, args.level),
    }


RESUME_TEMPLATE_TOOL = Tool(
    name="resumeTemplate",
    description="Generate a markdown resume template for a front-end candidate.",
    args_model=ResumeTemplateArgs,
    handler=_handle,  # type: ignore[arg-type]
)
