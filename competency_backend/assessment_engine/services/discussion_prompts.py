"""Contract for generating 1:1 discussion prompts from a completed assessment.

No generator ships with the engine; callers plug in their own (e.g. an LLM
client) and pass it to `DraftSession.discussion_prompts`, which lays the
results out next to wizard steps with `prompts_by_step`.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from assessment_engine.models.domain import SubCompetency


class DiscussionPrompt(BaseModel):
    question: str = Field(..., min_length=1)
    look_for: Optional[str] = Field(None, description="What a good answer would show")


class SubCompetencyPrompts(BaseModel):
    sub_competency_id: str
    prompts: List[DiscussionPrompt] = Field(default_factory=list)


class DiscussionPromptGenerator(Protocol):
    async def generate_discussion_prompts(
        self, subject_id: str, assessment_id: str, role_id: Optional[str] = None
    ) -> List[SubCompetencyPrompts]: ...


# PUBLIC_INTERFACE
def prompts_by_step(
    steps: Sequence[SubCompetency], generated: Sequence[SubCompetencyPrompts]
) -> List[List[DiscussionPrompt]]:
    """Prompts aligned with wizard steps; repeated sub-competencies are merged."""
    grouped: Dict[str, List[DiscussionPrompt]] = {}
    for item in generated:
        grouped.setdefault(item.sub_competency_id, []).extend(item.prompts)
    return [grouped.get(sub.id, []) for sub in steps]
