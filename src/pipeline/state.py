# src/pipeline/state.py - v1
"""Per-fingerprint pipeline state and its pure transition function.

Stages run in a fixed order. Optional stages are skipped when their
request flag is off and degrade to an omitted section when they fail.
FAILED and DONE are absorbing.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from codexplain.core.errors import ExplainerError
from codexplain.core.models import PipelineRequest


class Stage(str, Enum):
    ANALYZING = "analyzing"
    SCRIPTING = "scripting"
    FLOWCHARTING = "flowcharting"
    EXEMPLIFYING = "exemplifying"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.ANALYZING,
    Stage.SCRIPTING,
    Stage.FLOWCHARTING,
    Stage.EXEMPLIFYING,
    Stage.SYNTHESIZING,
    Stage.DONE,
)

# Optional stage -> artifact section it produces.
OPTIONAL_SECTIONS: dict[Stage, str] = {
    Stage.FLOWCHARTING: "flowchart",
    Stage.EXEMPLIFYING: "examples",
}

TERMINAL_STAGES = frozenset({Stage.DONE, Stage.FAILED})


def is_optional(stage: Stage) -> bool:
    return stage in OPTIONAL_SECTIONS


def is_enabled(stage: Stage, request: PipelineRequest) -> bool:
    """Whether the request asks for a stage at all."""
    if stage == Stage.FLOWCHARTING:
        return request.include_flowchart
    if stage == Stage.EXEMPLIFYING:
        return request.include_examples
    return True


class StageOutcome(BaseModel):
    """Result of running one stage."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: Stage
    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: ExplainerError | None = None


class PipelineState(BaseModel):
    """Progress of one in-flight generation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    fingerprint: str
    stage: Stage = Stage.ANALYZING
    partial_results: dict[str, Any] = Field(default_factory=dict)
    omitted_sections: list[str] = Field(default_factory=list)
    error: ExplainerError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES


def next_stage(stage: Stage, request: PipelineRequest) -> Stage:
    """The stage after ``stage``, skipping stages the request disabled."""
    idx = STAGE_ORDER.index(stage) + 1
    while not is_enabled(STAGE_ORDER[idx], request):
        idx += 1
    return STAGE_ORDER[idx]


def advance(
    state: PipelineState, outcome: StageOutcome, request: PipelineRequest
) -> PipelineState:
    """Apply a stage outcome. Pure: returns a new state.

    Raises:
        ValueError: The outcome is for a different stage than the current one.
    """
    if state.is_terminal:
        return state
    if outcome.stage != state.stage:
        raise ValueError(
            f"Outcome for {outcome.stage.value} while in {state.stage.value}"
        )

    if outcome.success:
        return state.model_copy(
            update={
                "stage": next_stage(state.stage, request),
                "partial_results": {**state.partial_results, **outcome.data},
            }
        )

    if is_optional(state.stage):
        return state.model_copy(
            update={
                "stage": next_stage(state.stage, request),
                "omitted_sections": [
                    *state.omitted_sections,
                    OPTIONAL_SECTIONS[state.stage],
                ],
            }
        )

    return state.model_copy(update={"stage": Stage.FAILED, "error": outcome.error})
