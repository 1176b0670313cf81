# ABOUTME: Pydantic request/response models for the HTTP endpoints.
# ABOUTME: Wire format is camelCase (pendingActionId, currentPhase); Python attributes stay snake_case.

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.session import MetaEvent


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionBody(ApiModel):
    session_id: str | None = None


class SessionCreated(ApiModel):
    session_id: str
    phase: str


class SubmitActionBody(ApiModel):
    player_input: str = Field(min_length=1)


class ActionAccepted(ApiModel):
    turn_id: str
    phase: str
    job_id: str | None = None


class PhaseResponse(ApiModel):
    phase: str
    pending_action_id: str | None = None
    original_input: str | None = None
    is_in_meta_event: bool = False
    is_in_combat: bool = False


class GenerateBody(ApiModel):
    pending_action_id: str
    regenerate: bool = False
    location: str | None = None
    time_of_day: str | None = None
    recent_events: list[str] | None = None


class MetaEventView(ApiModel):
    id: str
    sequence_num: int
    type: str
    title: str
    description: str
    probability: float
    severity: str
    triggers_combat: bool
    time_impact: str | None = None
    player_decision: str | None = None
    roll_result: float | None = None
    triggered: bool | None = None

    @classmethod
    def from_event(cls, event: MetaEvent) -> "MetaEventView":
        return cls.model_validate(event.model_dump(mode="json"))


class GenerateResponse(ApiModel):
    events: list[MetaEventView]
    raw_output: str


class ReviewBody(ApiModel):
    pending_action_id: str
    action: Literal["decide", "confirm", "regenerate"]
    event_id: str | None = None
    decision: str | None = None


class ReviewResponse(ApiModel):
    phase: str
    events: list[MetaEventView] | None = None
    event: MetaEventView | None = None


class EventsResponse(ApiModel):
    events: list[MetaEventView]
