"""Configuration module for the turn-phase engine"""

from .prompts import (
    CLARIFICATION_MESSAGES,
    META_EVENT_SYSTEM_PROMPT,
    NARRATOR_SYSTEM_PROMPT,
    TIME_SCALE,
    VALIDATOR_SYSTEM_PROMPT,
    build_meta_event_user_prompt,
    build_narrator_user_prompt,
    build_validator_user_prompt,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "TIME_SCALE",
    "CLARIFICATION_MESSAGES",
    "VALIDATOR_SYSTEM_PROMPT",
    "META_EVENT_SYSTEM_PROMPT",
    "NARRATOR_SYSTEM_PROMPT",
    "build_validator_user_prompt",
    "build_meta_event_user_prompt",
    "build_narrator_user_prompt",
]
