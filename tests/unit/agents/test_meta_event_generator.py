# ABOUTME: Unit tests for the meta-event generator's parsing and normalization.
# ABOUTME: Checks clamping, fallbacks, truncation to four events, and error cases for unusable output.

import json

import pytest

from src.agents.meta_event_generator import (
    DEFAULT_PROBABILITY,
    MAX_EVENTS,
    MetaEventGenerator,
    normalize_event,
    normalize_probability,
    normalize_severity,
    normalize_title,
    normalize_type,
    parse_generation_response,
)
from src.models.game_phase import MetaEventType, SeverityLevel
from src.orchestration.exceptions import GenerationFormatError


def event_dict(**overrides):
    event = {
        "type": "discovery",
        "title": "Hidden Cache",
        "description": "A loose stone hides a small bundle.",
        "probability": 0.5,
        "severity": "minor",
        "triggersCombat": False,
    }
    event.update(overrides)
    return event


class TestNormalization:
    """Test suite for field normalizers"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (0.35, 0.35),
            (1.7, 1.0),
            (-0.2, 0.0),
            ("0.6", 0.6),
            ("abc", DEFAULT_PROBABILITY),
            (None, DEFAULT_PROBABILITY),
            (True, DEFAULT_PROBABILITY),
            (float("nan"), DEFAULT_PROBABILITY),
        ],
    )
    def test_probability(self, raw, expected):
        assert normalize_probability(raw) == pytest.approx(expected)

    def test_unknown_type_becomes_encounter(self):
        assert normalize_type("ambush") == MetaEventType.ENCOUNTER
        assert normalize_type(None) == MetaEventType.ENCOUNTER
        assert normalize_type(" Hazard ") == MetaEventType.HAZARD

    def test_unknown_severity_becomes_minor(self):
        assert normalize_severity("catastrophic") == SeverityLevel.MINOR
        assert normalize_severity("MAJOR") == SeverityLevel.MAJOR

    def test_title_truncated(self):
        assert normalize_title("x" * 300) == "x" * 255
        assert normalize_title("abcdef", max_length=3) == "abc"

    def test_blank_title_gets_placeholder(self):
        assert normalize_title("   ") == "Unexpected Event"

    def test_snake_case_keys_accepted(self):
        event = normalize_event(
            {"type": "hazard", "title": "Flood", "probability": 0.2,
             "triggers_combat": "yes", "time_impact": "1 hour"}
        )
        assert event.triggers_combat is True
        assert event.time_impact == "1 hour"
        assert event.severity == SeverityLevel.MINOR
        assert event.description == ""


class TestParseGenerationResponse:
    """Test suite for parse_generation_response"""

    def test_parses_events(self):
        response = json.dumps({"events": [event_dict(), event_dict(type="hazard", triggersCombat=True)]})

        result = parse_generation_response(response)

        assert len(result.events) == 2
        assert result.events[1].triggers_combat is True
        assert result.raw_output == response

    def test_more_than_four_truncated(self):
        events = [event_dict(title=f"Event {i}") for i in range(6)]

        result = parse_generation_response(json.dumps({"events": events}))

        assert len(result.events) == MAX_EVENTS
        assert [e.title for e in result.events] == [f"Event {i}" for i in range(4)]

    @pytest.mark.parametrize(
        "response",
        [
            "not json at all",
            json.dumps(["a", "list"]),
            json.dumps({"other": []}),
            json.dumps({"events": "nope"}),
            json.dumps({"events": []}),
            json.dumps({"events": ["strings", "only"]}),
            json.dumps({"events": [event_dict()]}),
            json.dumps({"events": [event_dict(), "not an event"]}),
        ],
    )
    def test_unusable_output(self, response):
        with pytest.raises(GenerationFormatError) as exc_info:
            parse_generation_response(response)
        assert exc_info.value.raw_output == response


class TestMetaEventGenerator:
    """Test suite for the generator agent"""

    @pytest.mark.asyncio
    async def test_generate_calls_llm(self, mock_llm_client):
        generator = MetaEventGenerator(mock_llm_client, title_max_length=8)

        result = await generator.generate(
            "cross the river", time_estimate="1 hour", location="Ford", recent_events=["rain"]
        )

        assert result.events[0].title == "Wanderin"
        assert mock_llm_client.calls == ["meta"]
        kwargs = mock_llm_client.call_json.call_args.kwargs
        assert "cross the river" in kwargs["user_prompt"]
        assert "Ford" in kwargs["user_prompt"]
        assert kwargs["temperature"] == 0.8
