"""
Tests for the repair protocol.

The contract: at most two calls to the AI service per scoring attempt, and
only unusable OUTPUT (not transport errors) earns the second call.
"""

import asyncio

import pytest

from config.settings import settings
from scoring.errors import NonJsonOutput, SchemaViolation, ConfigurationError
from scoring.repair import score_with_repair
from conftest import ScriptedScoringClient, VALID_TEXT


@pytest.mark.asyncio
async def test_fenced_output_needs_no_repair():
    client = ScriptedScoringClient(responses=[f"```json\n{VALID_TEXT}\n```"])
    outcome = await score_with_repair(client, "score this")

    assert outcome.used_repair is False
    assert outcome.parsed.overall_score == 72.0
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_prose_wrapped_output_needs_no_repair():
    client = ScriptedScoringClient(responses=[f"Sure! {VALID_TEXT}"])
    outcome = await score_with_repair(client, "score this")

    assert outcome.used_repair is False
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_bad_output_repaired_on_second_call():
    """Attempt 1 is prose, the repair call returns a valid object."""
    client = ScriptedScoringClient(responses=["The agent did well overall.", VALID_TEXT])
    outcome = await score_with_repair(client, "score this")

    assert outcome.used_repair is True
    assert outcome.parsed.communication_score == 80.0
    assert len(client.calls) == 2
    # the repair prompt carries the text that needs fixing
    assert "The agent did well overall." in client.calls[1]


@pytest.mark.asyncio
async def test_schema_violation_triggers_repair():
    client = ScriptedScoringClient(responses=['{"overall_score": 70}', VALID_TEXT])
    outcome = await score_with_repair(client, "score this")
    assert outcome.used_repair is True


@pytest.mark.asyncio
async def test_two_failures_stop_after_exactly_two_calls():
    """Non-JSON twice → NonJsonOutput, and there is no third call."""
    client = ScriptedScoringClient(default="no json here, sorry")

    with pytest.raises(NonJsonOutput):
        await score_with_repair(client, "score this")
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_repair_error_is_the_repair_attempts_error():
    client = ScriptedScoringClient(responses=["prose", '{"overall_score": 1}'])
    with pytest.raises(SchemaViolation, match="communication_score"):
        await score_with_repair(client, "score this")


@pytest.mark.asyncio
async def test_transport_error_is_not_repaired():
    client = ScriptedScoringClient(responses=[asyncio.TimeoutError()])
    with pytest.raises(asyncio.TimeoutError):
        await score_with_repair(client, "score this")
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_configuration_error_propagates():
    client = ScriptedScoringClient(responses=[ConfigurationError("OPENAI_API_KEY is not set")])
    with pytest.raises(ConfigurationError):
        await score_with_repair(client, "score this")
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_repair_call_uses_repair_token_budget():
    seen = []

    class RecordingClient(ScriptedScoringClient):
        async def complete(self, prompt, max_output_tokens=None):
            seen.append(max_output_tokens)
            return await super().complete(prompt, max_output_tokens)

    client = RecordingClient(responses=["prose", VALID_TEXT])
    await score_with_repair(client, "score this")
    assert seen == [None, settings.REPAIR_MAX_OUTPUT_TOKENS]
