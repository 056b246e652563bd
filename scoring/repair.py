"""
Repair protocol — at most one follow-up call when the model's JSON is unusable.

    attempt 1:  client.complete(prompt) → parse_and_validate
    on NonJsonOutput / SchemaViolation:
    repair:     client.complete(repair prompt embedding attempt 1's text) → parse_and_validate
    on failure again: the error propagates, there is no third call

Transport errors, timeouts and ConfigurationError from the client are not
output problems, so they propagate from attempt 1 without a repair call.
"""

import logging
from dataclasses import dataclass

from config.settings import settings
from scoring.errors import NonJsonOutput, SchemaViolation
from scoring.prompts import build_repair_prompt
from scoring.validator import ValidatedScore, parse_and_validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreOutcome:
    parsed: ValidatedScore
    used_repair: bool
    raw_text: str


async def score_with_repair(client, prompt: str) -> ScoreOutcome:
    """
    Run one scoring attempt plus, if needed, exactly one repair attempt.

    Args:
        client: anything with `async complete(prompt, max_output_tokens=None) -> str`
                (ScoringClient in production, scripted fakes in tests)
        prompt: the full scoring prompt

    Returns:
        ScoreOutcome; used_repair tells the caller to mark the result "repaired".

    Raises:
        NonJsonOutput / SchemaViolation from the repair attempt, or whatever
        the client raised.
    """
    raw_text = await client.complete(prompt)
    try:
        return ScoreOutcome(parse_and_validate(raw_text), used_repair=False, raw_text=raw_text)
    except (NonJsonOutput, SchemaViolation) as e:
        logger.info(f"Model output rejected ({e.kind}: {e}), issuing one repair call")

    repaired_text = await client.complete(
        build_repair_prompt(raw_text),
        max_output_tokens=settings.REPAIR_MAX_OUTPUT_TOKENS,
    )
    parsed = parse_and_validate(repaired_text)
    logger.info("Repair call produced a valid score")
    return ScoreOutcome(parsed, used_repair=True, raw_text=repaired_text)
