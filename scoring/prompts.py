"""
Prompt templates for scoring and for the one-shot repair pass.

The field set is fixed: five 0..100 scores and three short-string arrays.
Both prompts and the validator read it from here so they can never drift.
"""

import json

SCORE_KEYS = (
    "overall_score",
    "communication_score",
    "conversion_score",
    "risk_score",           # higher = worse churn/complaint/escalation risk
    "coaching_priority",    # higher = more urgent
)
LIST_KEYS = ("strengths", "weaknesses", "key_patterns")
REQUIRED_KEYS = SCORE_KEYS + LIST_KEYS

# Attempt-1 output embedded in a repair prompt is cut to this many characters
REPAIR_ECHO_CHARS = 6000


def build_scoring_prompt(agent_id: str, window_size: int, items: list[dict]) -> str:
    return "\n".join([
        "You are an agent scoring engine for contact centers.",
        "You will receive a JSON object with recent conversations for ONE agent.",
        "Each item contains a conversation_id and either a prior analysis report or a transcript excerpt.",
        "Return STRICT JSON: a single object with keys:",
        ", ".join(REQUIRED_KEYS),
        "Scores are numbers 0..100. strengths/weaknesses/key_patterns are arrays of short strings.",
        "Do not wrap the object in markdown and do not add any other text.",
        "",
        json.dumps(
            {"agent_id": agent_id, "window_size": window_size, "items": items},
            ensure_ascii=False,
        ),
    ])


def build_repair_prompt(raw_output: str) -> str:
    return "\n".join([
        "The text below was supposed to be a single JSON object but could not be used as-is.",
        "Rewrite it as ONE valid JSON object with exactly these keys:",
        ", ".join(REQUIRED_KEYS),
        "Scores are numbers 0..100. strengths/weaknesses/key_patterns are arrays of short strings.",
        "Output only the JSON object. No markdown fences, no explanation.",
        "",
        "Text to fix:",
        raw_output[:REPAIR_ECHO_CHARS],
    ])
