"""
Task-level error taxonomy.

Every way a single agent's scoring can fail maps to one `kind`:

    InsufficientData    fewer conversations than settings.MIN_RECORDS
    NonJsonOutput       model text had no usable {...} object, even after repair
    SchemaViolation     the object was missing a required key or had a bad type
    Timeout             a store read or AI call exceeded its bound
    ConfigurationError  credentials/config missing, fatal for the whole run
    Unknown             anything else

The batch runner catches these per task, turns them into a TaskFailure with a
sanitized message and stores "<kind>: <message>" on the task row. Only
ConfigurationError is re-raised, because every later task would fail the
same way.
"""

import asyncio
from dataclasses import dataclass

import openai

from config.settings import settings


class ScoringError(Exception):
    """Base class for failures that belong to one task, not to the job."""

    kind = "Unknown"
    fatal = False


class InsufficientData(ScoringError):
    kind = "InsufficientData"

    def __init__(self, agent_id: str, found: int, required: int):
        super().__init__(f"agent {agent_id} has {found} conversations, need at least {required}")
        self.agent_id = agent_id
        self.found = found
        self.required = required


class NonJsonOutput(ScoringError):
    kind = "NonJsonOutput"


class SchemaViolation(ScoringError):
    kind = "SchemaViolation"

    def __init__(self, key: str, problem: str = "missing"):
        super().__init__(f"{problem} key '{key}'")
        self.key = key
        self.problem = problem


class ScoringTimeout(ScoringError):
    kind = "Timeout"


class ConfigurationError(ScoringError):
    kind = "ConfigurationError"
    fatal = True


@dataclass(frozen=True)
class TaskFailure:
    kind: str
    message: str
    fatal: bool = False

    def as_error_text(self) -> str:
        """The string stored in batch_tasks.error."""
        return f"{self.kind}: {self.message}"


def sanitize(message: str, limit: int | None = None) -> str:
    """
    Make an exception message safe to store and show to an operator.

    Keeps only the first non-empty line (drops stack frames and multi-line
    provider dumps), collapses whitespace, and truncates.
    """
    limit = limit or settings.ERROR_MAX_CHARS
    first_line = next((line for line in message.splitlines() if line.strip()), "")
    cleaned = " ".join(first_line.split())
    if not cleaned:
        return "no details"
    if len(cleaned) > limit:
        cleaned = cleaned[: limit - 3].rstrip() + "..."
    return cleaned


def classify_error(exc: BaseException) -> TaskFailure:
    """Map any exception raised while scoring one task to a TaskFailure."""
    if isinstance(exc, ScoringError):
        return TaskFailure(exc.kind, sanitize(str(exc)), exc.fatal)

    # APITimeoutError subclasses APIConnectionError, so it has to come first
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError)):
        return TaskFailure(ScoringTimeout.kind, "external call exceeded its time limit")

    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return TaskFailure(
            ConfigurationError.kind,
            f"AI service rejected the credentials (HTTP {exc.status_code})",
            fatal=True,
        )

    if isinstance(exc, openai.APIStatusError):
        return TaskFailure("Unknown", f"AI service returned HTTP {exc.status_code}")

    if isinstance(exc, openai.APIConnectionError):
        return TaskFailure("Unknown", "AI service unreachable")

    detail = sanitize(str(exc)) if str(exc) else "no details"
    return TaskFailure("Unknown", sanitize(f"{type(exc).__name__}: {detail}"))


def to_scoring_error(exc: BaseException) -> ScoringError:
    """Wrap a raw exception (openai, asyncio) as the matching ScoringError."""
    if isinstance(exc, ScoringError):
        return exc
    failure = classify_error(exc)
    cls = {
        ScoringTimeout.kind: ScoringTimeout,
        ConfigurationError.kind: ConfigurationError,
    }.get(failure.kind, ScoringError)
    return cls(failure.message)
