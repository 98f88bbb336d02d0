"""
Error taxonomy for the briefing pipeline.

Source-level errors are recovered into a fetch status by the aggregator.
Stage-level errors abort the run and surface as a single ``error`` event
carrying ``user_message``.
"""

from typing import Optional


class BriefcastError(Exception):
    """Base class for all pipeline errors."""

    user_message = "Something went wrong while generating your briefing."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class AuthRequiredError(BriefcastError):
    """A provider rejected the credential and needs reauthorization."""

    user_message = "Please reconnect your account to include it in briefings."

    def __init__(self, provider: str, message: str = ""):
        super().__init__(message or f"{provider} requires reauthorization")
        self.provider = provider


class UpstreamUnavailable(BriefcastError):
    """A provider timed out or answered with a server error."""

    user_message = "A connected service is temporarily unavailable."


class NoContentError(BriefcastError):
    """Nothing usable was collected, so there is nothing to narrate."""

    user_message = (
        "We couldn't find anything to brief you on today. "
        "Connect more services or try again later."
    )


class SynthesisFailure(BriefcastError):
    """A generative text or speech call failed after its own handling."""

    user_message = "We couldn't produce your briefing audio. Please try again."


class PersistenceError(BriefcastError):
    """A storage or database write failed after retries."""

    user_message = "We couldn't save your briefing. Please try again."
