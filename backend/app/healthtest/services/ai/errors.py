"""HealthTest - Generation Errors

Every failure the pipeline can surface. Messages are user-facing: callers
display them verbatim and let the user retry.
"""
from __future__ import annotations


class GenerationError(Exception):
    """Base class for pipeline failures."""

    default_message = "Test case generation failed."

    def __init__(self, message: str | None = None, *, details: list[str] | None = None):
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


class ServiceError(GenerationError):
    """The completion backend could not be reached or rejected the request."""

    default_message = (
        "The AI failed to process the request. "
        "Please check the API key and document content."
    )


class MalformedResponseError(GenerationError):
    """The backend answered, but the text did not parse as JSON."""

    default_message = "The AI returned a malformed response. Please try again."


class InvalidShapeError(GenerationError):
    """Parsed JSON does not match the declared response shape."""

    default_message = "The AI response is not in the expected format."


class EmptyInputError(GenerationError):
    """Blank text handed to a generation entry point."""

    default_message = "Requirements text is empty. Provide a document or paste requirements first."


class TraceabilityError(GenerationError):
    """Generated test cases reference requirement ids that were never supplied."""

    default_message = "Generated test cases reference unknown requirements."

    def __init__(self, orphan_ids: list[str], message: str | None = None):
        self.orphan_ids = orphan_ids
        super().__init__(
            message or f"{self.default_message} Orphaned test cases: {', '.join(orphan_ids)}",
            details=orphan_ids,
        )
