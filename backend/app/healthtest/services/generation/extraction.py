"""HealthTest - Requirement Extraction

Turns raw requirement or API-specification text into requirement records.
Provenance (source) is not assigned here; it describes how the text entered
the system and is attached by the caller.
"""
from __future__ import annotations

import logging

from pydantic import ValidationError

from healthtest.models.schemas import ExtractedRequirement, RequirementAnalysis
from healthtest.services.ai.errors import EmptyInputError, InvalidShapeError
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.ai.prompts import (
    InputVariant,
    build_analysis_prompt,
    build_extraction_prompt,
    classify_input,
)

logger = logging.getLogger(__name__)


def ensure_text(text: str) -> str:
    if not text or not text.strip():
        raise EmptyInputError()
    return text


async def extract_requirements(
    gateway: CompletionGateway,
    document: str,
    variant: InputVariant | None = None,
) -> list[ExtractedRequirement]:
    """Extract discrete requirements (or API endpoints) from ``document``.

    Ids are whatever the backend assigned; uniqueness across separate calls
    is not checked.
    """
    ensure_text(document)
    variant = variant or classify_input(document)
    request = build_extraction_prompt(document, variant)

    data = await gateway.complete(request.prompt, request.shape)
    if not isinstance(data, list):
        raise InvalidShapeError("AI response for requirements is not in the expected array format.")

    try:
        requirements = [ExtractedRequirement.model_validate(item) for item in data]
    except ValidationError as e:
        raise InvalidShapeError(details=[err["msg"] for err in e.errors()]) from e

    logger.info("Extracted %d %s item(s)", len(requirements), variant.value)
    return requirements


async def analyze_requirements(gateway: CompletionGateway, document: str) -> RequirementAnalysis:
    """Summarize a document before generation: summary, categories, size estimate."""
    ensure_text(document)
    request = build_analysis_prompt(document)
    data = await gateway.complete(request.prompt, request.shape)
    try:
        return RequirementAnalysis.model_validate(data)
    except ValidationError as e:
        raise InvalidShapeError(details=[err["msg"] for err in e.errors()]) from e
