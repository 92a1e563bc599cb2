"""HealthTest - Test Case Generation

Generates structured test cases linked to a supplied requirement list.

Traceability: every generated test case must reference a requirement id
from the list passed in. Orphans are surfaced according to OrphanPolicy:
REJECT raises TraceabilityError (nothing is returned), WARN keeps them and
logs each one.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from healthtest.core.config import settings
from healthtest.models.schemas import Requirement, RequirementSource, TestCase, TestCaseStatus
from healthtest.services.ai.errors import InvalidShapeError, TraceabilityError
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.ai.prompts import InputVariant, build_test_case_prompt
from healthtest.services.generation.extraction import ensure_text

logger = logging.getLogger(__name__)

GHERKIN_KEYWORDS = ("Given", "When", "Then", "And", "But")


class OrphanPolicy(str, Enum):
    REJECT = "reject"
    WARN = "warn"


def find_orphans(test_cases: list[TestCase], requirements: list[Requirement]) -> list[TestCase]:
    known = {r.id for r in requirements}
    return [tc for tc in test_cases if tc.requirement_id not in known]


def find_non_gherkin_steps(test_case: TestCase) -> list[str]:
    """Steps that do not open with a Gherkin keyword (advisory only)."""
    return [
        step for step in test_case.steps
        if step.lstrip().split(" ", 1)[0].rstrip(":,") not in GHERKIN_KEYWORDS
    ]


async def generate_test_cases(
    gateway: CompletionGateway,
    document: str,
    source: RequirementSource | str,
    requirements: list[Requirement],
    *,
    orphan_policy: Optional[OrphanPolicy] = None,
    now: Optional[datetime] = None,
) -> list[TestCase]:
    """Generate Draft test cases for ``requirements`` from ``document``.

    Args:
        gateway: completion gateway
        document: full requirement / API specification text
        source: provenance of the document; API specifications switch the prompt variant
        requirements: the requirement list test cases must link to
        orphan_policy: how to surface test cases with unknown requirement ids
        now: creation timestamp (defaults to the current UTC time)

    Raises:
        EmptyInputError, InvalidShapeError, TraceabilityError, and any gateway error
    """
    ensure_text(document)
    source = RequirementSource(source)
    orphan_policy = OrphanPolicy(orphan_policy or settings.ORPHAN_POLICY)

    variant = InputVariant.API_SPEC if source is RequirementSource.API_SPECIFICATION else InputVariant.GENERAL
    request = build_test_case_prompt(document, source.value, requirements, variant)

    data = await gateway.complete(request.prompt, request.shape)
    if not isinstance(data, list):
        raise InvalidShapeError("AI response is not in the expected array format.")

    # Creation time is stamped locally, never taken from the backend
    created = now or datetime.now(timezone.utc)
    try:
        test_cases = [
            TestCase.model_validate(
                {
                    **item,
                    "status": TestCaseStatus.DRAFT,
                    "source": source.value,
                    "dateCreated": created,
                }
            )
            for item in data
        ]
    except ValidationError as e:
        raise InvalidShapeError(details=[err["msg"] for err in e.errors()]) from e

    orphans = find_orphans(test_cases, requirements)
    if orphans:
        if orphan_policy is OrphanPolicy.REJECT:
            logger.error(
                "Rejecting generation: %d test case(s) reference unknown requirements", len(orphans)
            )
            raise TraceabilityError(
                [tc.id for tc in orphans],
                message=(
                    "Generated test cases reference unknown requirements: "
                    + ", ".join(f"{tc.id} -> {tc.requirement_id}" for tc in orphans)
                ),
            )
        for tc in orphans:
            logger.warning("Test case %s references unknown requirement %s", tc.id, tc.requirement_id)

    logger.info("Generated %d test case(s) for %d requirement(s)", len(test_cases), len(requirements))
    return test_cases
