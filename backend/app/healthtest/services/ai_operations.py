"""HealthTest - Post-Generation AI Operations

Stateless operations over existing test cases, all sharing the completion
gateway: improve, automate, duplicate detection, impact analysis and
auto-heal. Gateway errors propagate unchanged; callers surface them and let
the user retry.
"""
from __future__ import annotations

import logging

from pydantic import ValidationError

from healthtest.models.schemas import (
    DuplicatePair,
    HealPatch,
    ImpactResult,
    TestCase,
    TestCasePatch,
)
from healthtest.services.ai.errors import InvalidShapeError
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.ai.prompts import (
    build_automate_prompt,
    build_duplicates_prompt,
    build_heal_prompt,
    build_impact_prompt,
    build_improve_prompt,
)
from healthtest.services.generation.extraction import ensure_text

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 80


def _validate(model, data):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidShapeError(details=[err["msg"] for err in e.errors()]) from e


async def improve_test_case(gateway: CompletionGateway, test_case: TestCase) -> TestCasePatch:
    """Rewrite title, description, steps, expected outcome, priority and tags.

    The returned patch never carries id, status, source, compliance,
    requirement id or creation date; merge it with editing.apply_patch().
    """
    request = build_improve_prompt(test_case)
    data = await gateway.complete(request.prompt, request.shape)
    return _validate(TestCasePatch, data)


async def automate_test_case(gateway: CompletionGateway, test_case: TestCase, framework: str = "Playwright") -> str:
    """Return a line-oriented pseudo-script; it is descriptive text, never executed."""
    request = build_automate_prompt(test_case, framework)
    data = await gateway.complete(request.prompt, request.shape)
    return data["script"]


async def detect_duplicates(gateway: CompletionGateway, test_cases: list[TestCase]) -> list[DuplicatePair]:
    """Find near-duplicate pairs (similarity >= 80).

    Pairs are normalized so test_case1_id is the lexicographically smaller
    id. Self-pairs, unknown ids and repeated pairs are dropped. "No
    duplicates" is an empty list.
    """
    if len(test_cases) < 2:
        return []

    request = build_duplicates_prompt(test_cases)
    data = await gateway.complete(request.prompt, request.shape)

    known = {tc.id for tc in test_cases}
    seen: set[tuple[str, str]] = set()
    pairs: list[DuplicatePair] = []
    for item in data:
        first, second = item["testCase1Id"], item["testCase2Id"]
        if first == second or first not in known or second not in known:
            logger.warning("Ignoring duplicate pair %s / %s", first, second)
            continue
        if item["similarity"] < DUPLICATE_THRESHOLD:
            continue
        id1, id2 = sorted((first, second))
        if (id1, id2) in seen:
            continue
        seen.add((id1, id2))
        pairs.append(
            DuplicatePair(
                id=f"{id1}-{id2}",
                test_case1_id=id1,
                test_case2_id=id2,
                similarity=item["similarity"],
                rationale=item["rationale"],
            )
        )

    pairs.sort(key=lambda p: p.similarity, reverse=True)
    logger.info("Duplicate detection over %d test case(s): %d pair(s)", len(test_cases), len(pairs))
    return pairs


async def analyze_impact(
    gateway: CompletionGateway,
    change_description: str,
    test_cases: list[TestCase],
) -> list[ImpactResult]:
    """Select the test cases affected by a change, most urgent (P0) first.

    The recommended priority is per-run and independent of the stored
    test case priority. An empty list means the change impacts nothing.
    """
    ensure_text(change_description)
    if not test_cases:
        return []

    request = build_impact_prompt(change_description, test_cases)
    data = await gateway.complete(request.prompt, request.shape)

    known = {tc.id for tc in test_cases}
    results: list[ImpactResult] = []
    seen: set[str] = set()
    for item in data:
        result = _validate(ImpactResult, item)
        if result.test_case_id not in known:
            logger.warning("Impact analysis referenced unknown test case %s", result.test_case_id)
            continue
        if result.test_case_id in seen:
            continue
        seen.add(result.test_case_id)
        results.append(result)

    results.sort(key=lambda r: int(r.recommended_priority.value[1:]))
    return results


async def heal_test_case(
    gateway: CompletionGateway,
    test_case: TestCase,
    change_description: str,
    impact_rationale: str,
) -> HealPatch:
    """Patch a test case for a change; only fields that actually differ are kept."""
    request = build_heal_prompt(test_case, change_description, impact_rationale)
    data = await gateway.complete(request.prompt, request.shape)
    proposed = _validate(HealPatch, data)

    changed = {
        name: value
        for name, value in proposed.model_dump(exclude_none=True).items()
        if value != getattr(test_case, name)
    }
    patch = HealPatch(**changed)
    if patch.is_empty():
        logger.info("Auto-heal: %s needs no change", test_case.id)
    return patch
