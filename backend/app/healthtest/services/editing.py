"""HealthTest - Test Case Editing

Pure helpers applying edits to test cases: AI patches (improve / auto-heal),
bulk updates and duplicate merges. Inputs are never mutated; new objects are
returned. id and requirement_id are never touched.
"""
from __future__ import annotations

from healthtest.models.schemas import (
    BulkUpdatePayload,
    DuplicatePair,
    HealPatch,
    TestCase,
    TestCasePatch,
)


def apply_patch(test_case: TestCase, patch: TestCasePatch | HealPatch) -> TestCase:
    """Overlay the fields set in ``patch`` onto ``test_case``."""
    updates = patch.model_dump(exclude_none=True)
    if not updates:
        return test_case
    return test_case.model_copy(update=updates)


def apply_bulk_update(
    test_cases: list[TestCase],
    ids: set[str],
    payload: BulkUpdatePayload,
) -> list[TestCase]:
    """Set status / priority and append or overwrite tags on the selected test cases."""
    updated = []
    for tc in test_cases:
        if tc.id not in ids:
            updated.append(tc)
            continue

        changes: dict = {}
        if payload.status:
            changes["status"] = payload.status
        if payload.priority:
            changes["priority"] = payload.priority
        if payload.tags:
            if payload.tags.mode == "overwrite":
                tags = list(payload.tags.values)
            else:
                tags = list(dict.fromkeys([*tc.tags, *payload.tags.values]))
            # Primary category is mandatory
            if tags:
                changes["tags"] = tags
        updated.append(tc.model_copy(update=changes))
    return updated


def merge_duplicate(test_cases: list[TestCase], pair: DuplicatePair) -> list[TestCase]:
    """Keep the pair's first test case and drop the second."""
    return [tc for tc in test_cases if tc.id != pair.test_case2_id]
