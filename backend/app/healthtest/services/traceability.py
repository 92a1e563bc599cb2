"""HealthTest - Traceability Matrix

Links requirements to the test cases that cover them and derives per
requirement coverage, highest linked priority and compliance tags.
"""
from __future__ import annotations

from collections import defaultdict

from pydantic import BaseModel, Field

from healthtest.models.schemas import (
    PRIORITY_RANK,
    CoverageStatus,
    Priority,
    Requirement,
    TestCase,
)


class RequirementTraceability(BaseModel):
    requirement: Requirement
    linked_test_case_ids: list[str] = Field(default_factory=list)
    status: CoverageStatus
    priority: Priority
    compliance: list[str] = Field(default_factory=list)


class TraceabilityStats(BaseModel):
    total: int
    covered: int
    partial: int
    not_covered: int
    coverage_percent: float
    orphan_test_case_ids: list[str] = Field(default_factory=list)


class TraceabilityMatrix(BaseModel):
    rows: list[RequirementTraceability]
    stats: TraceabilityStats


def coverage_status(linked_count: int) -> CoverageStatus:
    if linked_count > 1:
        return CoverageStatus.COVERED
    if linked_count == 1:
        return CoverageStatus.PARTIAL
    return CoverageStatus.NOT_COVERED


def build_traceability(requirements: list[Requirement], test_cases: list[TestCase]) -> TraceabilityMatrix:
    by_requirement: dict[str, list[TestCase]] = defaultdict(list)
    for tc in test_cases:
        by_requirement[tc.requirement_id].append(tc)

    rows = []
    for req in requirements:
        linked = by_requirement.get(req.id, [])
        highest = min((tc.priority for tc in linked), key=PRIORITY_RANK.__getitem__, default=Priority.LOW)
        compliance = list(dict.fromkeys(tag for tc in linked for tag in tc.compliance))
        rows.append(
            RequirementTraceability(
                requirement=req,
                linked_test_case_ids=[tc.id for tc in linked],
                status=coverage_status(len(linked)),
                priority=highest,
                compliance=compliance,
            )
        )

    known = {r.id for r in requirements}
    counts = {status: 0 for status in CoverageStatus}
    for row in rows:
        counts[row.status] += 1
    # A partially covered requirement counts half
    weighted = counts[CoverageStatus.COVERED] + 0.5 * counts[CoverageStatus.PARTIAL]

    stats = TraceabilityStats(
        total=len(rows),
        covered=counts[CoverageStatus.COVERED],
        partial=counts[CoverageStatus.PARTIAL],
        not_covered=counts[CoverageStatus.NOT_COVERED],
        coverage_percent=round(weighted / len(rows) * 100, 1) if rows else 0.0,
        orphan_test_case_ids=[tc.id for tc in test_cases if tc.requirement_id not in known],
    )
    return TraceabilityMatrix(rows=rows, stats=stats)
