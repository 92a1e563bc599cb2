"""HealthTest - Domain Schemas

Requirements, test cases and the ephemeral results of the AI operations.
Every model serializes with camelCase aliases (the wire shape the completion
backend and API callers use) while accepting snake_case field names in code.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------
# Enumerations
# --------------------------

class RequirementSource(str, Enum):
    """How the requirement text entered the system."""
    DOCUMENT_UPLOAD = "Document Upload"
    MANUAL_ENTRY = "Manual Entry"
    ISSUE_TRACKER = "Issue Tracker"
    API_SPECIFICATION = "API Specification"

    @classmethod
    def _missing_(cls, value):
        # Short labels used by older clients
        aliases = {
            "jira": cls.ISSUE_TRACKER,
            "api spec": cls.API_SPECIFICATION,
        }
        if isinstance(value, str):
            return aliases.get(value.strip().lower())
        return None


class Priority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class TestCaseStatus(str, Enum):
    __test__ = False  # not a pytest class

    DRAFT = "Draft"
    ACTIVE = "Active"
    UNDER_REVIEW = "Under Review"
    COMPLETED = "Completed"
    PENDING = "Pending"


class RecommendedPriority(str, Enum):
    """Per-run execution priority produced by impact analysis."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class ImpactSuggestion(str, Enum):
    RUN_AS_IS = "Run as-is"
    REVIEW_RECOMMENDED = "Review recommended"
    UPDATE_REQUIRED = "Update required"
    POTENTIALLY_OBSOLETE = "Potentially obsolete"


class CoverageStatus(str, Enum):
    COVERED = "Covered"
    PARTIAL = "Partial"
    NOT_COVERED = "Not Covered"


class ProcessingState(str, Enum):
    IDLE = "IDLE"
    GENERATING = "GENERATING"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


# --------------------------
# Requirements
# --------------------------

class ExtractedRequirement(CamelModel):
    """A requirement as returned by extraction (no provenance yet)."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable identifier, e.g. REQ-001")
    description: str = Field(..., min_length=1)
    module: str = Field(default="General")

    def with_source(self, source: RequirementSource) -> "Requirement":
        return Requirement(id=self.id, description=self.description, module=self.module, source=source)


class Requirement(ExtractedRequirement):
    source: RequirementSource


class RequirementAnalysis(CamelModel):
    """High-level review summary shown before generation starts."""
    summary: str
    test_case_categories: list[str] = Field(default_factory=list)
    estimated_test_cases: str


# --------------------------
# Test cases
# --------------------------

class TestCase(CamelModel):
    __test__ = False

    id: str = Field(..., min_length=1)
    title: str
    description: str
    requirement_id: str = Field(..., min_length=1)
    tags: list[str] = Field(..., min_length=1, description="First tag is the primary category")
    priority: Priority
    status: TestCaseStatus = TestCaseStatus.DRAFT
    source: str
    compliance: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    expected_outcome: str
    date_created: datetime

    @property
    def category(self) -> str:
        return self.tags[0]

    @field_serializer("date_created")
    def serialize_dt(self, dt: datetime, _info):
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat().replace("+00:00", "Z")


class TestCasePatch(CamelModel):
    """Fields an Improve call may rewrite."""
    __test__ = False

    title: Optional[str] = None
    description: Optional[str] = None
    steps: Optional[list[str]] = None
    expected_outcome: Optional[str] = None
    priority: Optional[Priority] = None
    tags: Optional[list[str]] = Field(default=None, min_length=1)


class HealPatch(CamelModel):
    """Fields an Auto-Heal call may rewrite; an empty patch means no change."""
    title: Optional[str] = None
    description: Optional[str] = None
    steps: Optional[list[str]] = None
    expected_outcome: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class TagUpdate(BaseModel):
    mode: Literal["append", "overwrite"]
    values: list[str]


class BulkUpdatePayload(BaseModel):
    status: Optional[TestCaseStatus] = None
    priority: Optional[Priority] = None
    tags: Optional[TagUpdate] = None


# --------------------------
# AI operation results (ephemeral)
# --------------------------

class DuplicatePair(CamelModel):
    id: str
    test_case1_id: str
    test_case2_id: str
    similarity: float = Field(..., ge=80, le=100)
    rationale: str


class ImpactResult(CamelModel):
    test_case_id: str
    rationale: str
    recommended_priority: RecommendedPriority
    suggestion: ImpactSuggestion


# --------------------------
# Orchestration
# --------------------------

class GenerationProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=0, le=4)
    message: str
    progress: int = Field(..., ge=0, le=100)
