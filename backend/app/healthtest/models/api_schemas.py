"""HealthTest - API Schemas

Request / response bodies for the v1 HTTP API.
"""
from __future__ import annotations

from typing import Optional

from pydantic import Field

from healthtest.models.schemas import (
    GenerationProgress,
    ProcessingState,
    Requirement,
    RequirementSource,
    TestCase,
    CamelModel,
)
from healthtest.services.traceability import TraceabilityMatrix


# ============================================================
# Request Schemas
# ============================================================

class DocumentRequest(CamelModel):
    text: str = Field(..., description="Plain requirement or API specification text")


class GenerateRequest(DocumentRequest):
    source: RequirementSource = RequirementSource.MANUAL_ENTRY


class ExtractRequest(DocumentRequest):
    source: RequirementSource = RequirementSource.MANUAL_ENTRY


class TestCaseRequest(CamelModel):
    test_case: TestCase


class AutomateRequest(TestCaseRequest):
    framework: str = "Playwright"


class TestCaseSetRequest(CamelModel):
    test_cases: list[TestCase]


class ImpactRequest(TestCaseSetRequest):
    change_description: str


class HealRequest(TestCaseRequest):
    change_description: str
    impact_rationale: str


class TraceabilityRequest(CamelModel):
    requirements: list[Requirement]
    test_cases: list[TestCase] = Field(default_factory=list)


# ============================================================
# Response Schemas
# ============================================================

class GenerateResponse(CamelModel):
    state: ProcessingState
    progress: GenerationProgress
    progress_history: list[GenerationProgress]
    requirements: list[Requirement]
    test_cases: list[TestCase]
    traceability: Optional[TraceabilityMatrix] = None
    error: Optional[str] = None


class AutomateResponse(CamelModel):
    script: str


class ErrorResponse(CamelModel):
    error: str
    error_type: str
    details: list[str] = Field(default_factory=list)
