"""
HealthTest test configuration

Provides a scripted completion backend wrapped in the real CompletionGateway,
so every test goes through JSON parsing and shape validation, plus sample
requirements / test cases and an API client whose gateway is overridden.
"""
import json
from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from healthtest.api.deps import get_gateway
from healthtest.main import app
from healthtest.models.schemas import Priority, Requirement, RequirementSource, TestCase, TestCaseStatus
from healthtest.services.ai.gateway import CompletionGateway


class ScriptedBackend:
    """Completion backend replaying queued responses.

    Each queued item is either raw text, a JSON-serializable value (dumped to
    text), or an exception instance to raise. Schemas it receives must be JSON
    serializable, like the real backend's.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def generate(self, prompt: str, schema: dict[str, Any], schema_name: str) -> str:
        json.dumps(schema)  # must be sendable as-is
        self.calls.append({"prompt": prompt, "schema": schema, "schema_name": schema_name})
        if not self.responses:
            raise AssertionError(f"Unexpected completion call for {schema_name}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def gateway(backend):
    return CompletionGateway(backend)


CREATED = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def requirements():
    return [
        Requirement(id="REQ-001", description="Patients can log in with email and password.", module="Authentication", source=RequirementSource.MANUAL_ENTRY),
        Requirement(id="REQ-002", description="Accounts lock after five failed login attempts.", module="Security", source=RequirementSource.MANUAL_ENTRY),
        Requirement(id="REQ-003", description="Clinicians can view lab results for their patients.", module="Clinical", source=RequirementSource.MANUAL_ENTRY),
    ]


def _ai_test_case(tc_id: str, requirement_id: str, **overrides) -> dict:
    """A test case as the completion backend returns it (camelCase, no dateCreated)."""
    data = {
        "id": tc_id,
        "title": f"Verify {requirement_id}",
        "description": f"Checks behaviour required by {requirement_id}.",
        "requirementId": requirement_id,
        "tags": ["Functional", "Authentication"],
        "priority": "High",
        "status": "Draft",
        "source": "Manual Entry",
        "compliance": ["HIPAA"],
        "steps": [
            "Given a registered patient",
            "When the patient submits valid credentials",
            "Then the dashboard is displayed",
        ],
        "expectedOutcome": "The patient is logged in.",
    }
    data.update(overrides)
    return data


@pytest.fixture
def ai_test_case():
    return _ai_test_case


@pytest.fixture
def make_test_case():
    def _make(tc_id: str = "TC-REQ-001-001", requirement_id: str = "REQ-001", **overrides) -> TestCase:
        fields = dict(
            id=tc_id,
            title="Patient Login - Valid Credentials",
            description="Verifies a patient can log in with valid credentials.",
            requirement_id=requirement_id,
            tags=["Functional", "Authentication"],
            priority=Priority.CRITICAL,
            status=TestCaseStatus.ACTIVE,
            source="Manual Entry",
            compliance=["HIPAA"],
            steps=[
                "Given the patient is on the login page",
                "When they enter valid credentials",
                "Then they are redirected to the dashboard",
            ],
            expected_outcome="The patient dashboard is displayed.",
            date_created=CREATED,
        )
        fields.update(overrides)
        return TestCase(**fields)

    return _make


@pytest.fixture
def client(gateway):
    """Test client whose completion gateway is the scripted one."""
    old_overrides = app.dependency_overrides.copy()
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides = old_overrides
