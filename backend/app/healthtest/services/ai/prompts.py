"""HealthTest - Prompt Builder

Pure functions turning a domain intent into a PromptRequest: an instruction
string with explicit numbered rules plus the ResponseShape the gateway must
enforce on the answer.

Requirement extraction and test case generation each have two variants:
general requirements and API specifications (OpenAPI / Swagger). The variant
is chosen by classify_input(), which is independent of the builders.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from textwrap import dedent
from typing import Iterable

import yaml

from healthtest.models.schemas import (
    ImpactSuggestion,
    Priority,
    RecommendedPriority,
    Requirement,
    TestCase,
    TestCaseStatus,
)
from healthtest.services.ai.shape import (
    ResponseShape,
    array_of,
    number,
    obj,
    string,
    string_list,
)


@dataclass(frozen=True)
class PromptRequest:
    prompt: str
    shape: ResponseShape


# ================== input classification ==================

class InputVariant(str, Enum):
    GENERAL = "general"
    API_SPEC = "api_spec"


_SPEC_MARKER_RE = re.compile(r"""^\s{0,2}["']?(openapi|swagger)["']?\s*:""", re.MULTILINE)
_SECTION_MARKER_RE = re.compile(r"""^\s{0,2}["']?(paths|components|servers|info)["']?\s*:""", re.MULTILINE)


def classify_input(text: str) -> InputVariant:
    """Decide whether ``text`` is an API specification or prose requirements."""
    if _SPEC_MARKER_RE.search(text):
        return InputVariant.API_SPEC
    if len({m.group(1) for m in _SECTION_MARKER_RE.finditer(text)}) >= 2:
        return InputVariant.API_SPEC

    # Single-line JSON documents carry no line-start markers
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError:
        return InputVariant.GENERAL
    if isinstance(document, dict) and ({"openapi", "swagger"} & set(map(str, document))):
        return InputVariant.API_SPEC
    return InputVariant.GENERAL


# ================== shapes ==================

REQUIREMENT_ITEM = obj({
    "id": string("A unique identifier for the requirement, e.g. REQ-001."),
    "description": string("The full text of the requirement."),
    "module": string("A high-level module or feature area, e.g. 'Authentication', 'Patient Portal', 'Security'."),
})

ENDPOINT_ITEM = obj({
    "id": string("A unique identifier for the endpoint, e.g. API-001."),
    "description": string("HTTP method and path followed by what the endpoint does, e.g. 'GET /patients/{id} - Returns one patient'."),
    "module": string("The resource or tag the endpoint belongs to, e.g. 'Patients'."),
})

REQUIREMENTS_SHAPE = ResponseShape("requirements", array_of(REQUIREMENT_ITEM))
ENDPOINTS_SHAPE = ResponseShape("endpoints", array_of(ENDPOINT_ITEM))

ANALYSIS_SHAPE = ResponseShape(
    "requirement_analysis",
    obj({
        "summary": string("A concise, two-sentence summary of the requirements."),
        "testCaseCategories": string_list(
            "Applicable test case categories. Common values are Functional, Security, UI/UX, Negative, Performance."
        ),
        "estimatedTestCases": string("An estimated range for the number of test cases, e.g. '18-24'."),
    }),
)

_PRIORITIES = [p.value for p in Priority]


def make_test_case_shape(source: str) -> ResponseShape:
    item = obj({
        "id": string("A unique identifier that embeds the requirement id, e.g. TC-REQ-001-001."),
        "title": string("A short, descriptive title, e.g. 'User Authentication - Valid Credentials'."),
        "description": string("A one-sentence summary of what the test case verifies."),
        "requirementId": string("The id of the requirement this test case covers. Must come from the supplied list."),
        "tags": string_list(
            "Classification tags; the first is the primary category "
            "(Functional, Security, Performance, Integration, UI/UX, Negative, Compliance)."
        ),
        "priority": string("Priority based on requirement criticality and impact.", enum=_PRIORITIES),
        "status": string("The initial status. Always 'Draft'.", enum=[TestCaseStatus.DRAFT.value]),
        "source": string(f"The origin of the requirement. Set this to '{source}'."),
        "compliance": string_list("Compliance standards inferred from the text, e.g. HIPAA, GDPR, FDA."),
        "steps": string_list("Ordered steps in Gherkin syntax, each starting with Given, When, Then, And or But."),
        "expectedOutcome": string("The expected result after executing the steps."),
    })
    return ResponseShape("test_cases", array_of(item))


IMPROVE_SHAPE = ResponseShape(
    "improved_test_case",
    obj({
        "title": string("Improved title."),
        "description": string("Improved one-sentence description."),
        "steps": string_list("Improved Gherkin steps."),
        "expectedOutcome": string("Improved expected outcome."),
        "priority": string("Priority, unchanged unless clearly wrong.", enum=_PRIORITIES),
        "tags": string_list("Tags; keep the primary category first."),
    }),
)

AUTOMATE_SHAPE = ResponseShape(
    "automation_script",
    obj({"script": string("A line-oriented automation script implementing the test case.")}),
)

DUPLICATES_SHAPE = ResponseShape(
    "duplicate_pairs",
    array_of(
        obj({
            "testCase1Id": string("Id of the first test case in the pair."),
            "testCase2Id": string("Id of the second test case in the pair."),
            "similarity": number("Similarity score from 0 to 100.", minimum=0, maximum=100),
            "rationale": string("Why the two test cases are considered duplicates."),
        })
    ),
)

IMPACT_SHAPE = ResponseShape(
    "impact_analysis",
    array_of(
        obj({
            "testCaseId": string("Id of an impacted test case."),
            "rationale": string("How the change affects this test case."),
            "recommendedPriority": string(
                "Execution priority for this change: P0 must run, P1 should run, P2 can run later.",
                enum=[p.value for p in RecommendedPriority],
            ),
            "suggestion": string("Suggested action.", enum=[s.value for s in ImpactSuggestion]),
        })
    ),
)

HEAL_SHAPE = ResponseShape(
    "healed_fields",
    obj({
        "title": string("Updated title, only if it must change.", required=False),
        "description": string("Updated description, only if it must change.", required=False),
        "steps": string_list("Updated Gherkin steps, only if they must change.", required=False),
        "expectedOutcome": string("Updated expected outcome, only if it must change.", required=False),
    }),
)


# ================== helpers ==================

def _fenced(text: str) -> str:
    return f"---\n{text}\n---"


def format_requirement_list(requirements: Iterable[Requirement]) -> str:
    return "\n".join(f"- {r.id}: {r.description}" for r in requirements)


def _test_case_json(test_case: TestCase, *, fields: tuple[str, ...] | None = None) -> str:
    data = test_case.model_dump(by_alias=True, mode="json")
    if fields is not None:
        data = {k: v for k, v in data.items() if k in fields}
    return json.dumps(data, indent=2, ensure_ascii=False)


_SUMMARY_FIELDS = ("id", "title", "description", "requirementId", "tags", "steps", "expectedOutcome")


# ================== builders ==================

def build_analysis_prompt(document: str) -> PromptRequest:
    prompt = dedent(
        """
        You are an expert QA analyst. Analyze the following software requirements and provide a high-level summary.
        1. Summary: Write a brief, two-sentence summary of the core functionality described.
        2. Categories: Identify the types of testing that would be relevant from this list: Functional, Security, UI/UX, Negative, Performance.
        3. Estimation: Provide a realistic range for how many test cases could be generated (e.g. "10-15").

        Requirements Document Content:
        """
    ).strip()
    return PromptRequest(f"{prompt}\n{_fenced(document)}", ANALYSIS_SHAPE)


def build_extraction_prompt(document: str, variant: InputVariant | None = None) -> PromptRequest:
    variant = variant or classify_input(document)
    if variant is InputVariant.API_SPEC:
        prompt = dedent(
            """
            You are a senior API analyst. Analyze the following OpenAPI / Swagger specification and extract every endpoint as a testable unit.

            Instructions:
            1. Identify: Treat each HTTP method + path combination as one unit (e.g. GET /patients, POST /patients).
            2. ID Generation: Assign a unique, sequential ID to each endpoint (API-001, API-002, ...).
            3. Description: Start with the method and path, then summarize the operation, its parameters, request body and documented responses.
            4. Module: Use the endpoint's tag or top-level resource as the module (e.g. 'Patients', 'Appointments').

            API Specification Content:
            """
        ).strip()
        return PromptRequest(f"{prompt}\n{_fenced(document)}", ENDPOINTS_SHAPE)

    prompt = dedent(
        """
        You are a senior business analyst specializing in medical software.
        Analyze the following software requirements document and extract each distinct functional or non-functional requirement.

        Instructions:
        1. Identify: Read through the document and identify individual, testable requirements.
        2. ID Generation: Assign a unique, sequential ID to each requirement (REQ-001, REQ-002, ...).
        3. Description: Capture the full text of the requirement.
        4. Module: Categorize the requirement into a high-level module like 'Authentication', 'Clinical', 'Security', or 'Integrations'.

        Requirements Document Content:
        """
    ).strip()
    return PromptRequest(f"{prompt}\n{_fenced(document)}", REQUIREMENTS_SHAPE)


def build_test_case_prompt(
    document: str,
    source: str,
    requirements: list[Requirement],
    variant: InputVariant = InputVariant.GENERAL,
) -> PromptRequest:
    example_id = requirements[0].id if requirements else "REQ-001"
    requirement_list = format_requirement_list(requirements)

    if variant is InputVariant.API_SPEC:
        focus = dedent(
            f"""
            For each endpoint in the list, create test cases covering the response classes of the API:
            - 2xx success with valid input
            - 4xx invalid input (missing or malformed parameters and bodies)
            - 401 / 403 authentication and authorization failures
            - 404 not found for unknown resources
            - 422 validation errors
            - security probes such as SQL or script injection in parameters
            Use the endpoint id from the list (e.g. {example_id}) as requirementId.
            """
        ).strip()
        document_label = "API Specification Content:"
    else:
        focus = (
            "For each requirement, create multiple test cases covering positive, negative, "
            "and edge-case scenarios."
        )
        document_label = "Requirements Document Content:"

    rules = dedent(
        f"""
        Instructions:
        1. Requirement ID: YOU MUST link each test case to one of the requirement IDs from the list above (e.g. {example_id}). Never invent an ID. THIS IS CRITICAL for traceability.
        2. ID Generation: Create a unique ID for each test case that includes the requirement ID (e.g. TC-{example_id}-001).
        3. Title: Write a short, descriptive title.
        4. Tags: Give each test case several tags. The FIRST tag is the primary category and must be one of Functional, Security, Performance, Integration, UI/UX, Negative, Compliance. Balance the categories; do not label everything Functional.
        5. Priority: Assign Critical, High, Medium or Low according to the requirement's criticality and patient-safety impact.
        6. Status: Set the status of every generated test case to 'Draft'.
        7. Source: Set the source of every test case to '{source}'.
        8. Compliance: Identify relevant medical or privacy compliance standards such as HIPAA, GDPR, FDA, CLIA, SOC2. Use an empty list when none apply.
        9. Gherkin Syntax: Write every step with a leading Given, When, Then, And or But keyword, in execution order.
        10. Traceability: Every test case must be detailed, unambiguous and directly traceable to a requirement from the list.
        """
    ).strip()

    prompt = "\n\n".join(
        [
            "You are an expert QA engineer specializing in medical software validation for HealthTest AI.",
            "First, review this list of extracted requirements:\n"
            f"--- (Requirements List) ---\n{requirement_list}\n---",
            "Now, based on the full document provided below, generate a comprehensive list of structured test cases.\n"
            + focus,
            rules,
            f"{document_label}\n{_fenced(document)}",
        ]
    )
    return PromptRequest(prompt, make_test_case_shape(source))


def build_improve_prompt(test_case: TestCase) -> PromptRequest:
    prompt = dedent(
        """
        You are a senior QA engineer. Refactor the following test case for clarity, maintainability and parameterization.

        Rules:
        1. Keep the intent and the requirement coverage of the test case unchanged.
        2. Rewrite the title and description to be precise and unambiguous.
        3. Rewrite the steps in Gherkin syntax (Given / When / Then / And / But); parameterize concrete data where it helps reuse.
        4. Make the expected outcome observable and verifiable.
        5. Keep the priority unless it clearly contradicts the content.
        6. Keep the primary category as the first tag; add or remove secondary tags only when justified.

        Test Case:
        """
    ).strip()
    return PromptRequest(f"{prompt}\n{_test_case_json(test_case)}", IMPROVE_SHAPE)


def build_automate_prompt(test_case: TestCase, framework: str = "Playwright") -> PromptRequest:
    prompt = dedent(
        f"""
        You are a test automation engineer. Convert the following manual test case into a {framework}-style automation script.

        Rules:
        1. Produce one action or assertion per line, in the order of the Gherkin steps.
        2. Precede each block with a comment naming the Gherkin step it implements.
        3. Use descriptive placeholder selectors and test data where the test case does not specify them.
        4. End with assertions that verify the expected outcome.
        5. Return only the script text in the 'script' field.

        Test Case:
        """
    ).strip()
    return PromptRequest(f"{prompt}\n{_test_case_json(test_case, fields=_SUMMARY_FIELDS)}", AUTOMATE_SHAPE)


def build_duplicates_prompt(test_cases: list[TestCase]) -> PromptRequest:
    cases = "\n".join(_test_case_json(tc, fields=_SUMMARY_FIELDS) for tc in test_cases)
    prompt = dedent(
        """
        You are a QA lead cleaning up a test repository. Compare the following test cases pairwise and find duplicates.

        Rules:
        1. Two test cases are duplicates when they verify the same behaviour with substantially the same steps and outcome.
        2. Only report pairs with a similarity of 80 or higher (0-100 scale).
        3. Report each pair once; never pair a test case with itself.
        4. Use the exact test case ids from the list.
        5. Give a one-sentence rationale per pair.
        6. Return an empty array when there are no duplicates.

        Test Cases:
        """
    ).strip()
    return PromptRequest(f"{prompt}\n{cases}", DUPLICATES_SHAPE)


def build_impact_prompt(change_description: str, test_cases: list[TestCase]) -> PromptRequest:
    cases = "\n".join(_test_case_json(tc, fields=_SUMMARY_FIELDS) for tc in test_cases)
    prompt = dedent(
        """
        You are a test impact analysis expert. Given a description of a code or requirement change, select the test cases affected by it.

        Rules:
        1. Only return test cases that are actually affected; unrelated test cases must be omitted.
        2. Assign each a recommended priority for this change: P0 (must run), P1 (should run), P2 (run if time allows).
        3. Suggest one action: 'Run as-is', 'Review recommended', 'Update required' or 'Potentially obsolete'.
        4. Explain the impact in a one-sentence rationale.
        5. Use the exact test case ids from the list.
        6. Return an empty array when no test case is affected.
        """
    ).strip()
    return PromptRequest(
        f"{prompt}\n\nChange Description:\n{_fenced(change_description)}\n\nTest Cases:\n{cases}",
        IMPACT_SHAPE,
    )


def build_heal_prompt(test_case: TestCase, change_description: str, impact_rationale: str) -> PromptRequest:
    prompt = dedent(
        """
        You are a QA engineer repairing a test case broken by an application change.

        Rules:
        1. Update only what the change requires; leave everything else as it is.
        2. Return ONLY the fields whose content changes (title, description, steps, expectedOutcome).
        3. Return an empty object when the test case needs no change.
        4. Keep steps in Gherkin syntax and in execution order.
        """
    ).strip()
    return PromptRequest(
        "\n\n".join(
            [
                prompt,
                f"Change Description:\n{_fenced(change_description)}",
                f"Impact Rationale:\n{impact_rationale}",
                f"Test Case:\n{_test_case_json(test_case, fields=_SUMMARY_FIELDS)}",
            ]
        ),
        HEAL_SHAPE,
    )
