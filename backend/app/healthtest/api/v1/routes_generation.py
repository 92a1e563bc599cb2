"""HealthTest - Generation API Routes

Requirement extraction, pre-generation analysis and the full generation run.
"""
from fastapi import APIRouter, Depends, Response

from healthtest.api.deps import get_gateway
from healthtest.api.errors import status_for_error
from healthtest.models.api_schemas import DocumentRequest, ExtractRequest, GenerateRequest, GenerateResponse
from healthtest.models.schemas import Requirement, RequirementAnalysis
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.generation import analyze_requirements, extract_requirements
from healthtest.services.orchestrator_service import GenerationOrchestrator

router = APIRouter(tags=["generation"])


@router.post("/generation/run", response_model=GenerateResponse, response_model_by_alias=True)
async def run_generation(
    req: GenerateRequest,
    response: Response,
    gateway: CompletionGateway = Depends(get_gateway),
):
    """Extract requirements and generate test cases in one transaction.

    The body carries the new records to append; on failure it carries the
    error and empty collections.
    """
    result = await GenerationOrchestrator(gateway).run(req.text, req.source)
    if not result.ok:
        response.status_code = status_for_error(result.error_type)
    return GenerateResponse(
        state=result.state,
        progress=result.progress,
        progress_history=result.progress_history,
        requirements=result.requirements,
        test_cases=result.test_cases,
        traceability=result.traceability,
        error=result.error,
    )


@router.post("/generation/analyze", response_model=RequirementAnalysis)
async def analyze(req: DocumentRequest, gateway: CompletionGateway = Depends(get_gateway)):
    """Summarize a document before generation."""
    return await analyze_requirements(gateway, req.text)


@router.post("/requirements/extract", response_model=list[Requirement])
async def extract(req: ExtractRequest, gateway: CompletionGateway = Depends(get_gateway)):
    """Extract requirements only, tagged with the request source."""
    extracted = await extract_requirements(gateway, req.text)
    return [r.with_source(req.source) for r in extracted]
