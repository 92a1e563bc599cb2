"""HealthTest - Test Case AI Routes

Post-generation operations over test cases supplied in the request body.
Nothing is stored; callers merge the returned patches themselves.
"""
from fastapi import APIRouter, Depends

from healthtest.api.deps import get_gateway
from healthtest.models.api_schemas import (
    AutomateRequest,
    AutomateResponse,
    HealRequest,
    ImpactRequest,
    TestCaseRequest,
    TestCaseSetRequest,
    TraceabilityRequest,
)
from healthtest.models.schemas import DuplicatePair, HealPatch, ImpactResult, TestCasePatch
from healthtest.services import ai_operations
from healthtest.services.ai.gateway import CompletionGateway
from healthtest.services.traceability import TraceabilityMatrix, build_traceability

router = APIRouter(tags=["testcases"])


@router.post("/testcases/improve", response_model=TestCasePatch, response_model_exclude_none=True)
async def improve(req: TestCaseRequest, gateway: CompletionGateway = Depends(get_gateway)):
    return await ai_operations.improve_test_case(gateway, req.test_case)


@router.post("/testcases/automate", response_model=AutomateResponse)
async def automate(req: AutomateRequest, gateway: CompletionGateway = Depends(get_gateway)):
    script = await ai_operations.automate_test_case(gateway, req.test_case, req.framework)
    return AutomateResponse(script=script)


@router.post("/testcases/duplicates", response_model=list[DuplicatePair])
async def duplicates(req: TestCaseSetRequest, gateway: CompletionGateway = Depends(get_gateway)):
    return await ai_operations.detect_duplicates(gateway, req.test_cases)


@router.post("/testcases/impact", response_model=list[ImpactResult])
async def impact(req: ImpactRequest, gateway: CompletionGateway = Depends(get_gateway)):
    return await ai_operations.analyze_impact(gateway, req.change_description, req.test_cases)


@router.post("/testcases/heal", response_model=HealPatch, response_model_exclude_none=True)
async def heal(req: HealRequest, gateway: CompletionGateway = Depends(get_gateway)):
    """Changed fields only; an empty object means no change is needed."""
    return await ai_operations.heal_test_case(
        gateway, req.test_case, req.change_description, req.impact_rationale
    )


@router.post("/traceability", response_model=TraceabilityMatrix)
def traceability(req: TraceabilityRequest):
    return build_traceability(req.requirements, req.test_cases)
