from fastapi import APIRouter

from healthtest.api.v1.routes_generation import router as generation_router
from healthtest.api.v1.routes_testcases import router as testcases_router

# Every v1 endpoint lives under /api/v1
router = APIRouter(prefix="/api/v1")

router.include_router(generation_router)
router.include_router(testcases_router)
