"""HealthTest - API dependencies"""
from functools import lru_cache

from healthtest.services.ai.gateway import CompletionGateway


@lru_cache
def get_gateway() -> CompletionGateway:
    """Process-wide gateway built from settings (stateless, safe to share)."""
    return CompletionGateway.from_settings()
