"""HealthTest - AI integration

Prompt building, response shapes and the completion gateway.
"""
from .errors import (
    EmptyInputError,
    GenerationError,
    InvalidShapeError,
    MalformedResponseError,
    ServiceError,
    TraceabilityError,
)
from .gateway import BackendConfig, CompletionBackend, CompletionGateway, OpenAICompatibleBackend
from .shape import FieldSpec, FieldType, ResponseShape

__all__ = [
    "BackendConfig",
    "CompletionBackend",
    "CompletionGateway",
    "EmptyInputError",
    "FieldSpec",
    "FieldType",
    "GenerationError",
    "InvalidShapeError",
    "MalformedResponseError",
    "OpenAICompatibleBackend",
    "ResponseShape",
    "ServiceError",
    "TraceabilityError",
]
