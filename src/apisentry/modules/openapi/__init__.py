"""OpenAPI document parsing."""

from .models import (
    PLACEHOLDER_RE,
    EndpointDescriptor,
    EndpointModel,
    ParameterSpec,
    ResponseSpec,
)
from .parser import OpenApiParser

__all__ = [
    "PLACEHOLDER_RE",
    "EndpointDescriptor",
    "EndpointModel",
    "OpenApiParser",
    "ParameterSpec",
    "ResponseSpec",
]
