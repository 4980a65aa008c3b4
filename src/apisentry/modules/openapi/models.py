"""Parsed, read-only view of an OpenAPI document."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


@dataclass(frozen=True)
class ParameterSpec:
    """A single documented operation parameter."""

    name: str
    location: str
    required: bool = False
    schema_type: str | None = None
    example: Any = None


@dataclass(frozen=True)
class ResponseSpec:
    """Documented response for one status code (or ``default``)."""

    description: str = ""
    content_types: tuple[str, ...] = ()
    schema: Mapping[str, Any] | None = None
    headers: tuple[str, ...] = ()


@dataclass(frozen=True)
class EndpointDescriptor:
    """One (path, method) operation from the API description."""

    path: str
    method: str
    parameters: tuple[ParameterSpec, ...] = ()
    request_body_schema: Mapping[str, Any] | None = None
    expected_responses: Mapping[str, ResponseSpec] = field(default_factory=dict)
    operation_id: str | None = None
    summary: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    deprecated: bool = False
    security: tuple[Mapping[str, Any], ...] | None = None

    @property
    def has_placeholder(self) -> bool:
        return PLACEHOLDER_RE.search(self.path) is not None

    def first_placeholder(self) -> str | None:
        match = PLACEHOLDER_RE.search(self.path)
        return match.group(1) if match else None

    def params_in(self, *locations: str) -> list[ParameterSpec]:
        return [param for param in self.parameters if param.location in locations]

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class EndpointModel:
    """Everything the scanner needs from a parsed API description."""

    title: str = ""
    version: str = ""
    description: str = ""
    servers: tuple[str, ...] = ()
    endpoints: tuple[EndpointDescriptor, ...] = ()
    security_schemes: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    global_security: tuple[Mapping[str, Any], ...] = ()

    def paths(self) -> list[str]:
        """Distinct paths in document order."""
        seen: dict[str, None] = {}
        for endpoint in self.endpoints:
            seen.setdefault(endpoint.path, None)
        return list(seen)

    def operations_for(self, path: str) -> dict[str, EndpointDescriptor]:
        return {ep.method: ep for ep in self.endpoints if ep.path == path}

    @property
    def total_endpoints(self) -> int:
        return len(self.endpoints)

    def effective_security(self, endpoint: EndpointDescriptor) -> tuple[Mapping[str, Any], ...]:
        """Security requirements applying to an operation (operation overrides global)."""
        if endpoint.security is not None:
            return endpoint.security
        return self.global_security
