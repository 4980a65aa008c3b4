"""Load OpenAPI 3 / Swagger 2 documents from a URL, file or raw text."""

import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import httpx
import yaml

from apisentry.errors import ParseError

from .models import HTTP_METHODS, EndpointDescriptor, EndpointModel, ParameterSpec, ResponseSpec

logger = logging.getLogger(__name__)

MAX_REF_DEPTH = 32


class OpenApiParser:
    """Turn an API description into an :class:`EndpointModel`.

    Only local ``#/...`` references are resolved. Cyclic schemas are cut
    off at ``MAX_REF_DEPTH``.
    """

    def __init__(self, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    async def parse(self, source: str) -> EndpointModel:
        text = await self._load(source)
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid API description: {exc}") from exc
        if not isinstance(document, dict):
            raise ParseError("API description must be a JSON or YAML object")
        if "openapi" not in document and "swagger" not in document:
            raise ParseError("Document is missing the 'openapi' or 'swagger' version field")
        return self.build_model(document)

    async def _load(self, source: str) -> str:
        stripped = source.strip()
        if stripped.startswith(("http://", "https://")):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, follow_redirects=True, transport=self.transport
                ) as client:
                    response = await client.get(stripped)
                    response.raise_for_status()
                    return response.text
            except httpx.HTTPError as exc:
                raise ParseError(f"Failed to fetch API description from {stripped}: {exc}") from exc

        if "\n" not in stripped and not stripped.startswith("{"):
            path = Path(stripped).expanduser()
            if path.is_file():
                try:
                    return path.read_text(encoding="utf-8")
                except OSError as exc:
                    raise ParseError(f"Cannot read {path}: {exc}") from exc
            if path.suffix.lower() in (".json", ".yaml", ".yml"):
                raise ParseError(f"API description file not found: {path}")
        return source

    def build_model(self, document: Mapping[str, Any]) -> EndpointModel:
        resolver = _RefResolver(document)
        info = document.get("info") or {}
        endpoints: list[EndpointDescriptor] = []

        for path, path_item in (document.get("paths") or {}).items():
            path_item = resolver.resolve(path_item)
            if not isinstance(path_item, Mapping):
                continue
            shared_params = path_item.get("parameters") or []
            for method_name, operation in path_item.items():
                method = str(method_name).upper()
                if method not in HTTP_METHODS or not isinstance(operation, Mapping):
                    continue
                endpoints.append(
                    self._build_endpoint(str(path), method, operation, shared_params, resolver)
                )

        if "components" in document:
            schemes = (document.get("components") or {}).get("securitySchemes") or {}
        else:
            schemes = document.get("securityDefinitions") or {}

        return EndpointModel(
            title=str(info.get("title") or ""),
            version=str(info.get("version") or ""),
            description=str(info.get("description") or ""),
            servers=tuple(
                str(server.get("url"))
                for server in document.get("servers") or []
                if isinstance(server, Mapping) and server.get("url")
            ),
            endpoints=tuple(endpoints),
            security_schemes=MappingProxyType(
                {name: resolver.resolve(scheme) for name, scheme in schemes.items()}
            ),
            global_security=tuple(document.get("security") or ()),
        )

    def _build_endpoint(
        self,
        path: str,
        method: str,
        operation: Mapping[str, Any],
        shared_params: list[Any],
        resolver: "_RefResolver",
    ) -> EndpointDescriptor:
        merged: dict[tuple[str, str], ParameterSpec] = {}
        for raw in list(shared_params) + list(operation.get("parameters") or []):
            param = resolver.resolve(raw)
            if not isinstance(param, Mapping) or "name" not in param:
                continue
            spec = self._build_parameter(param, resolver)
            merged[(spec.name, spec.location)] = spec

        security = operation.get("security")
        return EndpointDescriptor(
            path=path,
            method=method,
            parameters=tuple(merged.values()),
            request_body_schema=self._request_body_schema(operation, resolver),
            expected_responses=MappingProxyType(self._responses(operation, resolver)),
            operation_id=operation.get("operationId"),
            summary=str(operation.get("summary") or ""),
            description=str(operation.get("description") or ""),
            tags=tuple(operation.get("tags") or ()),
            deprecated=bool(operation.get("deprecated", False)),
            security=tuple(security) if security is not None else None,
        )

    def _build_parameter(self, param: Mapping[str, Any], resolver: "_RefResolver") -> ParameterSpec:
        schema = resolver.resolve(param.get("schema") or {})
        example = param.get("example")
        if example is None and isinstance(schema, Mapping):
            example = schema.get("example")
        schema_type = schema.get("type") if isinstance(schema, Mapping) else None
        return ParameterSpec(
            name=str(param["name"]),
            location=str(param.get("in") or "query"),
            required=bool(param.get("required", False)),
            schema_type=schema_type or param.get("type"),
            example=example,
        )

    def _request_body_schema(
        self, operation: Mapping[str, Any], resolver: "_RefResolver"
    ) -> Mapping[str, Any] | None:
        body = resolver.resolve(operation.get("requestBody"))
        if isinstance(body, Mapping):
            content = body.get("content") or {}
            media = content.get("application/json") or next(iter(content.values()), None)
            if isinstance(media, Mapping) and media.get("schema") is not None:
                return resolver.expand(media["schema"])
            return None
        # Swagger 2 body parameter
        for raw in operation.get("parameters") or []:
            param = resolver.resolve(raw)
            if isinstance(param, Mapping) and param.get("in") == "body" and param.get("schema"):
                return resolver.expand(param["schema"])
        return None

    def _responses(
        self, operation: Mapping[str, Any], resolver: "_RefResolver"
    ) -> dict[str, ResponseSpec]:
        responses: dict[str, ResponseSpec] = {}
        for code, raw in (operation.get("responses") or {}).items():
            response = resolver.resolve(raw)
            if not isinstance(response, Mapping):
                continue
            content = response.get("content") or {}
            schema = None
            if "application/json" in content:
                media = content["application/json"] or {}
                if media.get("schema") is not None:
                    schema = resolver.expand(media["schema"])
            elif response.get("schema") is not None:
                schema = resolver.expand(response["schema"])
            responses[str(code)] = ResponseSpec(
                description=str(response.get("description") or ""),
                content_types=tuple(content.keys()),
                schema=schema,
                headers=tuple((response.get("headers") or {}).keys()),
            )
        return responses


class _RefResolver:
    def __init__(self, document: Mapping[str, Any]):
        self.document = document

    def lookup(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            logger.debug("Skipping non-local reference %s", ref)
            return {}
        node: Any = self.document
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(node, Mapping) or part not in node:
                raise ParseError(f"Unresolvable reference: {ref}")
            node = node[part]
        return node

    def resolve(self, node: Any) -> Any:
        """Follow a chain of ``$ref`` on the top-level node only."""
        depth = 0
        while isinstance(node, Mapping) and "$ref" in node and depth < MAX_REF_DEPTH:
            node = self.lookup(str(node["$ref"]))
            depth += 1
        return node

    def expand(self, node: Any, depth: int = 0) -> Any:
        """Inline every reference in a schema tree."""
        if depth > MAX_REF_DEPTH:
            return {}
        node = self.resolve(node)
        if isinstance(node, Mapping):
            return {key: self.expand(value, depth + 1) for key, value in node.items()}
        if isinstance(node, list):
            return [self.expand(item, depth + 1) for item in node]
        return node
