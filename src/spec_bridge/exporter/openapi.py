"""Render a Connection back into an OpenAPI 3.0.3 document.

This is not an exact inverse of the importer: references were inlined on
import, so shared named schemas are never reconstructed.
"""

import copy
import json
import re
from typing import Any

from spec_bridge.parser.base import Connection, Endpoint, Parameter, SchemaNode

OPENAPI_VERSION = "3.0.3"

# DataTypes without a direct OpenAPI type
_FORMATTED_TYPES = {"date": ("string", "date"), "datetime": ("string", "date-time")}

SECURITY_SCHEMES: dict[str, dict] = {
    "OAuth2": {
        "oauth2": {
            "type": "oauth2",
            "flows": {"clientCredentials": {"tokenUrl": "/oauth/token", "scopes": {}}},
        }
    },
    "Basic": {"basicAuth": {"type": "http", "scheme": "basic"}},
    "API_Key": {"apiKey": {"type": "apiKey", "in": "header", "name": "X-API-Key"}},
    "JWT": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
}


def generate_openapi_spec(connection: Connection) -> str:
    """Pretty-printed OpenAPI JSON for the connection."""
    return json.dumps(build_openapi_document(connection), indent=2, ensure_ascii=False, default=str)


def build_openapi_document(connection: Connection) -> dict:
    info = {"title": connection.name, "version": "1.0.0"}
    if connection.description:
        info["description"] = connection.description

    doc: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": info}
    if connection.base_url:
        doc["servers"] = [{"url": connection.base_url, "description": "API Server"}]

    paths: dict[str, dict] = {}
    for endpoint in connection.endpoints:
        paths.setdefault(endpoint.path, {})[endpoint.method.lower()] = _operation(endpoint)
    doc["paths"] = paths

    doc["components"] = {
        "schemas": {},
        "securitySchemes": copy.deepcopy(SECURITY_SCHEMES.get(connection.authentication_type, {})),
    }
    return doc


def _operation(endpoint: Endpoint) -> dict:
    operation: dict[str, Any] = {
        "operationId": re.sub(r"\s+", "_", endpoint.name),
        "summary": endpoint.name,
    }
    if endpoint.description:
        operation["description"] = endpoint.description
    if endpoint.tags:
        operation["tags"] = list(endpoint.tags)
    if endpoint.parameters:
        operation["parameters"] = [_parameter(p) for p in endpoint.parameters]
    if endpoint.request_body is not None:
        operation["requestBody"] = {
            "content": {"application/json": {"schema": schema_to_openapi(endpoint.request_body)}}
        }

    success: dict[str, Any] = {"description": "Successful response"}
    if endpoint.response_schema is not None:
        success["content"] = {"application/json": {"schema": schema_to_openapi(endpoint.response_schema)}}
    operation["responses"] = {"200": success}
    return operation


def _parameter(param: Parameter) -> dict:
    schema = _type_fields(param.type)
    if param.enum:
        schema["enum"] = list(param.enum)
    if param.default_value is not None:
        schema["default"] = param.default_value

    result: dict[str, Any] = {"name": param.name, "in": param.location, "required": param.required, "schema": schema}
    if param.description:
        result["description"] = param.description
    return result


def schema_to_openapi(node: SchemaNode) -> dict:
    """Convert a SchemaNode tree into an OpenAPI schema object.

    Children are converted before their parent; each object node gets a
    ``required`` array rebuilt from its own list plus the children's flags.
    """
    if node.cyclic_ref:
        return {"type": "object", "description": node.description or f"Recursive reference to {node.cyclic_ref}"}

    properties = None
    required = list(node.required or [])
    if node.properties is not None:
        properties = {}
        for name, child in node.properties.items():
            properties[name] = schema_to_openapi(child)
            if child.is_required and name not in required:
                required.append(name)
    items = schema_to_openapi(node.items) if node.items is not None else None

    schema = _type_fields(node.type)
    if node.format and "format" not in schema:
        schema["format"] = node.format
    optional = {
        "description": node.description,
        "enum": list(node.enum) if node.enum else None,
        "nullable": node.nullable,
        "maxLength": node.max_length,
        "minLength": node.min_length,
        "pattern": node.pattern,
        "example": node.example,
        "properties": properties,
        "required": required or None,
        "items": items,
    }
    schema.update({key: value for key, value in optional.items() if value is not None})
    return schema


def _type_fields(data_type: str) -> dict:
    if data_type in _FORMATTED_TYPES:
        openapi_type, fmt = _FORMATTED_TYPES[data_type]
        return {"type": openapi_type, "format": fmt}
    return {"type": data_type}
