"""Connection lifecycle, auth header construction and live HTTP probes."""

import base64
import re
import time
from typing import Any

import requests
from loguru import logger
from pydantic import BaseModel

from spec_bridge.errors import SpecValidationError
from spec_bridge.parser.base import ApiKeyConfig, BasicAuthConfig, Connection, Endpoint
from spec_bridge.security import (
    is_valid_url,
    redact_secrets,
    sanitize_connection_name,
    sanitize_header_name,
    sanitize_header_value,
)
from spec_bridge.storage import JsonStore

MAX_DESCRIPTION_LENGTH = 500

_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# Fields copied into a fresh connection by create/duplicate/import
_COPIED_FIELDS = (
    "description", "authentication_type", "auth_config", "headers", "timeout",
    "retry_config", "endpoints", "tags", "erp_type",
)


class ProbeResult(BaseModel):
    success: bool
    response_time: int  # ms
    status_code: int | None = None
    error: str | None = None
    response_data: Any = None


def build_auth(connection: Connection) -> tuple[dict[str, str], dict[str, str]]:
    """Static auth for a probe request as ``(headers, query_params)``.

    Token acquisition is not performed: OAuth2 calls need an externally
    supplied token, JWT and Certificate add nothing.
    """
    headers: dict[str, str] = {}
    params: dict[str, str] = {}
    config = connection.auth_config

    if connection.authentication_type == "Basic":
        if isinstance(config, BasicAuthConfig) and config.username:
            credentials = f"{config.username}:{config.password or ''}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(credentials).decode("ascii")
    elif connection.authentication_type == "API_Key":
        if isinstance(config, ApiKeyConfig) and config.api_key:
            if config.location == "header":
                headers[config.header_name] = config.api_key
            else:
                params[config.header_name] = config.api_key
    elif connection.authentication_type == "OAuth2":
        logger.warning("OAuth2 connection testing requires manual token configuration")
    return headers, params


def sanitize_headers(headers: dict[str, Any]) -> dict[str, str]:
    """Drop headers with invalid names; strip control characters from values."""
    sanitized = {}
    for name, value in headers.items():
        try:
            sanitized[sanitize_header_name(name)] = sanitize_header_value(value)
        except SpecValidationError:
            logger.warning("Skipping invalid header: {}", name)
    return sanitized


class ConnectionService:
    """Creates, edits and probes connections held in a JsonStore."""

    def __init__(self, store: JsonStore, session: requests.Session | None = None):
        self.store = store
        self.session = session or requests.Session()

    def get_all_connections(self) -> list[Connection]:
        return self.store.get_connections()

    def get_connection(self, connection_id: str) -> Connection | None:
        if not _UUID.match(connection_id or ""):
            logger.warning("Invalid connection ID format: {}", connection_id)
            return None
        return self.store.get_connection(connection_id)

    def require_connection(self, connection_id: str) -> Connection:
        connection = self.get_connection(connection_id)
        if connection is None:
            raise SpecValidationError(f"Connection not found: {connection_id}")
        return connection

    def create_connection(self, name: str | None = None, base_url: str | None = None, **data: Any) -> Connection:
        if not name:
            raise SpecValidationError("Connection name is required")
        if not base_url:
            raise SpecValidationError("Base URL is required")
        sanitized_name = sanitize_connection_name(name)
        if not is_valid_url(base_url.strip()):
            raise SpecValidationError("Invalid base URL format")

        fields = {k: v for k, v in data.items() if k in _COPIED_FIELDS and v is not None}
        if fields.get("description"):
            fields["description"] = fields["description"][:MAX_DESCRIPTION_LENGTH]
        if "headers" in fields:
            fields["headers"] = sanitize_headers(fields["headers"])

        connection = Connection.model_validate(
            {**fields, "name": sanitized_name, "base_url": base_url.strip(), "status": "inactive"}
        )
        self.store.save_connection(connection)
        logger.info("Created connection: {} ({})", connection.name, connection.id)
        return connection

    def save_connection(self, connection: Connection) -> None:
        connection.touch()
        self.store.save_connection(connection)
        logger.info("Saved connection: {} ({})", connection.name, connection.id)

    def delete_connection(self, connection_id: str) -> None:
        self.store.delete_connection(connection_id)
        logger.info("Deleted connection: {}", connection_id)

    def add_endpoint(self, connection_id: str, **data: Any) -> Endpoint:
        connection = self.require_connection(connection_id)
        data.pop("id", None)
        data.setdefault("name", "New Endpoint")
        data.setdefault("path", "/")
        endpoint = Endpoint.model_validate(data)
        connection.endpoints.append(endpoint)
        self.save_connection(connection)
        return endpoint

    def update_endpoint(self, connection_id: str, endpoint: Endpoint) -> None:
        """Replace the endpoint with the same id; unknown ids are ignored."""
        connection = self.require_connection(connection_id)
        for i, existing in enumerate(connection.endpoints):
            if existing.id == endpoint.id:
                connection.endpoints[i] = endpoint
                self.save_connection(connection)
                return

    def delete_endpoint(self, connection_id: str, endpoint_id: str) -> None:
        connection = self.require_connection(connection_id)
        connection.endpoints = [e for e in connection.endpoints if e.id != endpoint_id]
        self.save_connection(connection)

    def duplicate_connection(self, connection_id: str) -> Connection:
        connection = self.require_connection(connection_id)
        data = connection.model_dump(include=set(_COPIED_FIELDS))
        # the copy gets its own endpoint ids
        for endpoint in data.get("endpoints", []):
            endpoint.pop("id", None)
        return self.create_connection(name=f"{connection.name} (Copy)", base_url=connection.base_url, **data)

    def import_connection(self, data: dict[str, Any]) -> Connection:
        """Create a connection from an exported dict, validating it like a new one."""
        return self.create_connection(
            name=data.get("name"),
            base_url=data.get("base_url"),
            **{k: data.get(k) for k in _COPIED_FIELDS},
        )

    @staticmethod
    def export_connection(connection: Connection) -> dict[str, Any]:
        """Shareable dict; auth secrets, ids and status are left out."""
        return connection.model_dump(
            mode="json",
            include={"name", "description", "base_url", "authentication_type", "headers", "endpoints", "erp_type"},
        )

    # -- probes ---------------------------------------------------------------

    def test_connection(self, connection: Connection) -> ProbeResult:
        logger.info("Testing connection: {}", connection.name)
        result = self._probe("GET", connection.base_url, connection, connection.headers)

        connection.status = "active" if result.success else "error"
        self.save_connection(connection)
        if result.success:
            logger.info("Connection test succeeded: {} ({} ms)", connection.name, result.response_time)
        else:
            logger.error("Connection test failed: {}: {}", connection.name, result.error)
        return result

    def test_endpoint(self, connection: Connection, endpoint: Endpoint) -> ProbeResult:
        logger.info("Testing endpoint: {} on {}", endpoint.name, connection.name)
        headers = {**connection.headers, **endpoint.headers}
        return self._probe(endpoint.method, connection.base_url + endpoint.path, connection, headers)

    def _probe(self, method: str, url: str, connection: Connection, headers: dict[str, str]) -> ProbeResult:
        auth_headers, params = build_auth(connection)
        start = time.monotonic()
        try:
            response = self.session.request(
                method,
                url,
                headers={**headers, **auth_headers},
                params=params or None,
                timeout=connection.timeout / 1000,
            )
        except requests.RequestException as e:
            return ProbeResult(success=False, response_time=_elapsed_ms(start), error=redact_secrets(e))

        success = 200 <= response.status_code < 400
        return ProbeResult(
            success=success,
            response_time=_elapsed_ms(start),
            status_code=response.status_code,
            response_data=_response_data(response),
            error=None if success else redact_secrets(f"HTTP {response.status_code}: {response.reason}"),
        )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _response_data(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
