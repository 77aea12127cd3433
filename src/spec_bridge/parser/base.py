"""Unified data models for imported API descriptions.

Every input format (OpenAPI 3.x, Swagger 2.0, templates, manual edits) is
converted into these models, and every output (OpenAPI export, Apex code,
descriptors) is rendered from them.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

DataType = Literal["string", "number", "integer", "boolean", "array", "object", "date", "datetime"]
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
ParamLocation = Literal["path", "query", "header"]
AuthenticationType = Literal["OAuth2", "Basic", "API_Key", "JWT", "Certificate", "None"]
ConnectionStatus = Literal["active", "inactive", "error", "testing"]
ErpType = Literal["NetSuite", "SAP", "Dynamics365", "Acumatica", "QuickBooks", "Xero", "Custom"]

DATA_TYPES: tuple[str, ...] = ("string", "number", "integer", "boolean", "array", "object", "date", "datetime")
HTTP_METHODS: tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 120000
DEFAULT_TIMEOUT_MS = 30000


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SchemaNode(BaseModel):
    """One node of a request/response shape.

    The same model describes a root schema and a property inside it.
    ``required`` is the set of required child names declared at this node;
    ``is_required`` says whether this node is required by its parent.
    """

    type: DataType = "string"
    description: str | None = None
    example: Any = None
    format: str | None = None
    enum: list[Any] | None = None
    nullable: bool | None = None
    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    properties: dict[str, "SchemaNode"] | None = None
    items: "SchemaNode | None" = None
    required: list[str] | None = None
    is_required: bool | None = None
    cyclic_ref: str | None = None  # set on placeholders that stop a $ref cycle


SchemaNode.model_rebuild()


class Parameter(BaseModel):
    """A path, query or header parameter of an endpoint."""

    name: str
    location: ParamLocation = "query"
    required: bool = False
    type: DataType = "string"
    description: str | None = None
    default_value: Any = None
    enum: list[Any] | None = None


class Endpoint(BaseModel):
    """A single HTTP operation of a connection."""

    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    path: str  # /customers/{id}
    method: HttpMethod = "GET"
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: SchemaNode | None = None
    response_schema: SchemaNode | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)


class RetryConfig(BaseModel):
    max_retries: int = 3
    retry_delay: int = 1000  # ms
    retry_on: list[int] = Field(default_factory=lambda: [500, 502, 503, 504])


class OAuth2Config(BaseModel):
    authorization_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str | None = None
    scope: str | None = None
    callback_url: str | None = None


class BasicAuthConfig(BaseModel):
    username: str
    password: str | None = None


class ApiKeyConfig(BaseModel):
    header_name: str
    api_key: str | None = None
    location: Literal["header", "query"] = "header"


class JWTConfig(BaseModel):
    issuer: str
    subject: str
    audience: str
    private_key: str | None = None
    algorithm: Literal["RS256", "RS384", "RS512"] = "RS256"
    expiration_time: int = 300


class CertificateConfig(BaseModel):
    certificate_name: str
    certificate_data: str | None = None


AuthConfig = OAuth2Config | BasicAuthConfig | ApiKeyConfig | JWTConfig | CertificateConfig


def default_headers() -> dict[str, str]:
    return {"Content-Type": "application/json", "Accept": "application/json"}


class Connection(BaseModel):
    """A configured remote API integration and everything needed to call it."""

    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    base_url: str = ""
    authentication_type: AuthenticationType = "None"
    auth_config: AuthConfig | None = None
    headers: dict[str, str] = Field(default_factory=default_headers)
    timeout: int = DEFAULT_TIMEOUT_MS  # ms
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    endpoints: list[Endpoint] = Field(default_factory=list)
    status: ConnectionStatus = "inactive"
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    tags: list[str] = Field(default_factory=list)
    erp_type: ErpType | None = None

    @field_validator("timeout")
    @classmethod
    def _clamp_timeout(cls, value: int) -> int:
        return min(max(value, MIN_TIMEOUT_MS), MAX_TIMEOUT_MS)

    def touch(self) -> None:
        """Refresh ``updated_at``; call on every mutation."""
        self.updated_at = _now()
