"""Platform metadata capability.

Consumers depend on the ``MetadataSource`` protocol so tests can pass an
in-memory fake; ``SfCliMetadataSource`` is the real implementation backed by
the ``sf`` CLI, and ``CachedMetadataSource`` adds time-based expiry.
"""

import json
import subprocess
import time
from typing import Any, Callable, Protocol

from loguru import logger
from pydantic import BaseModel

from spec_bridge.errors import ExternalCallError
from spec_bridge.security import redact_secrets

DEFAULT_CACHE_TTL = 300  # seconds


class PlatformField(BaseModel):
    name: str
    label: str = ""
    type: str = "string"
    length: int | None = None
    required: bool = False
    unique: bool = False
    external_id: bool = False
    reference_to: list[str] | None = None
    createable: bool = True
    updateable: bool = True


class DeployResult(BaseModel):
    success: bool
    message: str


class MetadataSource(Protocol):
    def describe_object(self, name: str) -> list[PlatformField]: ...

    def query(self, soql: str) -> list[dict]: ...


class SfCliMetadataSource:
    """Runs ``sf ... --json`` commands; each call is bounded by ``timeout`` seconds."""

    def __init__(self, timeout: float = 60, executable: str = "sf"):
        self.timeout = timeout
        self.executable = executable

    def describe_object(self, name: str) -> list[PlatformField]:
        logger.info("Fetching fields for: {}", name)
        result = self._run(["sobject", "describe", "--sobject", name])
        return [_platform_field(f) for f in (result or {}).get("fields", [])]

    def list_objects(self) -> list[str]:
        result = self._run(["sobject", "list"])
        return [o if isinstance(o, str) else o.get("name", "") for o in result or []]

    def query(self, soql: str) -> list[dict]:
        logger.info("Executing SOQL: {}", soql)
        result = self._run(["data", "query", "--query", soql])
        return (result or {}).get("records", [])

    def deploy(self, source_dir: str) -> DeployResult:
        """The single opaque deployment call; failures are reported, not raised."""
        logger.info("Deploying metadata from: {}", source_dir)
        try:
            self._run(["project", "deploy", "start", "--source-dir", source_dir])
        except ExternalCallError as e:
            logger.error("Deployment failed: {}", e)
            return DeployResult(success=False, message=str(e))
        return DeployResult(success=True, message="Deployment successful")

    def _run(self, args: list[str]) -> Any:
        command = [self.executable, *args, "--json"]
        try:
            completed = subprocess.run(command, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise ExternalCallError(f"{' '.join(args[:2])} timed out after {self.timeout}s")
        except OSError as e:
            raise ExternalCallError(f"Could not run {self.executable}: {redact_secrets(e)}") from e

        try:
            payload = json.loads(completed.stdout)
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            message = completed.stderr or completed.stdout
            raise ExternalCallError(f"Unparseable CLI output: {redact_secrets(message)}")

        if completed.returncode != 0 or payload.get("status", 0) != 0:
            raise ExternalCallError(redact_secrets(payload.get("message") or completed.stderr or "CLI call failed"))
        return payload.get("result")


class CachedMetadataSource:
    """TTL cache over another source with explicit ``(value, expires_at)`` entries.

    Nothing refreshes in the background: expired entries are refetched on the
    next read, ``force_refresh`` bypasses the cache, ``clear`` drops it.
    """

    def __init__(self, source: MetadataSource, ttl: float = DEFAULT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.source = source
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def describe_object(self, name: str, force_refresh: bool = False) -> list[PlatformField]:
        return self._cached(f"fields:{name}", lambda: self.source.describe_object(name), force_refresh)

    def query(self, soql: str) -> list[dict]:
        # records change too often to cache
        return self.source.query(soql)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cache cleared")

    def _cached(self, key: str, fetch: Callable[[], Any], force_refresh: bool) -> Any:
        now = self.clock()
        entry = self._entries.get(key)
        if entry is not None and not force_refresh and now < entry[1]:
            return entry[0]
        value = fetch()
        self._entries[key] = (value, now + self.ttl)
        return value


def _platform_field(raw: dict) -> PlatformField:
    return PlatformField(
        name=raw["name"],
        label=raw.get("label") or raw["name"],
        type=raw.get("type") or "string",
        length=raw.get("length"),
        required=not raw.get("nillable", True) and not raw.get("defaultedOnCreate", False),
        unique=bool(raw.get("unique")),
        external_id=bool(raw.get("externalId")),
        reference_to=raw.get("referenceTo") or None,
        createable=raw.get("createable", True),
        updateable=raw.get("updateable", True),
    )
