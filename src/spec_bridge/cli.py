"""CLI entry point for spec-bridge."""

from pathlib import Path

import click

from spec_bridge.config import get_settings
from spec_bridge.connection import ConnectionService
from spec_bridge.errors import SpecBridgeError
from spec_bridge.exporter.openapi import generate_openapi_spec
from spec_bridge.generator.apex import generate_apex_classes
from spec_bridge.generator.base import GeneratedFile, GenerationOptions, write_generated_file
from spec_bridge.generator.descriptors import generate_external_service, generate_named_credential
from spec_bridge.generator.validator import validate_files
from spec_bridge.log import setup_logger
from spec_bridge.mapping.suggest import suggest_field_mappings, suggest_for_object
from spec_bridge.parser.openapi import import_from_file
from spec_bridge.platform import CachedMetadataSource, SfCliMetadataSource
from spec_bridge.security import redact_secrets
from spec_bridge.storage import JsonStore
from spec_bridge.templates import connection_from_template


class _Group(click.Group):
    """Turns library errors into one-line, redacted CLI errors."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except (SpecBridgeError, OSError) as e:
            raise click.ClickException(redact_secrets(e)) from e


def _service(ctx: click.Context) -> ConnectionService:
    return ConnectionService(JsonStore(ctx.obj["store_path"]))


def _write_all(files: list[GeneratedFile], root: Path) -> None:
    for f in files:
        path = write_generated_file(f, root)
        click.echo(f"  Created {path}")


@click.group(cls=_Group)
@click.option("--log-level", default=None, type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), help="Log verbosity.")
@click.option("--store", "store_path", default=None, type=click.Path(path_type=Path), help="Connection store file.")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, store_path: Path | None):
    """spec-bridge: turn OpenAPI specs into Apex clients and integration metadata."""
    settings = get_settings()
    setup_logger(log_level or settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["store_path"] = store_path or Path(settings.store_path)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_spec(ctx: click.Context, doc_path: Path):
    """Import an OpenAPI 3 / Swagger 2 document (JSON or YAML) as a new connection."""
    click.echo(f"Parsing {doc_path}...")
    connection = import_from_file(doc_path)
    if get_settings().default_auth_type != "None" and connection.authentication_type == "None":
        connection.authentication_type = get_settings().default_auth_type
    _service(ctx).store.save_connection(connection)
    click.echo(f"Found {len(connection.endpoints)} endpoints.")
    click.echo(f"Saved connection {connection.name} ({connection.id})")


@main.command()
@click.argument("connection_id")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output file; prints to stdout when omitted.")
@click.pass_context
def export_spec(ctx: click.Context, connection_id: str, output: Path | None):
    """Export a connection as an OpenAPI 3.0.3 JSON document."""
    connection = _service(ctx).require_connection(connection_id)
    document = generate_openapi_spec(connection)
    if output is None:
        click.echo(document)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document, encoding="utf-8")
    click.echo(f"OpenAPI spec saved to {output}")


@main.command()
@click.argument("connection_id")
@click.option("--root", default=".", type=click.Path(file_okay=False, path_type=Path), help="Project root to write into.")
@click.option("--output-path", default=None, help="Class directory, relative to the root.")
@click.option("--tests/--no-tests", "generate_tests", default=None, help="Generate the test class.")
@click.option("--mock/--no-mock", "generate_mock", default=None, help="Generate the mock class.")
@click.option("--comments/--no-comments", default=True, help="Include ApexDoc comments.")
@click.option("--bulk", is_flag=True, help="Add bulk variants for endpoints with a body.")
@click.option("--async", "async_processing", is_flag=True, help="Add queued async variants.")
@click.option("--error-handling", default="advanced", type=click.Choice(["basic", "advanced"]), help="Error handling style.")
@click.option("--naming", default="camelCase", type=click.Choice(["camelCase", "PascalCase"]), help="Method naming convention.")
@click.pass_context
def generate(
    ctx: click.Context,
    connection_id: str,
    root: Path,
    output_path: str | None,
    generate_tests: bool | None,
    generate_mock: bool | None,
    comments: bool,
    bulk: bool,
    async_processing: bool,
    error_handling: str,
    naming: str,
):
    """Generate Apex service, mock and test classes for a connection."""
    settings = get_settings()
    connection = _service(ctx).require_connection(connection_id)
    options = GenerationOptions(
        generate_test_class=settings.generate_test_classes if generate_tests is None else generate_tests,
        generate_mock_service=settings.enable_mock_services if generate_mock is None else generate_mock,
        include_comments=comments,
        use_bulk_api=bulk,
        async_processing=async_processing,
        error_handling=error_handling,
        naming_convention=naming,
        output_path=output_path or settings.apex_output_path,
    )

    click.echo(f"Generating Apex classes for {connection.name}...")
    files = generate_apex_classes(connection, options, api_version=settings.api_version)

    errors = validate_files(files)
    for filename, error in errors.items():
        click.echo(f"  Warning: {filename}: {error}", err=True)

    _write_all(files, root)
    click.echo(f"Generated {len(files)} files in {root}")


@main.command()
@click.argument("connection_id")
@click.option("--root", default=".", type=click.Path(file_okay=False, path_type=Path), help="Project root to write into.")
@click.pass_context
def named_credential(ctx: click.Context, connection_id: str, root: Path):
    """Generate the named credential for a connection."""
    connection = _service(ctx).require_connection(connection_id)
    _write_all([generate_named_credential(connection, get_settings().named_credential_path)], root)


@main.command()
@click.argument("connection_id")
@click.option("--root", default=".", type=click.Path(file_okay=False, path_type=Path), help="Project root to write into.")
@click.pass_context
def external_service(ctx: click.Context, connection_id: str, root: Path):
    """Generate the external service registration and its package.xml."""
    settings = get_settings()
    connection = _service(ctx).require_connection(connection_id)
    files = generate_external_service(connection, settings.external_service_path, settings.api_version)
    _write_all(files, root)


@main.command("list")
@click.pass_context
def list_connections(ctx: click.Context):
    """List stored connections."""
    connections = _service(ctx).get_all_connections()
    if not connections:
        click.echo("No connections.")
        return
    for c in connections:
        click.echo(f"{c.id}  {c.name}  [{c.status}]  {len(c.endpoints)} endpoints  {c.base_url}")


@main.command()
@click.argument("connection_id")
@click.option("--endpoint", "endpoint_name", default=None, help="Probe this endpoint instead of the base URL.")
@click.pass_context
def test_connection(ctx: click.Context, connection_id: str, endpoint_name: str | None):
    """Send one live request to check a connection is reachable."""
    service = _service(ctx)
    connection = service.require_connection(connection_id)

    if endpoint_name:
        endpoint = next((e for e in connection.endpoints if e.name == endpoint_name), None)
        if endpoint is None:
            raise click.ClickException(f"Endpoint not found: {endpoint_name}")
        result = service.test_endpoint(connection, endpoint)
    else:
        result = service.test_connection(connection)

    if result.success:
        click.echo(f"OK: HTTP {result.status_code} in {result.response_time} ms")
    else:
        raise click.ClickException(f"Failed after {result.response_time} ms: {result.error}")


@main.command()
@click.option("--source", "source_fields", multiple=True, required=True, help="External field name (repeatable).")
@click.option("--target", "target_fields", multiple=True, help="Platform field name (repeatable).")
@click.option("--object", "object_name", default=None, help="Describe this platform object for target fields.")
def suggest(source_fields: tuple[str, ...], target_fields: tuple[str, ...], object_name: str | None):
    """Suggest field mappings by name similarity."""
    if object_name:
        settings = get_settings()
        source = CachedMetadataSource(SfCliMetadataSource(timeout=settings.cli_timeout), ttl=settings.metadata_cache_ttl)
        suggestions = suggest_for_object(source, object_name, list(source_fields))
    elif target_fields:
        suggestions = suggest_field_mappings(list(target_fields), list(source_fields))
    else:
        raise click.UsageError("Provide --target fields or --object.")

    if not suggestions:
        click.echo("No suggestions.")
    for s in suggestions:
        click.echo(f"{s.source_field} -> {s.target_field} ({s.confidence:.2f})")


@main.command()
@click.argument("key")
@click.option("--base-url", required=True, help="Base URL of the external system.")
@click.option("--name", default=None, help="Connection name; defaults to the template name.")
@click.pass_context
def from_template(ctx: click.Context, key: str, base_url: str, name: str | None):
    """Create a connection from a built-in system template."""
    service = _service(ctx)
    template_connection = connection_from_template(key, base_url, name)
    connection = service.create_connection(**template_connection.model_dump())
    click.echo(f"Saved connection {connection.name} ({connection.id}) with {len(connection.endpoints)} endpoints")


@main.command()
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
def deploy(source_dir: Path):
    """Deploy generated metadata to the default org through the sf CLI."""
    result = SfCliMetadataSource(timeout=get_settings().cli_timeout).deploy(str(source_dir))
    if not result.success:
        raise click.ClickException(result.message)
    click.echo(result.message)
