"""CLI entry point for api-autodoc."""

import json
import os
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

from api_autodoc.builder.assembler import DocumentationBuilder
from api_autodoc.builder.base import Documentation
from api_autodoc.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SCHEMA_DIR,
    DEFAULT_STORE_DIR,
    DEFAULT_VERSION,
    setup_logging,
)
from api_autodoc.generator.openapi import EXPORT_FORMATS, OpenApiGenerator
from api_autodoc.reflect.base import InvalidTreeError
from api_autodoc.reflect.express import load_express_tree
from api_autodoc.version.changes import (
    BUMP_TYPES,
    ChangeAnalysis,
    ChangeAnalyzer,
    bump_version,
    coerce_documentation,
)
from api_autodoc.version.git import VERSION_TAG, GitInfo
from api_autodoc.version.store import SnapshotStore, StoreError
from api_autodoc.version.validator import validate_documentation


def _read_json(file_path: Path) -> Any:
    try:
        return json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not read {file_path}: {e}") from e


def _load_docs(file_path: Path) -> list[Documentation]:
    data = _read_json(file_path)
    if not isinstance(data, list):
        raise click.ClickException(f"{file_path} does not contain a list of endpoints")
    return [doc for doc in (coerce_documentation(entry) for entry in data) if doc is not None]


def _build(routes_json: Path, schema_dir: Path) -> tuple[DocumentationBuilder, list[Documentation]]:
    try:
        tree = load_express_tree(routes_json)
        builder = DocumentationBuilder(schema_dir=schema_dir)
        return builder, builder.build_documentation(tree)
    except InvalidTreeError as e:
        raise click.ClickException(str(e)) from e
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Could not read {routes_json}: {e}") from e


def _write_docs(docs: list[Documentation], output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(
        json.dumps([doc.model_dump(mode="json") for doc in docs], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )


def _echo_changes(analysis: ChangeAnalysis) -> None:
    changes = analysis.changes
    click.echo(f"Bump type: {analysis.bump_type.upper()}")
    click.echo(f"Reason: {analysis.bump_reason}")
    for title, items in (
        ("Breaking changes", changes.breaking_changes),
        ("New endpoints", changes.new_endpoints),
        ("Modified endpoints", changes.modified_endpoints),
        ("Deprecated endpoints", changes.deprecated_endpoints),
        ("Internal changes", changes.internal_changes),
    ):
        click.echo(f"{title}: {len(items)}")
        for item in items:
            click.echo(f"  - {item}")


@click.group()
@click.option("--log-level", default=None, help="Logging level (env: AUTODOC_LOG_LEVEL).")
def main(log_level: str | None):
    """api-autodoc: infer REST API documentation from an Express routing tree."""
    load_dotenv()
    level = log_level or os.environ.get("AUTODOC_LOG_LEVEL") or DEFAULT_LOG_LEVEL
    try:
        setup_logging(level)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e


@main.command()
@click.argument("routes_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the documentation JSON.")
@click.option("--schema-dir", default=DEFAULT_SCHEMA_DIR, envvar="AUTODOC_SCHEMA_DIR", type=click.Path(path_type=Path), help="Directory of request/response schema overrides.")
@click.option("--ai/--no-ai", default=False, help="Enhance documentation with an LLM.")
@click.option("--model", default=None, envvar="AUTODOC_MODEL", help="LLM model to use.")
@click.option("--concurrency", default=DEFAULT_CONCURRENCY, type=click.IntRange(min=1), help="Parallel LLM requests.")
def scan(routes_json: Path, output: Path, schema_dir: Path, ai: bool, model: str | None, concurrency: int):
    """Scan a routing-tree dump and write its documentation."""
    click.echo(f"Scanning {routes_json}...")
    builder, docs = _build(routes_json, schema_dir)

    if ai:
        from api_autodoc.generator.enhancer import DocumentationEnhancer
        click.echo(f"Enhancing {len(docs)} endpoints...")
        docs = DocumentationEnhancer(model=model).enhance_batch(docs, concurrency=concurrency)

    _write_docs(docs, output)

    stats = builder.get_statistics()
    click.echo(f"Scan complete! Found {len(docs)} endpoints")
    click.echo(f"  Total Routes: {stats.total_routes}")
    click.echo(f"  Unique Paths: {stats.unique_paths}")
    click.echo(f"  Async Handlers: {stats.async_handlers}")
    click.echo(f"  Routes with Middleware: {stats.routes_with_middleware}")
    if ai:
        click.echo(f"  AI Enhanced: {sum(1 for d in docs if d.ai_enhanced)}/{len(docs)}")
    click.echo(f"  Output: {output}")


@main.command()
@click.argument("previous", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("current", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON.")
def diff(previous: Path, current: Path, as_json: bool):
    """Classify the changes between two documentation snapshots."""
    analysis = ChangeAnalyzer().analyze(_load_docs(previous), _load_docs(current))
    if as_json:
        click.echo(analysis.model_dump_json(indent=2))
    else:
        _echo_changes(analysis)


@main.command()
@click.argument("version")
@click.argument("bump_type", type=click.Choice(BUMP_TYPES))
def bump(version: str, bump_type: str):
    """Print VERSION bumped by BUMP_TYPE."""
    try:
        click.echo(bump_version(version, bump_type))
    except ValueError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.argument("routes_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--store", "store_dir", default=DEFAULT_STORE_DIR, envvar="AUTODOC_STORE_DIR", type=click.Path(file_okay=False, path_type=Path), help="Snapshot store directory.")
@click.option("--schema-dir", default=DEFAULT_SCHEMA_DIR, envvar="AUTODOC_SCHEMA_DIR", type=click.Path(path_type=Path), help="Directory of request/response schema overrides.")
@click.option("--version", "version", default=None, help="Release this exact version instead of bumping.")
def release(routes_json: Path, store_dir: Path, schema_dir: Path, version: str | None):
    """Build documentation, compare with the last release and record a new version."""
    _, docs = _build(routes_json, schema_dir)
    store = SnapshotStore(store_dir)
    git = GitInfo()

    try:
        latest = store.latest()
        previous_docs = store.load(latest.version) if latest else []
    except (OSError, ValueError, StoreError) as e:
        raise click.ClickException(str(e)) from e

    analysis = ChangeAnalyzer().analyze(previous_docs, docs)

    if version is None:
        if latest is not None:
            version = bump_version(latest.version, analysis.bump_type)
        else:
            # First release starts from the newest version tag, if any
            tag = git.latest_version_tag()
            version = tag.lstrip("v") if tag else DEFAULT_VERSION
    elif not VERSION_TAG.match(version):
        raise click.BadParameter(f"Invalid version: {version}", param_hint="--version")
    version = version.lstrip("v")

    _echo_changes(analysis)
    record = store.save(
        version,
        docs,
        analysis=analysis,
        previous_version=latest.version if latest else None,
        git=git,
    )
    previous_label = record.previous_version or "none"
    click.echo(f"Released {record.version} (previous: {previous_label}, endpoints: {record.total_endpoints})")


@main.command()
@click.argument("docs_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the OpenAPI document.")
@click.option("--format", "fmt", default="json", type=click.Choice(EXPORT_FORMATS), help="Output format.")
@click.option("--title", default=None, help="API title.")
@click.option("--api-version", default=None, help="API version shown in the document.")
def openapi(docs_json: Path, output: Path, fmt: str, title: str | None, api_version: str | None):
    """Export documentation JSON as an OpenAPI 3.0 document."""
    generator = OpenApiGenerator()
    spec = generator.generate_spec(_load_docs(docs_json), title=title, api_version=api_version)
    generator.export(spec, output, fmt)
    click.echo(f"OpenAPI spec with {len(spec['paths'])} paths saved to {output}")


@main.command()
@click.argument("stored", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("current", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx: click.Context, stored: Path, current: Path):
    """Check stored documentation against the current implementation."""
    issues = validate_documentation(_load_docs(stored), _load_docs(current))
    if not issues:
        click.echo("Validation passed! Documentation is in sync.")
        return

    click.echo(f"Validation found {len(issues)} issue(s):")
    for issue in issues:
        click.echo(f"  [{issue.type}] {issue.message}")
    ctx.exit(1)


@main.command()
@click.option("--store", "store_dir", default=DEFAULT_STORE_DIR, envvar="AUTODOC_STORE_DIR", type=click.Path(file_okay=False, path_type=Path), help="Snapshot store directory.")
@click.option("--from", "from_version", default=None, help="First version to include.")
@click.option("--to", "to_version", default=None, help="Last version to include.")
def changelog(store_dir: Path, from_version: str | None, to_version: str | None):
    """Print the recorded version history."""
    try:
        records = SnapshotStore(store_dir).changelog(from_version, to_version)
    except (ValueError, StoreError) as e:
        raise click.ClickException(str(e)) from e

    if not records:
        click.echo("No versions recorded.")
        return

    for record in records:
        click.echo(f"## {record.version} ({record.bump_type}) {record.release_date}")
        click.echo(record.bump_reason)
        for item in record.changes.breaking_changes:
            click.echo(f"  - BREAKING: {item}")
        for item in record.changes.new_endpoints:
            click.echo(f"  - Added: {item}")
        for item in record.changes.modified_endpoints:
            click.echo(f"  - Modified: {item}")
