"""CLI entry point for openapi-stub."""

import logging
from pathlib import Path

import click

from openapi_stub.errors import OpenApiStubError
from openapi_stub.generator.contracts import build_contract
from openapi_stub.generator.render import GENERATOR_MARKER
from openapi_stub.generator.routes import convert_path
from openapi_stub.generator.stub import StubGenerator
from openapi_stub.parser.openapi import dereference, iter_operations, load_document


def _load(doc_path: Path) -> dict:
    try:
        return load_document(doc_path)
    except OpenApiStubError as e:
        raise click.ClickException(str(e))


def _is_fresh(doc_path: Path, output: Path) -> bool:
    """True when output is newer than the document and came from this generator version."""
    if not output.exists():
        return False
    if output.stat().st_mtime < doc_path.stat().st_mtime:
        return False
    with output.open(encoding="utf-8") as f:
        head = f.read(512)
    return GENERATOR_MARKER in head


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log generator internals.")
def main(verbose: bool):
    """openapi-stub: typed handler contracts and request binding from OpenAPI documents."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o", "--output", required=True, envvar="OPENAPI_STUB_OUTPUT",
    type=click.Path(dir_okay=False, path_type=Path), help="Output path for the generated module.",
)
@click.option("--force", is_flag=True, help="Regenerate even if the output is up to date.")
@click.option("--check", is_flag=True, help="Generate and check the module without writing it.")
def generate(doc_path: Path, output: Path, force: bool, check: bool):
    """Generate the handler contract module for an OpenAPI document."""
    if not (force or check) and _is_fresh(doc_path, output):
        click.echo(f"{output} is up to date.")
        return

    click.echo(f"Parsing {doc_path}...")
    document = _load(doc_path)
    try:
        source = StubGenerator(module_filename=output.name).generate(document, dereference(document))
    except OpenApiStubError as e:
        raise click.ClickException(str(e))

    if check:
        click.echo(f"{doc_path} generates a valid module.")
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(source, encoding="utf-8")
    click.echo(f"Module saved to {output}")


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def routes(doc_path: Path):
    """List the routes a document registers."""
    document = _load(doc_path)
    count = 0
    for path, method, operation in iter_operations(document):
        try:
            contract = build_contract(operation, method, path)
        except OpenApiStubError as e:
            raise click.ClickException(str(e))
        click.echo(f"{method.upper():7} {convert_path(path):40} {contract.operation_id} -> {contract.type_name}")
        count += 1
    click.echo(f"Found {count} operations.")
