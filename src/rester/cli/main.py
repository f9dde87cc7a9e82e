"""
Rester CLI Main Entry Point

Command-line interface for running request definition files.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from ..collection.store import DEFAULT_COLLECTION_FILE, RequestCollection
from ..core.config import ResterConfig, reload_config
from ..core.exceptions import (
    CollectionError,
    ConfigurationError,
    ParseError,
)
from ..core.logging import get_logger, setup_logging, verbosity_level
from ..definitions.loader import load_definitions
from ..definitions.models import RequestTemplate
from ..execution.engine import ExecutionEngine
from ..execution.policy import ExecutionPolicy
from ..execution.transport import AiohttpTransport, Transport
from ..reporting.base import Reporter
from ..reporting.console import ConsoleReporter
from ..reporting.json_report import JsonReporter
from ..runner.coordinator import RunCoordinator
from ..runner.models import ConcurrencyPolicy, ExecutionMode, RunResult
from ..variables.store import Scope

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

TransportFactory = Callable[[ResterConfig], Transport]


def default_transport_factory(config: ResterConfig) -> Transport:
    return AiohttpTransport(
        follow_redirects=config.execution.follow_redirects,
        verify_ssl=config.execution.verify_ssl,
        user_agent=config.execution.user_agent,
    )


def parse_assignments(values: Tuple[str, ...]) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE`` command line assignments.

    Raises:
        click.BadParameter: If an entry has no ``=`` or an empty key
    """
    assignments: Dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--var")
        assignments[key.strip()] = value
    return assignments


def load_templates(paths: Tuple[str, ...]) -> List[RequestTemplate]:
    """
    Load templates from every path, keeping ids unique across all of them.

    Raises:
        ParseError: If any path fails to load or ids collide
    """
    templates: List[RequestTemplate] = []
    seen = set()
    for path in paths:
        for template in load_definitions(path):
            if template.id in seen:
                raise ParseError(
                    f"Duplicate request id: {template.id}", {"source": template.source}
                )
            seen.add(template.id)
            templates.append(template)
    return templates


def _fail(message: str, code: int) -> None:
    click.echo(f"✗ {message}", err=True)
    sys.exit(code)


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """
    Rester - declarative REST request runner

    Run request definition files with variables, chaining and assertions.
    """
    pass


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--env", "-e", "environment", help="Environment overlay to load")
@click.option("--var", "variables", multiple=True, help="Run variable KEY=VALUE")
@click.option("--parallel", is_flag=True, help="Run requests as an independent parallel batch")
@click.option("--workers", type=click.IntRange(min=1), help="Parallel worker cap")
@click.option("--halt-on-failure", is_flag=True, help="Skip remaining requests after a failure")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Per-attempt timeout in seconds")
@click.option("--retries", type=click.IntRange(min=0), help="Retries after the first attempt")
@click.option("--repeat", type=click.IntRange(min=1), default=1, help="Run the batch N times")
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["console", "json"]), default="console"
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file path")
@click.option(
    "--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML config file"
)
@click.option("--verbose", "-v", count=True, help="Increase verbosity")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Write logs to a file")
@click.pass_context
def run(
    ctx: click.Context,
    paths: Tuple[str, ...],
    environment: Optional[str],
    variables: Tuple[str, ...],
    parallel: bool,
    workers: Optional[int],
    halt_on_failure: bool,
    timeout: Optional[float],
    retries: Optional[int],
    repeat: int,
    output_format: str,
    output: Optional[str],
    config_file: Optional[str],
    verbose: int,
    log_file: Optional[str],
):
    """
    Run request definition files or directories.

    Example:
        rester run api.yaml --env staging --var user=ada
    """
    run_variables = parse_assignments(variables)

    try:
        config = reload_config(Path(config_file) if config_file else None)
    except ConfigurationError as e:
        _fail(str(e), EXIT_USAGE)

    setup_logging(
        log_level=verbosity_level(verbose),
        log_file=Path(log_file) if log_file else None,
    )

    execution = config.execution
    overrides: Dict[str, Any] = {}
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    if retries is not None:
        overrides["max_attempts"] = retries + 1
    if overrides:
        execution = execution.model_copy(update=overrides)

    try:
        templates = load_templates(paths)
        initial_scopes = {
            Scope.GLOBAL: config.variables,
            Scope.ENVIRONMENT: config.environment_variables(environment),
            Scope.RUN: run_variables,
        }
        parallel = parallel or config.runner.parallel
        concurrency = ConcurrencyPolicy(
            mode=ExecutionMode.PARALLEL if parallel else ExecutionMode.SEQUENTIAL,
            max_workers=workers or config.runner.max_workers,
            independent=parallel,
            halt_on_failure=halt_on_failure or config.runner.halt_on_failure,
        )
    except (ParseError, ConfigurationError) as e:
        _fail(str(e), EXIT_USAGE)

    if not templates:
        _fail("No requests defined", EXIT_USAGE)

    factory: TransportFactory = (ctx.obj or {}).get(
        "transport_factory", default_transport_factory
    )
    name = " ".join(paths)

    results = asyncio.run(
        _run_batches(
            templates,
            initial_scopes,
            concurrency,
            ExecutionPolicy.from_config(execution),
            factory(config),
            repeat,
            name,
        )
    )

    reporter: Reporter
    if output_format == "json":
        reporter = JsonReporter(output)
        reporter.report_all(results)
    elif output:
        with open(output, "w", encoding="utf-8") as stream:
            ConsoleReporter(verbosity=verbose, stream=stream, color=False).report_all(results)
    else:
        ConsoleReporter(verbosity=verbose).report_all(results)

    if any(result.cancelled for result in results):
        sys.exit(EXIT_INTERRUPTED)
    sys.exit(max(result.exit_code for result in results))


async def _run_batches(
    templates: List[RequestTemplate],
    initial_scopes: Dict[Scope, Dict[str, str]],
    concurrency: ConcurrencyPolicy,
    policy: ExecutionPolicy,
    transport: Transport,
    repeat: int,
    name: str,
) -> List[RunResult]:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler unavailable; runs can not be cancelled")
        handler_installed = False

    coordinator = RunCoordinator(ExecutionEngine(transport), policy=policy)
    results: List[RunResult] = []
    try:
        for _ in range(repeat):
            result = await coordinator.run(
                templates, initial_scopes, concurrency, cancel_event, name=name
            )
            results.append(result)
            if result.cancelled:
                break
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
        await transport.close()
    return results


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
def validate(paths: Tuple[str, ...]):
    """
    Parse definition files without sending any request.

    Example:
        rester validate requests/
    """
    try:
        templates = load_templates(paths)
    except ParseError as e:
        _fail(str(e), EXIT_USAGE)

    click.echo(f"✓ {len(templates)} request(s) valid")
    for template in templates:
        click.echo(f"  • {template.id}: {template.method} {template.url}")


@cli.group()
def collection():
    """Saved request collection commands."""
    pass


collection_file_option = click.option(
    "--file",
    "collection_file",
    default=DEFAULT_COLLECTION_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Collection file",
)


@collection.command("list")
@collection_file_option
def list_requests(collection_file: str):
    """
    List saved requests.

    Example:
        rester collection list
    """
    try:
        saved = RequestCollection.load(collection_file)
    except CollectionError as e:
        _fail(str(e), EXIT_USAGE)

    if not len(saved):
        click.echo("No saved requests.")
        return

    click.echo(f"\nFound {len(saved)} request(s):\n")
    for template in saved.list():
        click.echo(f"  • {template.id}: {template.method} {template.url}")
        if template.description:
            click.echo(f"    {template.description}")


@collection.command("add")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@collection_file_option
def add_requests(paths: Tuple[str, ...], collection_file: str):
    """
    Save requests from definition files, replacing ones with the same id.

    Example:
        rester collection add login.yaml
    """
    try:
        saved = RequestCollection.load(collection_file)
        templates = load_templates(paths)
    except (CollectionError, ParseError) as e:
        _fail(str(e), EXIT_USAGE)

    for template in templates:
        replaced = saved.add(template)
        click.echo(f"✓ {'Updated' if replaced else 'Added'} request: {template.id}")

    try:
        saved.save()
    except CollectionError as e:
        _fail(str(e), EXIT_FAILURES)


@collection.command("remove")
@click.argument("request_id")
@collection_file_option
def remove_request(request_id: str, collection_file: str):
    """
    Remove a saved request.

    Example:
        rester collection remove login
    """
    try:
        saved = RequestCollection.load(collection_file)
        saved.remove(request_id)
        saved.save()
    except CollectionError as e:
        _fail(str(e), EXIT_FAILURES)

    click.echo(f"✓ Removed request: {request_id}")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
