from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .gen.config import ConfigError, GenConfig, load_config_or_default
from .gen.errors import (
    AdmissionDenied,
    ContentRejected,
    Exhausted,
    JobCancelled,
    OrchestrationError,
    ProviderUnavailable,
)
from .gen.orchestrator import JobOrchestrator
from .gen.polling import CancellationToken
from .gen.provenance import log_generation_run
from .gen.providers.runpod import RunpodClient
from .gen.registry import ProviderRegistry
from .gen.types import GenerationRequest, GenerationResult
from .io import load_model, read_source_image

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
err_console = Console(stderr=True)

EXIT_CODES: dict[type[OrchestrationError], int] = {
    AdmissionDenied: 2,
    ContentRejected: 3,
    Exhausted: 4,
    JobCancelled: 130,
}


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
            force=True,
        )
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")


def _load_config(config_path: Optional[Path]) -> GenConfig:
    load_dotenv()
    try:
        return load_config_or_default(config_path)
    except ConfigError as e:
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


def _short(value: Any, limit: int = 96) -> str:
    text = value if isinstance(value, str) else json.dumps(value)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"


def _build_request(
    request_file: Optional[Path],
    prompt: Optional[str],
    kind: Optional[str],
    style: Optional[str],
    width: Optional[int],
    height: Optional[int],
    source_image: Optional[str],
    providers: Optional[list[str]],
) -> GenerationRequest:
    fields: dict[str, Any] = {
        "prompt": prompt,
        "kind": kind,
        "style_hint": style,
        "source_image": read_source_image(source_image) if source_image else None,
        "preferred_providers": tuple(providers) if providers else None,
    }
    if width or height:
        fields["dimensions"] = {"width": width or 1024, "height": height or 1024}

    if request_file is not None:
        return load_model(GenerationRequest, request_file, **fields)
    fields["kind"] = kind or "image"
    return GenerationRequest.model_validate({k: v for k, v in fields.items() if v is not None})


def _print_result(result: GenerationResult) -> None:
    table = Table(title=f"Generated with {result.provider_used}")
    table.add_column("#", justify="right")
    table.add_column("Output")
    for i, output in enumerate(result.outputs):
        table.add_row(str(i), _short(output))
    console.print(table)
    console.print(
        f"Job {result.job_id} | attempts: {result.attempts_made} | latency: {result.total_latency_ms}ms"
    )
    for a in result.attempts:
        console.print(f"  [yellow]skipped[/yellow] {a.provider_id}: {a.failure_kind}: {a.message}")


def _print_failure(error: OrchestrationError) -> None:
    err_console.print(f"[bold red]{error.kind}[/bold red]: {error.summary()}")
    if isinstance(error, AdmissionDenied):
        err_console.print(f"Retry after {error.retry_after_seconds}s")
    for a in error.attempts:
        err_console.print(f"  - attempt {a.attempt_index + 1}: {a.provider_id}: {a.failure_kind}: {a.message}")


def _run_generation(
    orchestrator: JobOrchestrator,
    request: GenerationRequest,
    caller_id: str,
    operation_class: Optional[str],
) -> GenerationResult:
    token = CancellationToken()
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(orchestrator.generate, request, caller_id, operation_class, token)
        try:
            return future.result()
        except KeyboardInterrupt:
            err_console.print("[yellow]Cancelling...[/yellow]")
            token.cancel()
            return future.result()


@app.command()
def generate(
    prompt: Optional[str] = typer.Argument(None, help="What to generate"),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="image, video, audio, llm-text or embedding"),
    request_file: Optional[Path] = typer.Option(
        None, "--request", "-r", exists=True, dir_okay=False, help="YAML request file"
    ),
    provider: Optional[list[str]] = typer.Option(
        None, "--provider", "-p", help="Preferred provider id; repeat for an ordered list"
    ),
    style: Optional[str] = typer.Option(None, "--style", help="Style hint, e.g. cinematic or anime"),
    width: Optional[int] = typer.Option(None, "--width"),
    height: Optional[int] = typer.Option(None, "--height"),
    source_image: Optional[str] = typer.Option(None, "--source-image", help="URL, data URI or local file"),
    caller: str = typer.Option("cli", "--caller", help="Caller identity for admission quotas"),
    operation_class: Optional[str] = typer.Option(None, "--class", help="Admission operation class"),
    log: Optional[Path] = typer.Option(None, "--log", help="Append a JSON-lines record of the run"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to genrelay.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run one generation through admission, fallback and polling."""
    _setup_logging(verbose)
    cfg = _load_config(config)

    try:
        request = _build_request(request_file, prompt, kind, style, width, height, source_image, provider)
    except (ValidationError, ValueError, OSError) as e:
        err_console.print(f"[bold red]Invalid request:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    orchestrator = JobOrchestrator.from_config(cfg)
    try:
        result = _run_generation(orchestrator, request, caller, operation_class)
    except ConfigError as e:
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    except OrchestrationError as e:
        if log is not None:
            log_generation_run(log, request, caller, error=e)
        if as_json:
            console.print_json(json.dumps(e.to_dict()))
        else:
            _print_failure(e)
        raise typer.Exit(code=EXIT_CODES.get(type(e), 4)) from e
    finally:
        orchestrator.close()

    if log is not None:
        log_generation_run(log, request, caller, result=result)
    if as_json:
        payload = {
            "outputs": result.outputs,
            "provider_used": result.provider_used,
            "job_id": result.job_id,
            "attempts_made": result.attempts_made,
            "total_latency_ms": result.total_latency_ms,
            "attempts": [a.to_dict() for a in result.attempts],
        }
        console.print_json(json.dumps(payload))
    else:
        _print_result(result)


@app.command()
def providers(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Only providers supporting this kind"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
):
    """List the provider catalog and which entries are configured."""
    registry = ProviderRegistry(_load_config(config))

    table = Table(title="Providers")
    table.add_column("Provider")
    table.add_column("Kinds")
    table.add_column("Transport")
    table.add_column("Configured")
    for d in registry.resolver.all_descriptors():
        if kind and not d.supports(kind):
            continue
        configured = "[green]yes[/green]" if d.is_configured else "[red]no[/red]"
        table.add_row(d.provider_id, ", ".join(sorted(d.media_kinds)), d.transport, configured)
    console.print(table)


@app.command()
def health(config: Optional[Path] = typer.Option(None, "--config", "-c")):
    """Report worker and queue counts for configured Runpod endpoints."""
    registry = ProviderRegistry(_load_config(config))
    descriptors = [d for d in registry.resolver.list_configured() if d.family == "runpod"]
    if not descriptors:
        console.print("[yellow]No Runpod endpoints are configured[/yellow]")
        raise typer.Exit(code=0)

    try:
        client = registry.get_client("runpod")
    except ConfigError as e:
        registry.close()
        err_console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    if not isinstance(client, RunpodClient):
        registry.close()
        err_console.print(
            f"[bold red]Error:[/bold red] runpod family is served by {type(client).__name__}, "
            "which has no health endpoint"
        )
        raise typer.Exit(code=1)

    table = Table(title="Runpod endpoints")
    table.add_column("Provider")
    table.add_column("Endpoint")
    table.add_column("Workers ready", justify="right")
    table.add_column("In queue", justify="right")
    table.add_column("Status")
    unhealthy = 0
    try:
        for d in descriptors:
            info = client.health(d)
            if info is None:
                unhealthy += 1
                table.add_row(d.provider_id, d.endpoint_identifier, "-", "-", "[red]unreachable[/red]")
                continue
            table.add_row(
                d.provider_id,
                d.endpoint_identifier,
                str(info["workers"].get("ready", 0)),
                str(info["jobs"].get("inQueue", 0)),
                "[green]healthy[/green]",
            )
    finally:
        registry.close()
    console.print(table)
    if unhealthy:
        raise typer.Exit(code=1)


@app.command()
def status(
    provider_id: str = typer.Argument(..., help="Provider id, e.g. replicate-flux-schnell"),
    job_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
):
    """Poll a provider job once and print its status."""
    registry = ProviderRegistry(_load_config(config))
    try:
        descriptor = registry.descriptor(provider_id)
        report = registry.client_for(descriptor).poll(descriptor, job_id)
    except (ConfigError, ProviderUnavailable) as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    finally:
        registry.close()

    state = report.status.value if report.status else f"unknown ({report.raw_status})"
    console.print(f"[bold]{provider_id}[/bold] job {job_id}: {state}")
    if report.error:
        console.print(f"[red]{report.error}[/red]")
    if report.output is not None:
        console.print(_short(report.output, limit=400))


@app.command()
def cancel(
    provider_id: str = typer.Argument(...),
    job_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
):
    """Request best-effort cancellation of a provider job."""
    registry = ProviderRegistry(_load_config(config))
    try:
        descriptor = registry.descriptor(provider_id)
        cancelled = registry.client_for(descriptor).cancel(descriptor, job_id)
    except ConfigError as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    finally:
        registry.close()

    if cancelled:
        console.print(f"[bold green]Cancel requested[/bold green] for {job_id}")
        raise typer.Exit(code=0)
    console.print(f"[yellow]Could not cancel[/yellow] {job_id}")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
