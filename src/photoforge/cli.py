"""Command-line interface for PhotoForge.

Provides commands for managing API keys, validating session configs,
running photo sessions, and one-off outfit previews.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from photoforge.config import AppSettings, PhotoForgeConfig, load_config, validate_config
from photoforge.errors import AllCredentialsFailedError, PhotoForgeError
from photoforge.executor import ResilientExecutor
from photoforge.factory import create_executor, create_pool, create_service, create_session
from photoforge.logging import setup_logging
from photoforge.models import DEFAULT_IMAGE_MODEL, CredentialStatus, OutcomeStatus, Preview
from photoforge.observability import RunMetricsCollector, write_run_summary
from photoforge.pool import CredentialPool
from photoforge.previews import (
    enhance_prompt,
    generate_casual_preview,
    generate_traditional_preview,
)
from photoforge.providers._base import GenerationService
from photoforge.session import GenerationSession

console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CREDENTIALS_EXHAUSTED = 2
EXIT_STOPPED = 130

_STATUS_STYLES = {
    CredentialStatus.ACTIVE: "green",
    CredentialStatus.UNVALIDATED: "cyan",
    CredentialStatus.INVALID: "red",
    CredentialStatus.EXHAUSTED: "yellow",
}


def _setup_logging(ctx: click.Context, verbose: bool = False) -> None:
    """Configure logging from the global options and a command's ``-v`` flag.

    Console output stays at WARNING unless ``-v`` is given; a log file or
    JSON logs raise the threshold to INFO so runs leave a useful trail.
    """
    opts = ctx.obj or {}
    log_file = opts.get("log_file")
    json_logs = opts.get("json_logs", False)
    if verbose:
        level = logging.DEBUG
    elif log_file is not None or json_logs:
        level = logging.INFO
    else:
        level = logging.WARNING
    setup_logging(level=level, verbose=verbose, log_file=log_file, json_logs=json_logs)


def _settings(ctx: click.Context, base: AppSettings | None = None) -> AppSettings:
    """Apply the global ``--credentials`` override to *base*."""
    settings = base or AppSettings()
    override = (ctx.obj or {}).get("credentials_path")
    if override is not None:
        settings = settings.model_copy(update={"credentials_path": override})
    return settings


def _exit_code(status: OutcomeStatus) -> int:
    return {
        OutcomeStatus.COMPLETED: EXIT_OK,
        OutcomeStatus.STOPPED: EXIT_STOPPED,
        OutcomeStatus.FAILED: EXIT_FAILED,
        OutcomeStatus.CREDENTIALS_EXHAUSTED: EXIT_CREDENTIALS_EXHAUSTED,
    }[status]


@click.group()
@click.version_option(package_name="photoforge")
@click.option(
    "--credentials",
    "credentials_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="PHOTOFORGE_CREDENTIALS",
    help="Credential file (default: ~/.photoforge/credentials.json)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="PHOTOFORGE_LOG_FILE",
    help="Also write logs to this file",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as one JSON object per line")
@click.pass_context
def main(
    ctx: click.Context,
    credentials_path: Path | None,
    log_file: Path | None,
    json_logs: bool,
) -> None:
    """PhotoForge: prewedding photo sessions on Gemini image models."""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["credentials_path"] = credentials_path
    ctx.obj["log_file"] = log_file
    ctx.obj["json_logs"] = json_logs
    _setup_logging(ctx)


# ---------------------------------------------------------------------------
# keys
# ---------------------------------------------------------------------------


@main.group()
def keys() -> None:
    """Manage the API keys in the credential pool."""


def _print_pool(pool: CredentialPool) -> None:
    table = Table(title="API keys")
    table.add_column("ID")
    table.add_column("Key")
    table.add_column("Status")
    table.add_column("Origin")
    for cred in pool.credentials:
        style = _STATUS_STYLES.get(cred.status, "white")
        table.add_row(
            cred.id, cred.masked, f"[{style}]{cred.status.value}[/]", cred.origin.value
        )
    console.print(table)
    if pool.exhausted_all:
        console.print(
            "[bold yellow]⚠[/] No usable API keys. "
            "Add your own key with [bold]photoforge keys add[/]."
        )


@keys.command("list")
@click.pass_context
def keys_list(ctx: click.Context) -> None:
    """Show every key with its status."""
    pool = create_pool(_settings(ctx))
    _print_pool(pool)


@keys.command("add")
@click.argument("secrets", nargs=-1)
@click.option("--stdin", "from_stdin", is_flag=True, help="Read keys from standard input")
@click.pass_context
def keys_add(ctx: click.Context, secrets: tuple[str, ...], from_stdin: bool) -> None:
    """Add one or more API keys (one per argument or per line).

    Example:

        \b
        photoforge keys add AIza...one AIza...two
        cat keys.txt | photoforge keys add --stdin
    """
    raw = list(secrets)
    if from_stdin:
        raw.append(click.get_text_stream("stdin").read())
    if not any(s.strip() for s in raw):
        console.print("[bold red]✗[/] No API keys given.")
        sys.exit(EXIT_FAILED)

    pool = create_pool(_settings(ctx))
    before = {c.id for c in pool.credentials}
    added = [c for c in pool.add(raw) if c.id not in before]
    if added:
        console.print(f"[bold green]✓[/] Added {len(added)} key(s).")
        for cred in added:
            console.print(f"  • {cred.id} ({cred.masked})")
    else:
        console.print("[bold yellow]⚠[/] Every key given is already in the pool.")


@keys.command("remove")
@click.argument("credential_id")
@click.pass_context
def keys_remove(ctx: click.Context, credential_id: str) -> None:
    """Remove the key with ID CREDENTIAL_ID."""
    pool = create_pool(_settings(ctx))
    try:
        removed = pool.remove(credential_id)
    except PhotoForgeError as e:
        console.print(f"[bold red]✗[/] {e}")
        sys.exit(EXIT_FAILED)
    if not removed:
        console.print(f"[bold red]✗[/] No key with ID {credential_id}")
        sys.exit(EXIT_FAILED)
    console.print(f"[bold green]✓[/] Removed {credential_id}")


@keys.command("validate")
@click.option("--verbose", "-v", is_flag=True, help="Enable detailed logging")
@click.pass_context
def keys_validate(ctx: click.Context, verbose: bool) -> None:
    """Probe every key against the API and record the result."""
    _setup_logging(ctx, verbose)
    settings = _settings(ctx)
    pool = create_pool(settings)
    if not len(pool):
        console.print("[bold yellow]⚠[/] The pool is empty.")
        sys.exit(EXIT_CREDENTIALS_EXHAUSTED)

    async def _validate() -> None:
        service = create_service(settings)
        try:
            await pool.validate_all(service.validate_credential)
        finally:
            await service.close()

    with console.status(f"[bold blue]Validating {len(pool)} key(s)..."):
        asyncio.run(_validate())
    _print_pool(pool)
    if pool.exhausted_all:
        sys.exit(EXIT_CREDENTIALS_EXHAUSTED)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--verbose", "-v", is_flag=True, help="Enable detailed logging")
@click.pass_context
def validate(ctx: click.Context, config_path: Path, verbose: bool) -> None:
    """Validate a session configuration without generating.

    CONFIG_PATH: Path to the YAML configuration file
    """
    _setup_logging(ctx, verbose)
    try:
        warnings = validate_config(config_path)
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[bold red]✗[/] Validation failed: {e}")
        if verbose:
            console.print_exception()
        sys.exit(EXIT_FAILED)

    session = config.session
    console.print("[bold green]✓[/] Configuration is valid")
    console.print(f"  Mode: {session.mode.value}")
    console.print(f"  Theme: {session.theme}")
    console.print(f"  Images: {session.image_count} ({session.image_model})")
    if warnings:
        console.print()
        console.print(f"[bold yellow]⚠[/] {len(warnings)} warning(s):")
        for warning in warnings:
            console.print(f"  • {warning}")


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


@main.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Directory to write the images to",
)
@click.option("--count", "-n", type=click.IntRange(min=1), help="Images to generate (overrides config)")
@click.option(
    "--metrics-out",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a JSON run summary to this file",
)
@click.option(
    "--complete/--no-complete",
    default=None,
    help="Generate the missing images when a run ends short (asks when omitted)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable detailed logging")
@click.pass_context
def generate(
    ctx: click.Context,
    config_path: Path,
    output: Path,
    count: int | None,
    metrics_out: Path | None,
    complete: bool | None,
    verbose: bool,
) -> None:
    """Run a photo session from a configuration file.

    CONFIG_PATH: Path to the YAML configuration file

    Press Ctrl+C to stop after the image in progress.

    Example:

        \b
        photoforge generate configs/example.yaml --output output/bali
        photoforge generate configs/example.yaml -o output/bali --count 3 --complete
    """
    _setup_logging(ctx, verbose)

    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[bold red]✗[/] Could not load configuration: {e}")
        sys.exit(EXIT_FAILED)

    console.print(
        f"[bold green]✓[/] Loaded {config.session.mode.value}-mode session "
        f"for [bold]{config.session.theme}[/]"
    )
    console.print(f"  Output: {output}")
    console.print()

    try:
        code = asyncio.run(
            _run_generation(
                ctx,
                config,
                output,
                count=count,
                metrics_out=metrics_out,
                complete=complete,
            )
        )
    except PhotoForgeError as e:
        console.print(f"[bold red]✗[/] Generation failed: {e}")
        sys.exit(EXIT_FAILED)
    except Exception as e:
        console.print(f"[bold red]✗[/] Unexpected error: {e}")
        if verbose:
            console.print_exception()
        sys.exit(EXIT_FAILED)
    sys.exit(code)


def _install_stop_handler(session: GenerationSession) -> bool:
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, session.stop)
    except (NotImplementedError, RuntimeError, ValueError):
        return False
    return True


def _remove_stop_handler() -> None:
    try:
        asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError, ValueError):
        pass


async def _run_session_with_progress(
    session: GenerationSession,
    *,
    continuation: bool,
) -> None:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Preparing...", total=None)

        def on_progress(message: str) -> None:
            progress.update(
                task,
                description=f"[cyan]{message}",
                completed=len(session.images),
                total=session.target_count or None,
            )

        session.on_progress = on_progress
        if continuation:
            await session.complete_failed_session()
        else:
            await session.start()
        progress.update(task, completed=len(session.images), total=session.target_count)


def _should_complete(complete: bool | None, missing: int) -> bool:
    if complete is not None:
        return complete
    if not sys.stdin.isatty():
        return False
    return click.confirm(f"{missing} image(s) missing. Generate them now?", default=True)


async def _run_generation(
    ctx: click.Context,
    config: PhotoForgeConfig,
    output: Path,
    *,
    count: int | None,
    metrics_out: Path | None,
    complete: bool | None,
) -> int:
    """Run the session (and an optional completion pass), then save images."""
    settings = _settings(ctx, config.settings)
    options = config.session
    if count is not None:
        options = options.model_copy(update={"image_count": count})

    metrics = RunMetricsCollector()
    service = create_service(settings)
    session = create_session(options, settings, service=service, metrics=metrics)

    stop_installed = _install_stop_handler(session)
    try:
        await _run_session_with_progress(session, continuation=False)
        outcome = session.last_outcome
        if (
            outcome is not None
            and outcome.status is not OutcomeStatus.CREDENTIALS_EXHAUSTED
            and session.is_incomplete
            and _should_complete(complete, session.target_count - len(session.images))
        ):
            await _run_session_with_progress(session, continuation=True)
            outcome = session.last_outcome
    finally:
        if stop_installed:
            _remove_stop_handler()
        await service.close()
        metrics.finish()

    saved = _save_images(session, output)
    if outcome is None:
        return EXIT_FAILED

    style = "green" if outcome.status is OutcomeStatus.COMPLETED else "yellow"
    console.print(f"[bold {style}]●[/] {outcome.message}")
    console.print(
        f"  Saved {len(saved)} of {session.target_count} image(s) to [bold]{output}[/]"
    )

    if metrics_out is not None:
        write_run_summary(
            metrics_out,
            {
                "outcome": outcome.model_dump(mode="json"),
                "metrics": metrics.snapshot(),
            },
        )
        console.print(f"  Run summary: {metrics_out}")

    return _exit_code(outcome.status)


def _save_images(session: GenerationSession, output: Path) -> list[Path]:
    output.mkdir(parents=True, exist_ok=True)
    return [
        image.artifact.save(output / f"{index:02d}_{image.id}.{image.artifact.extension}")
        for index, image in enumerate(session.images, start=1)
    ]


# ---------------------------------------------------------------------------
# preview / enhance
# ---------------------------------------------------------------------------


@main.group()
def preview() -> None:
    """Render one-off outfit previews."""


def _run_preview(
    ctx: click.Context,
    output: Path,
    make: Callable[[ResilientExecutor, GenerationService], Awaitable[Preview]],
) -> None:
    settings = _settings(ctx)

    async def _go() -> Preview:
        pool = create_pool(settings)
        service = create_service(settings)
        try:
            return await make(create_executor(pool, settings), service)
        finally:
            await service.close()

    try:
        with console.status("[bold blue]Generating preview..."):
            result = asyncio.run(_go())
    except AllCredentialsFailedError as e:
        console.print(f"[bold red]✗[/] {e}")
        sys.exit(EXIT_CREDENTIALS_EXHAUSTED)
    except PhotoForgeError as e:
        console.print(f"[bold red]✗[/] Preview failed: {e}")
        sys.exit(EXIT_FAILED)

    if not output.suffix:
        output = output.with_suffix(f".{result.image.extension}")
    result.image.save(output)
    console.print(f"[bold green]✓[/] Preview saved: [bold]{output}[/]")
    console.print(f"  {result.text_prompt}")


@preview.command("casual")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=Path("casual_preview"))
@click.option("--model", default=DEFAULT_IMAGE_MODEL, show_default=True)
@click.pass_context
def preview_casual(ctx: click.Context, output: Path, model: str) -> None:
    """Render a random casual outfit for the couple."""
    _run_preview(
        ctx,
        output,
        lambda executor, service: generate_casual_preview(executor, service, model=model),
    )


@preview.command("traditional")
@click.argument("region")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=Path("traditional_preview"))
@click.option("--model", default=DEFAULT_IMAGE_MODEL, show_default=True)
@click.pass_context
def preview_traditional(ctx: click.Context, region: str, output: Path, model: str) -> None:
    """Render traditional wedding attire from REGION (e.g. Java, Bali)."""
    _run_preview(
        ctx,
        output,
        lambda executor, service: generate_traditional_preview(
            executor, service, region, model=model
        ),
    )


@main.command()
@click.argument("text")
@click.pass_context
def enhance(ctx: click.Context, text: str) -> None:
    """Rewrite a short couple description into a richer prompt."""
    settings = _settings(ctx)

    async def _go() -> str:
        pool = create_pool(settings)
        service = create_service(settings)
        try:
            return await enhance_prompt(create_executor(pool, settings), service, text)
        finally:
            await service.close()

    try:
        with console.status("[bold blue]Enhancing description..."):
            enhanced = asyncio.run(_go())
    except AllCredentialsFailedError as e:
        console.print(f"[bold red]✗[/] {e}")
        sys.exit(EXIT_CREDENTIALS_EXHAUSTED)
    except PhotoForgeError as e:
        console.print(f"[bold red]✗[/] Enhancement failed: {e}")
        sys.exit(EXIT_FAILED)
    click.echo(enhanced)


if __name__ == "__main__":
    main()
