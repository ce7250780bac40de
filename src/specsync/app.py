"""Typer application and CLI entry point for specsync.

Every command is a thin wrapper over the matching function in
:mod:`specsync.tools`: it resolves settings for the project directory,
opens the project's :class:`~specsync.cache.store.CacheStore`, calls the
tool, and prints the result through :mod:`specsync.output`.

:class:`~specsync.exceptions.SpecsyncError` instances are reported on
stderr and end the process with the error's ``exit_code``.
``specsync diff --fail-on-breaking`` exits with
:data:`~specsync.exit_codes.EXIT_BREAKING_CHANGES` when breaking changes
are found.
"""

from __future__ import annotations

import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer

from specsync import __version__, tools
from specsync.cache.store import CacheStore
from specsync.config import Settings, resolve_settings
from specsync.exceptions import SpecsyncError
from specsync.exit_codes import EXIT_BREAKING_CHANGES
from specsync.generator.targets import TARGETS
from specsync.models import Direction
from specsync.output import OutputFormat, OutputManager, error, format_data, get_output, set_output
from specsync.views import PARSE_FORMATS

app = typer.Typer(
    name="specsync",
    help="Parse, diff, analyse and generate code from OpenAPI/Swagger specs.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specsync {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    project_dir: Path = typer.Option(
        Path("."), "--project-dir", "-C", help="Project directory holding the cache and specsync.json."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr."),
) -> None:
    """Install the output manager and store shared options in ``ctx.obj``."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["project_dir"] = project_dir


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn a :class:`SpecsyncError` into an error message and its exit code."""
    try:
        yield
    except SpecsyncError as exc:
        error(exc.message)
        raise typer.Exit(code=exc.exit_code) from None


def _settings(ctx: typer.Context) -> Settings:
    return resolve_settings(ctx.obj["project_dir"])


@contextmanager
def _store(ctx: typer.Context, settings: Settings) -> Iterator[CacheStore]:
    store = CacheStore(
        ctx.obj["project_dir"],
        ttl_seconds=settings.ttl_seconds,
        cache_dirname=settings.cache_dirname,
    )
    with store:
        yield store
    if store.degraded_reason is not None:
        get_output().warning(f"Cache disabled: {store.degraded_reason.message}")


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("parse")
def parse_command(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Spec file path or URL."),
    format: str = typer.Option(
        "summary", "--format", "-f", help=f"Output format: {', '.join(PARSE_FORMATS)}."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", help="Page size for paginated formats."),
    offset: int = typer.Option(0, "--offset", help="First item of the page."),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only endpoints with this tag."),
    path_prefix: Optional[str] = typer.Option(
        None, "--path-prefix", help="Only endpoints whose path starts with this prefix."
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Fetch even if a fresh cache entry exists."),
    strict: bool = typer.Option(False, "--strict", help="Fail on structural violations."),
) -> None:
    """Parse a spec and show a summary, listing or paginated details.

    Example::

        specsync parse openapi.yaml --format endpoints --tag pets --limit 10
    """
    with _reported_errors():
        settings = _settings(ctx)
        with _store(ctx, settings) as store:
            result = tools.parse(
                source,
                format=format,
                use_cache=not no_cache,
                limit=limit,
                offset=offset,
                tag=tag,
                path_prefix=path_prefix,
                strict=strict,
                store=store,
                settings=settings,
            )
    format_data(result)


@app.command("deps")
def deps_command(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Spec file path or URL."),
    schema: str = typer.Argument(..., help="Schema name to analyse."),
    direction: Direction = typer.Option(
        Direction.BOTH, "--direction", "-d", help="upstream, downstream or both."
    ),
) -> None:
    """Show what a schema depends on and what depends on it."""
    with _reported_errors():
        settings = _settings(ctx)
        with _store(ctx, settings) as store:
            result = tools.deps(source, schema, direction, store=store, settings=settings)

    output = get_output()
    if output.format == OutputFormat.JSON:
        format_data(result)
        return
    rows = [
        [str(entry["depth"]), entry["node"], entry["node_kind"], entry["direction"], entry["via"] or "-"]
        for entry in result["affected_schemas"] + result["affected_endpoints"]
    ]
    output.print_table(
        ["Depth", "Node", "Kind", "Direction", "Via"],
        rows,
        title=f"Impact of {schema} ({result['total']})",
    )


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    old_source: str = typer.Argument(..., help="Old spec file path or URL."),
    new_source: str = typer.Argument(..., help="New spec file path or URL."),
    breaking_only: bool = typer.Option(False, "--breaking-only", help="Only list breaking changes."),
    fail_on_breaking: bool = typer.Option(
        False, "--fail-on-breaking", help=f"Exit with code {EXIT_BREAKING_CHANGES} on breaking changes."
    ),
) -> None:
    """Compare two spec versions and classify every change."""
    with _reported_errors():
        settings = _settings(ctx)
        with _store(ctx, settings) as store:
            result = tools.diff(old_source, new_source, breaking_only=breaking_only, store=store, settings=settings)

    output = get_output()
    if output.format == OutputFormat.JSON:
        format_data(result)
    else:
        rows = [
            [change["severity"], change["kind"], change["path"], change["message"]]
            for change in result["changes"]
        ]
        summary = result["summary"]
        output.print_table(
            ["Severity", "Kind", "Path", "Change"],
            rows,
            title=f"{summary['total']} change(s), {summary['breaking']} breaking",
        )
    if fail_on_breaking and result["summary"]["has_breaking_changes"]:
        raise typer.Exit(code=EXIT_BREAKING_CHANGES)


@app.command("status")
def status_command(
    ctx: typer.Context,
    check_remote: bool = typer.Option(False, "--check-remote", help="Revalidate every cached source."),
) -> None:
    """Show the freshness of every cached spec in the project."""
    with _reported_errors():
        settings = _settings(ctx)
        with _store(ctx, settings) as store:
            result = tools.status(ctx.obj["project_dir"], check_remote=check_remote, store=store, settings=settings)

    output = get_output()
    if output.format == OutputFormat.JSON:
        format_data(result)
        return
    rows = []
    for entry in result["entries"]:
        check = entry.get("check", {})
        state = check.get("freshness") or ("error" if "error" in check else "")
        rows.append(
            [
                entry["source"],
                f"{entry['title']} {entry['version']}",
                "expired" if entry["expired"] else "fresh",
                entry["expires_at"],
                state or "-",
            ]
        )
    output.print_table(["Source", "API", "State", "Expires", "Check"], rows, title="Cache status")


@app.command("generate")
def generate_command(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Spec file path or URL."),
    target: str = typer.Option(..., "--target", "-t", help=f"One of: {', '.join(TARGETS)}."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Directory to write files into."),
    type_naming: Optional[str] = typer.Option(
        None, "--type-naming", help="PascalCase, camelCase or snake_case."
    ),
    no_docs: bool = typer.Option(False, "--no-docs", help="Omit doc comments."),
    lenient: bool = typer.Option(
        False, "--lenient", help="Generate even if the document has structural violations."
    ),
) -> None:
    """Generate types or a client for a target language."""
    style: dict[str, Any] = {}
    if type_naming is not None:
        style["type_naming"] = type_naming
    if no_docs:
        style["generate_docs"] = False

    with _reported_errors():
        settings = _settings(ctx)
        with _store(ctx, settings) as store:
            result = tools.generate(
                source,
                target,
                style=style,
                out_dir=out,
                strict=not lenient,
                store=store,
                settings=settings,
            )

    output = get_output()
    for warning in result["warnings"]:
        output.warning(f"{warning['pointer']}: {warning['message']}")
    if output.format == OutputFormat.JSON:
        format_data(result)
    elif out is not None:
        for path in result.get("written", []):
            output.success(f"Wrote {path}")
    else:
        for name, text in result["files"].items():
            output.info(f"# {name}")
            output.print_data(text)


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``specsync`` console script."""
    _setup_signal_handlers()
    app()
