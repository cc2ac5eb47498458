"""Command-line interface for codebox.

Usage:
    codebox run 'print("hello")'             # Run inline Python
    codebox run script.js                    # Run file (language from extension)
    echo "print(1)" | codebox run -          # Run from stdin
    codebox run -l python-chart plot.py -o out/
    codebox health                           # Daemon status
    codebox build-image                      # Build the chart image
"""

from __future__ import annotations

import asyncio
import base64
import sys
from pathlib import Path
from typing import NoReturn

import click

from codebox import (
    ExecutionResult,
    ExecutionTimeoutError,
    Language,
    MimeKind,
    NonZeroExitError,
    Sandbox,
    SandboxConfig,
    SandboxError,
    __version__,
)
from codebox._logging import configure_logging
from codebox.models import PYTHON_CHART_ALIAS

# Exit codes following Unix conventions
EXIT_SUCCESS = 0
EXIT_PROGRAM_FAILURE = 1
EXIT_CLI_ERROR = 2
EXIT_TIMEOUT = 124  # Matches `timeout` command
EXIT_SANDBOX_ERROR = 125

EXTENSION_MAP: dict[str, Language] = {
    ".py": Language.PYTHON,
    ".js": Language.NODE,
    ".mjs": Language.NODE,
    ".cjs": Language.NODE,
}


def detect_language(source: str | None) -> Language | None:
    """Auto-detect language from a file extension, None if unknown or not a path."""
    if not source or source == "-":
        return None
    suffix = Path(source).suffix
    return EXTENSION_MAP.get(suffix.lower()) if suffix else None


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern."""
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]
    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)
    return "\n".join(lines)


def exit_code_for(result: ExecutionResult) -> int:
    """Map an execution result onto a process exit code."""
    if result.success:
        return EXIT_SUCCESS
    if result.error_type == ExecutionTimeoutError.__name__:
        return EXIT_TIMEOUT
    if result.error_type == NonZeroExitError.__name__:
        return EXIT_PROGRAM_FAILURE
    return EXIT_SANDBOX_ERROR


def save_files(result: ExecutionResult, directory: Path) -> list[Path]:
    """Write collected output files to a local directory."""
    directory.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for output_file in result.files:
        target = directory / Path(output_file.name).name
        if output_file.kind is MimeKind.IMAGE:
            target.write_bytes(base64.b64decode(output_file.content))
        else:
            target.write_text(output_file.content, encoding="utf-8")
        written.append(target)
    return written


def build_config(timeout: int | None, memory: int | None) -> SandboxConfig:
    """Environment configuration with command-line overrides applied."""
    base = SandboxConfig.from_settings()
    overrides: dict[str, object] = {}
    if timeout is not None:
        overrides["timeout_ms"] = timeout
    if memory is not None:
        overrides["memory_mb"] = memory
    if not overrides:
        return base
    return SandboxConfig(**{**base.model_dump(), **overrides})


async def run_code(
    code: str,
    language: Language,
    config: SandboxConfig,
    json_output: bool,
    quiet: bool,
    save_dir: Path | None,
) -> int:
    """Execute code in the sandbox, print the outcome and return the exit code."""
    async with Sandbox(config) as sandbox:
        result = await sandbox.run(code, language)

    if json_output:
        click.echo(result.model_dump_json(indent=2))
        return exit_code_for(result)

    if result.output:
        click.echo(result.output, nl=not result.output.endswith("\n"))

    if not result.success:
        if result.error_type == ExecutionTimeoutError.__name__:
            click.echo(
                format_error(
                    "Execution timed out",
                    f"The code did not complete within {config.timeout_ms}ms.",
                    ["Increase timeout with -t/--timeout", "Check for infinite loops in your code"],
                ),
                err=True,
            )
        elif result.error_type == NonZeroExitError.__name__:
            click.echo(result.error, err=True)
        else:
            click.echo(format_error("Sandbox error", result.error or "unknown error"), err=True)

    if result.files:
        if save_dir is not None:
            for path in save_files(result, save_dir):
                click.echo(f"saved {path}", err=True)
        elif not quiet:
            for output_file in result.files:
                click.echo(f"[file] {output_file.name} ({output_file.mime_type})", err=True)

    if not quiet and sys.stderr.isatty():
        style = {"fg": "green"} if result.success else {"fg": "red"}
        click.echo(click.style(f"Done in {result.execution_time_ms}ms", dim=True, **style), err=True)

    return exit_code_for(result)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs")
@click.version_option(__version__, "-V", "--version", prog_name="codebox")
def main(verbose: bool) -> None:
    """Run untrusted code in throwaway Docker containers."""
    configure_logging(level="DEBUG" if verbose else None)


@main.command("run")
@click.argument("source", required=False)
@click.option(
    "-l",
    "--language",
    type=click.Choice([*(lang.value for lang in Language), PYTHON_CHART_ALIAS], case_sensitive=False),
    help="Language kind (auto-detected from file extension, default python)",
)
@click.option("-c", "--code", "inline_code", help="Code to execute (alternative to SOURCE)")
@click.option("-t", "--timeout", type=int, default=None, help="Timeout in milliseconds")
@click.option("-m", "--memory", type=int, default=None, help="Memory limit in MB")
@click.option("-o", "--save-dir", type=click.Path(file_okay=False, path_type=Path), help="Write output files here")
@click.option("--json", "json_output", is_flag=True, help="Output the result as JSON")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress output")
def run_command(
    source: str | None,
    language: str | None,
    inline_code: str | None,
    timeout: int | None,
    memory: int | None,
    save_dir: Path | None,
    json_output: bool,
    quiet: bool,
) -> NoReturn:
    """Execute code in an isolated container.

    SOURCE can be:

    \b
      - Inline code:  codebox run 'print("hello")'
      - File path:    codebox run script.py
      - Stdin:        echo 'print(1)' | codebox run -
    """
    code: str
    if inline_code:
        code = inline_code
    elif source == "-":
        if sys.stdin.isatty():
            raise click.UsageError("No input provided. Pipe code to stdin or use -c flag.")
        code = sys.stdin.read()
    elif source:
        path = Path(source)
        code = path.read_text(encoding="utf-8") if path.is_file() else source
    else:
        raise click.UsageError("No code provided. Provide SOURCE argument or use -c flag.")

    if not code.strip():
        raise click.UsageError("Empty code provided.")

    resolved = Language(language.lower()) if language else (detect_language(source) or Language.PYTHON)

    try:
        config = build_config(timeout, memory)
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    if quiet:
        configure_logging(quiet=True)

    sys.exit(asyncio.run(run_code(code, resolved, config, json_output, quiet, save_dir)))


@main.command("health")
def health_command() -> NoReturn:
    """Check that the Docker daemon is reachable."""

    async def check() -> tuple[bool, str]:
        async with Sandbox(SandboxConfig.from_settings()) as sandbox:
            return await sandbox.health.probe(), await sandbox.health.describe()

    healthy, description = asyncio.run(check())
    click.echo(description)
    sys.exit(EXIT_SUCCESS if healthy else EXIT_SANDBOX_ERROR)


@main.command("build-image")
def build_image_command() -> NoReturn:
    """Build the data-visualization image used by python-chart."""

    async def build() -> None:
        async with Sandbox(SandboxConfig.from_settings()) as sandbox:
            await sandbox.images.build_chart_image()

    try:
        asyncio.run(build())
    except SandboxError as e:
        click.echo(format_error("Image build failed", e.message, ["Run `codebox health` to check the daemon"]), err=True)
        sys.exit(EXIT_SANDBOX_ERROR)
    click.echo("Image built")
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
