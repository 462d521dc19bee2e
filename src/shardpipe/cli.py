# src/shardpipe/cli.py
"""shardpipe Command Line Interface.

Entry point for the shardpipe CLI tool.

    shardpipe run -c "wc -l" part-0.txt part-1.txt
    shardpipe run --settings pipe.yaml data/*.txt
    shardpipe serializers
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from shardpipe import __version__
from shardpipe.contracts.enums import StderrMode, WorkingDirMode
from shardpipe.contracts.errors import FramingError, PipeError
from shardpipe.core.config import (
    ConcurrencySettings,
    LoggingSettings,
    PipeSettings,
    ShardpipeSettings,
    load_settings,
)
from shardpipe.core.logging import configure_logging, get_logger
from shardpipe.engine.local import LocalDataset
from shardpipe.plugins.manager import SerializerManager

__all__ = ["app"]

# Module-level singleton for serializer manager
_serializer_manager_cache: SerializerManager | None = None


def _get_serializer_manager() -> SerializerManager:
    """Get initialized serializer manager (singleton)."""
    global _serializer_manager_cache

    if _serializer_manager_cache is None:
        manager = SerializerManager()
        manager.register_builtin_plugins()
        _serializer_manager_cache = manager
    return _serializer_manager_cache


app = typer.Typer(
    name="shardpipe",
    help="shardpipe: pipe partitioned data through external commands.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"shardpipe version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """shardpipe: pipe partitioned data through external commands."""


def _parse_env(pairs: list[str]) -> dict[str, str]:
    """Parse KEY=VALUE pairs from --env options."""
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env


def _error(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)


def _resolve_settings(
    settings_file: Path | None,
    command: str | None,
    env: list[str],
    isolated: bool | None,
    encoding: str | None,
    buffer_size: int | None,
    serializer: str | None,
    discard_stderr: bool,
    workers: int | None,
    json_logs: bool,
    log_level: str | None,
) -> ShardpipeSettings:
    """Merge the settings file (if any) with command-line overrides.

    Command-line options win over the file.
    """
    if settings_file is not None:
        base = load_settings(settings_file)
        pipe_data = base.pipe.model_dump()
        concurrency = base.concurrency
        logging_settings = base.logging
    else:
        if command is None:
            raise typer.BadParameter("Either --command or --settings is required", param_hint="--command")
        pipe_data = {}
        concurrency = ConcurrencySettings()
        logging_settings = LoggingSettings()

    if command is not None:
        pipe_data["command"] = command
    if env:
        pipe_data["env"] = {**pipe_data.get("env", {}), **_parse_env(env)}
    if isolated is not None:
        pipe_data["working_dir"] = WorkingDirMode.ISOLATED if isolated else WorkingDirMode.INHERIT
    if encoding is not None:
        pipe_data["encoding"] = encoding
    if buffer_size is not None:
        pipe_data["buffer_size"] = buffer_size
    if serializer is not None:
        pipe_data["serializer"] = serializer
    if discard_stderr:
        pipe_data["stderr"] = StderrMode.DISCARD
    if workers is not None:
        concurrency = ConcurrencySettings(max_workers=workers)
    if json_logs or log_level is not None:
        logging_settings = LoggingSettings(
            level=log_level or logging_settings.level,
            json_output=json_logs or logging_settings.json_output,
        )

    return ShardpipeSettings(
        pipe=PipeSettings(**pipe_data),
        concurrency=concurrency,
        logging=logging_settings,
    )


@app.command()
def run(
    files: list[Path] = typer.Argument(..., help="Input text files; each file is one partition.", exists=True, dir_okay=False),
    command: str | None = typer.Option(None, "--command", "-c", help="Command to pipe each partition through."),
    settings_file: Path | None = typer.Option(None, "--settings", "-s", help="YAML settings file.", exists=True, dir_okay=False),
    env: list[str] = typer.Option([], "--env", "-e", help="Environment override KEY=VALUE (repeatable)."),
    isolated: bool | None = typer.Option(
        None,
        "--separate-working-dir/--shared-working-dir",
        help="Run each partition in its own working directory.",
    ),
    encoding: str | None = typer.Option(None, "--encoding", help="Character encoding of the pipe."),
    buffer_size: int | None = typer.Option(None, "--buffer-size", help="Pipe buffer size in bytes."),
    serializer: str | None = typer.Option(None, "--serializer", help="Serializer name (see 'shardpipe serializers')."),
    discard_stderr: bool = typer.Option(False, "--discard-stderr", help="Send the command's stderr to /dev/null."),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Partitions to run concurrently."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines on stderr."),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level."),
) -> None:
    """Pipe each input file through a command and print the output lines."""
    try:
        settings = _resolve_settings(
            settings_file,
            command,
            env,
            isolated,
            encoding,
            buffer_size,
            serializer,
            discard_stderr,
            workers,
            json_logs,
            log_level,
        )
        spec = settings.pipe.to_pipe_spec(_get_serializer_manager())
    except ValidationError as e:
        _error(f"Invalid configuration:\n{e}")
        raise typer.Exit(1) from None
    except ValueError as e:
        _error(str(e))
        raise typer.Exit(1) from None

    configure_logging(json_output=settings.logging.json_output, level=settings.logging.level)
    logger = get_logger(__name__)
    logger.info("Starting pipe", command=spec.display_command, partitions=len(files))

    dataset = LocalDataset.text_file(*files, max_workers=settings.concurrency.max_workers)
    try:
        for element in dataset.pipe_spec(spec).collect():
            typer.echo(element)
    except (PipeError, FramingError) as e:
        _error(str(e))
        raise typer.Exit(1) from None


@app.command()
def serializers() -> None:
    """List registered serializers."""
    manager = _get_serializer_manager()
    for name in manager.names():
        cls = manager.get_serializer_by_name(name)
        assert cls is not None
        doc = (cls.__doc__ or "").strip().splitlines()
        summary = doc[0] if doc else ""
        typer.echo(f"{name}\t{summary}")
