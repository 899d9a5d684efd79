"""btuid CLI entry point."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from btuid.generator import BtuidGenerator

_state_option = click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="State file to resume from and persist to.",
)
_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file with a 'generator' section.",
)
_key_option = click.option("--key", default=None, help="Passphrase for the keyed codec.")


@click.group()
@click.version_option(package_name="btuid")
@click.option("--json-logs", is_flag=True, default=False, help="Output logs as JSON.")
@click.option("--log-level", default="WARNING", show_default=True, help="Log level.")
def cli(json_logs: bool, log_level: str) -> None:
    """btuid: partitioned unique identifiers from the command line."""
    from btuid.core.logging import configure_logging

    configure_logging(json_output=json_logs, level=log_level)


@cli.command()
@_state_option
@_config_option
@click.option("--count", "-n", type=click.IntRange(min=1), default=1, help="How many to issue.")
@click.option("--raw", is_flag=True, default=False, help="Print decimal integers.")
@click.option("--bare", is_flag=True, default=False, help="Omit the random suffix.")
@click.option("--encode", "encode_", is_flag=True, default=False, help="Obfuscate each token.")
@_key_option
def issue(
    state_path: Path | None,
    config_path: Path | None,
    count: int,
    raw: bool,
    bare: bool,
    encode_: bool,
    key: str | None,
) -> None:
    """Issue new identifiers."""
    if raw and encode_:
        raise click.UsageError("--raw cannot be combined with --encode")

    with _open_generator(state_path, config_path) as generator:
        for _ in range(count):
            if raw:
                click.echo(generator.issue_raw_id())
                continue
            token = generator.issue_id() if bare else generator.issue_token()
            click.echo(generator.encode(token, key) if encode_ else token)


@cli.command()
@click.argument("token")
@_state_option
@_config_option
@_key_option
def encode(token: str, state_path: Path | None, config_path: Path | None, key: str | None) -> None:
    """Obfuscate TOKEN with the table stored in the state file."""
    with _open_generator(state_path, config_path, need_path=True) as generator:
        click.echo(generator.encode(token, key))


@cli.command()
@click.argument("token")
@_state_option
@_config_option
@_key_option
def decode(token: str, state_path: Path | None, config_path: Path | None, key: str | None) -> None:
    """Recover the plain token from an obfuscated TOKEN."""
    with _open_generator(state_path, config_path, need_path=True) as generator:
        click.echo(generator.decode(token, key))


@cli.command()
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="State file to inspect.",
)
def status(state_path: Path) -> None:
    """Show the allocator position stored in a state file."""
    from btuid.core.errors import PersistenceError
    from btuid.core.partition import chunk_count
    from btuid.core.state import StateStore

    try:
        record = StateStore(state_path).restore()
    except PersistenceError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    if record is None:
        click.echo("No state file found. Has a generator been run?")
        raise SystemExit(1)

    click.echo(f"Depth        : {record.depth}")
    click.echo(f"Fanout       : {record.fanout}")
    click.echo(f"Cursor       : {record.cursor} / {chunk_count(record.fanout, record.depth)}")
    click.echo(f"Chunk length : {record.chunk_length}")
    click.echo(f"Start offset : {record.start_offset:#018x}")
    click.echo(f"Table        : {'present' if record.table else 'not generated'}")


def _open_generator(
    state_path: Path | None, config_path: Path | None, need_path: bool = False
) -> _GuardedGenerator:
    from btuid.core.config import load_config_file, make_generator_config
    from btuid.core.errors import BtuidError
    from btuid.generator import BtuidGenerator

    document = load_config_file(config_path) if config_path else {}
    config = make_generator_config(document)
    if state_path is not None:
        config = config.model_copy(update={"path": state_path})
    if need_path and config.path is None:
        raise click.UsageError("a state file (--state or config 'path') is required")

    try:
        return _GuardedGenerator(BtuidGenerator(config, autosave=False))
    except BtuidError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)


class _GuardedGenerator:
    """Context manager that saves and closes the generator and reports btuid errors."""

    def __init__(self, generator: BtuidGenerator) -> None:
        self._generator = generator

    def __enter__(self) -> BtuidGenerator:
        return self._generator

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        from btuid.core.errors import BtuidError

        # The close-time write is the only save a CLI run makes.
        try:
            self._generator.close(strict=exc is None)
        except BtuidError as close_exc:
            exc = close_exc
        if isinstance(exc, BtuidError):
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1)
        return False
