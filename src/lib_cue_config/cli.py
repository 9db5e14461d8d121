"""CLI adapter for ``lib_cue_config`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators resolve keys, dump the merged configuration, and produce build
snapshots from a shell, using the same registrations an application would
make in code.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root group wiring traceback handling into ``lib_cli_exit_tools``.
* :func:`cli_info` – distribution metadata.
* :func:`cli_parse_value` – show how an environment value would be typed.
* :func:`cli_get` – resolve one key.
* :func:`cli_show` – inspection dump or merged view (JSON/YAML).
* :func:`cli_commit` – write a build snapshot file.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
Outermost layer: builds a :class:`~lib_cue_config.core.ConfigContext` per
invocation and never touches adapters directly. Library errors propagate to
``lib_cli_exit_tools``, which maps them to exit codes.
"""

from __future__ import annotations

import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click
import yaml

from .core import ConfigContext
from .domain.phase import Phase
from .domain.selector import EnvPrefix, FileSelector
from .domain.values import parse_value

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

#: Types accepted by ``get --as``.
TYPE_CHOICES: Final[dict[str, type]] = {"int": int, "float": float, "str": str, "bool": bool}
FORMAT_CHOICES: Final[tuple[str, ...]] = ("json", "yaml")


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when not installed."""

    try:
        return metadata.version("lib_cue_config")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def registration_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the selector and environment options shared by several commands."""

    options = [
        click.option(
            "--file",
            "files",
            multiple=True,
            help="Configuration file to register (repeatable)",
        ),
        click.option(
            "--pattern",
            "patterns",
            nargs=2,
            multiple=True,
            metavar="ROOT REGEX",
            help="Register files below ROOT whose relative path matches REGEX (repeatable)",
        ),
        click.option(
            "--env-prefix",
            "env_prefixes",
            multiple=True,
            help="Environment variable prefix to register (repeatable)",
        ),
        click.option(
            "--case-sensitive/--case-insensitive",
            default=False,
            help="Match environment prefixes case-sensitively",
        ),
        click.option(
            "--fallback/--no-fallback",
            default=True,
            show_default=True,
            help="Fall back to a sibling .json when a .cue file cannot be exported",
        ),
        click.option(
            "--optional",
            is_flag=True,
            default=False,
            help="Do not fail when a file selector matches nothing",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group(
    help="Layered cue/sops/env configuration resolver",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_cue_config",
    message="lib_cue_config version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command storing the traceback preference for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_cue_config")
    except metadata.PackageNotFoundError:
        click.echo("lib_cue_config (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_cue_config')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("parse-value", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("value")
def cli_parse_value(value: str) -> None:
    """Print the JSON value an environment variable holding VALUE would produce.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> CliRunner().invoke(cli, ["parse-value", "[1,2.5]"]).output.strip()
    '[1.0, 2.5]'
    """

    click.echo(_dump_json(parse_value(value)))


@cli.command("get", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("key")
@registration_options
@click.option(
    "--snapshot",
    type=click.Path(path_type=Path, exists=True, dir_okay=False, readable=True),
    default=None,
    help="Snapshot file written by `commit`, used as build-phase defaults",
)
@click.option(
    "--as",
    "as_type",
    type=click.Choice(sorted(TYPE_CHOICES)),
    default=None,
    help="Return the value as this type",
)
def cli_get(
    key: str,
    files: Sequence[str],
    patterns: Sequence[tuple[str, str]],
    env_prefixes: Sequence[str],
    case_sensitive: bool,
    fallback: bool,
    optional: bool,
    snapshot: Optional[Path],
    as_type: Optional[str],
) -> None:
    """Resolve KEY (dotted) from the registered sources and print it as JSON."""

    context = ConfigContext(snapshot=snapshot)
    _register(context, Phase.RUN, files, patterns, env_prefixes, case_sensitive, fallback, optional)
    store = context.store(Phase.RUN)
    value = store.get(key) if as_type is None else store.get_typed(key, TYPE_CHOICES[as_type])
    click.echo(_dump_json(value))


@cli.command("show", context_settings=CLICK_CONTEXT_SETTINGS)
@registration_options
@click.option(
    "--snapshot",
    type=click.Path(path_type=Path, exists=True, dir_okay=False, readable=True),
    default=None,
    help="Snapshot file written by `commit`, used as build-phase defaults",
)
@click.option("--merged", is_flag=True, default=False, help="Print the merged document instead of the inspection dump")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default="json",
    show_default=True,
    help="Output format for --merged",
)
@click.option(
    "--provenance/--no-provenance",
    default=False,
    help="Include the origin of every leaf with --merged",
)
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indent for --merged")
def cli_show(
    files: Sequence[str],
    patterns: Sequence[tuple[str, str]],
    env_prefixes: Sequence[str],
    case_sensitive: bool,
    fallback: bool,
    optional: bool,
    snapshot: Optional[Path],
    merged: bool,
    output_format: str,
    provenance: bool,
    indent: int,
) -> None:
    """Show the loaded sources, or with ``--merged`` the whole merged document."""

    context = ConfigContext(snapshot=snapshot)
    _register(context, Phase.RUN, files, patterns, env_prefixes, case_sensitive, fallback, optional)
    store = context.store(Phase.RUN)
    if not merged:
        click.echo(store.describe())
        return
    view = store.view()
    payload: Any = {"config": view.as_dict(), "provenance": view.provenance()} if provenance else view.as_dict()
    if output_format.lower() == "yaml":
        click.echo(yaml.safe_dump(payload, sort_keys=False, allow_unicode=True), nl=False)
        return
    click.echo(_dump_json(payload, indent=indent))


@cli.command("commit", context_settings=CLICK_CONTEXT_SETTINGS)
@registration_options
@click.option(
    "--project-root",
    type=click.Path(path_type=Path, exists=True, file_okay=False, dir_okay=True),
    default=None,
    help="Build-phase context directory (defaults to LIB_CUE_CONFIG_PROJECT_ROOT or the CWD)",
)
@click.option(
    "--output",
    type=click.Path(path_type=Path, dir_okay=False),
    required=True,
    help="File that receives the snapshot JSON",
)
def cli_commit(
    files: Sequence[str],
    patterns: Sequence[tuple[str, str]],
    env_prefixes: Sequence[str],
    case_sensitive: bool,
    fallback: bool,
    optional: bool,
    project_root: Optional[Path],
    output: Path,
) -> None:
    """Register sources for the build phase and write them to a snapshot file."""

    context = ConfigContext(project_root=project_root)
    _register(context, Phase.BUILD, files, patterns, env_prefixes, case_sensitive, fallback, optional)
    snapshot = context.commit(output)
    click.echo(json.dumps({"output": str(output), "records": len(snapshot), "checksum": snapshot.checksum}))


def _dump_json(value: Any, *, indent: int | None = None) -> str:
    """Render *value* as strict JSON.

    NaN and infinities have no JSON spelling, so they are refused instead of
    being printed as the bare tokens ``NaN`` or ``Infinity``.
    """

    try:
        return json.dumps(value, indent=indent, ensure_ascii=False, allow_nan=False)
    except ValueError as exc:
        raise click.ClickException(
            "Value contains NaN or Infinity, which JSON cannot represent; use `show --merged --format yaml`"
        ) from exc


def _register(
    context: ConfigContext,
    phase: Phase,
    files: Sequence[str],
    patterns: Sequence[tuple[str, str]],
    env_prefixes: Sequence[str],
    case_sensitive: bool,
    fallback: bool,
    optional: bool,
) -> None:
    """Translate the shared command options into registrations on *phase*."""

    store = context.store(phase)
    for path in files:
        store.register(FileSelector.for_path(path, use_fallback=fallback, required=not optional))
    for root, pattern in patterns:
        store.register(FileSelector.for_pattern(root, pattern, use_fallback=fallback, required=not optional))
    for prefix in env_prefixes:
        store.register_env(EnvPrefix(prefix, case_sensitive))


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_cue_config",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
