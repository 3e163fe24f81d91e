"""Typer application and console-script entry point for ``econt``.

Command layout::

    econt [GLOBAL OPTIONS] countries | cities | offices | streets | track
    econt [GLOBAL OPTIONS] cache export | status | clear

The root callback turns the global options into the process-wide
:class:`~econt.output.OutputManager` and remembers ``--config`` for the
sub-commands, which build their client through
:func:`econt.commands.open_client`.

:func:`main` is what ``pyproject.toml`` installs as ``econt``.  An
:class:`~econt.exceptions.EcontError` ends the process with that error's
``exit_code`` (an aborted export exits 8, an unknown cache key 2, an
unreachable API 6); anything else is written to a crash log under the data
directory and exits 1.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from econt import __version__
from econt.exceptions import EcontError
from econt.exit_codes import EXIT_GENERIC_FAILURE
from econt.output import OutputFormat, OutputManager, error, set_output

_EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="econt",
    help="Econt delivery API client with a local nomenclature cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"econt {__version__}")
        raise typer.Exit()


def _output_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Print the econt version and exit.",
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file to use instead of the XDG config.json."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print records as JSON."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print records as tab-separated text."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable colour in tables and messages."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Hide progress and informational messages."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show cache decisions and request retries."
    ),
) -> None:
    """Econt delivery API client with a local nomenclature cache."""
    set_output(
        OutputManager(
            format=_output_format(json_output, plain_output),
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    ctx.ensure_object(dict).update(config_path=config_path, verbose=verbose)


# ------------------------------------------------------------------ #
# Sub-commands
# ------------------------------------------------------------------ #

from econt.commands.cache import cache_app  # noqa: E402
from econt.commands.lookup import (  # noqa: E402
    cities_command,
    countries_command,
    offices_command,
    streets_command,
    track_command,
)

app.add_typer(cache_app, name="cache", help="Export, inspect and clear the nomenclature cache.")
for _name, _command in (
    ("countries", countries_command),
    ("cities", cities_command),
    ("offices", offices_command),
    ("streets", streets_command),
    ("track", track_command),
):
    app.command(_name)(_command)


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _interrupted() -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(_EXIT_INTERRUPTED)


def _setup_signal_handlers() -> None:
    """Exit with 130 on Ctrl-C.

    ``econt cache export`` swaps in its own handler while it runs so that
    an interrupt cancels the export at the next step instead.
    """

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        _interrupted()

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Save the traceback of *exc* with the command line; return the log path."""
    from econt.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    header = f"econt {__version__}\nargv: {' '.join(sys.argv)}\n\n"
    log_path.write_text(header + "".join(traceback.format_exception(exc)), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """Run the CLI and translate failures into exit codes.

    Raises:
        SystemExit: On every path; Typer raises it on success too.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        _interrupted()
    except EcontError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
