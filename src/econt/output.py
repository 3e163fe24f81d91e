"""Console output for the econt CLI and diagnostics for the library.

Two streams, never mixed:

* **stdout** -- records only (countries, offices, streets, tracking
  results, the cache report), so ``econt --json offices | jq`` works.
* **stderr** -- diagnostics.  The cache layer reports hits, misses, stale
  entries and corrupt-entry recovery at ``debug`` level; the transport
  reports retries; the CLI reports export progress.

Output renders as a Rich table when stdout is an interactive terminal,
and as tab-separated text when it is piped.  ``NO_COLOR``, ``TERM=dumb``
and ``--no-color`` turn off colour.

Library modules call the module-level helpers (:func:`debug`,
:func:`warning`, ...), which go through the process-wide
:class:`OutputManager`.  The default manager is not verbose, so debug
diagnostics stay hidden unless the CLI runs with ``--verbose`` or an
application installs its own manager with :func:`set_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How records are written to stdout.

    ``AUTO`` becomes ``RICH`` on a colour-capable terminal and ``PLAIN``
    everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class _Level(str, Enum):
    DEBUG = "debug"
    PROGRESS = "progress"
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# Plain-text prefix and Rich markup template for each diagnostic level.
_PREFIX = {
    _Level.DEBUG: "[debug] ",
    _Level.WARNING: "Warning: ",
    _Level.ERROR: "Error: ",
}
_MARKUP = {
    _Level.DEBUG: "[dim]\\[debug] {}[/dim]",
    _Level.PROGRESS: "[dim]{}[/dim]",
    _Level.INFO: "{}",
    _Level.SUCCESS: "[green]{}[/green]",
    _Level.WARNING: "[yellow]Warning:[/yellow] {}",
    _Level.ERROR: "[bold red]Error:[/bold red] {}",
}
# Levels that --quiet hides.  Warnings and errors always show.
_CHATTY = {_Level.PROGRESS, _Level.INFO, _Level.SUCCESS}


class OutputManager:
    """Writes records to stdout and diagnostics to stderr.

    Args:
        format: Record format; ``AUTO`` is resolved once, at construction.
        no_color: Strip colour and markup from every message.
        quiet: Hide progress, info and success messages.
        verbose: Show debug diagnostics (cache decisions, retries).
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        self._format = format

        self._console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._err_console = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # ------------------------------------------------------------------ #
    # Records (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Write a JSON-compatible value (usually a list of record dumps).

        In Rich mode a list of flat records is shown as a table and
        anything else as highlighted JSON.
        """
        if self._format == OutputFormat.JSON:
            self._write(_to_json(data))
            return
        if self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self._write(line)
            return
        if isinstance(data, list) and data and all(isinstance(d, dict) for d in data):
            headers = list(data[0])
            self.print_table(headers, [[_cell(d.get(h)) for h in headers] for d in data])
            return
        self._console.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))

    def print_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows under *headers*.

        JSON mode emits one object per row keyed by header; plain mode
        emits a tab-separated header line followed by the rows.
        """
        if self._format == OutputFormat.JSON:
            self._write(_to_json([dict(zip(headers, row)) for row in rows]))
        elif self._format == OutputFormat.PLAIN:
            for row in (headers, *rows):
                self._write("\t".join(row))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*row)
            self._console.print(table)

    def _write(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def debug(self, message: str) -> None:
        self._diagnostic(_Level.DEBUG, message)

    def progress(self, message: str) -> None:
        self._diagnostic(_Level.PROGRESS, message)

    def info(self, message: str) -> None:
        self._diagnostic(_Level.INFO, message)

    def success(self, message: str) -> None:
        self._diagnostic(_Level.SUCCESS, message)

    def warning(self, message: str) -> None:
        self._diagnostic(_Level.WARNING, message)

    def error(self, message: str) -> None:
        self._diagnostic(_Level.ERROR, message)

    def _diagnostic(self, level: _Level, message: str) -> None:
        if level == _Level.DEBUG and not self._verbose:
            return
        if level in _CHATTY and self._quiet:
            return
        if self._no_color:
            print(f"{_PREFIX.get(level, '')}{message}", file=sys.stderr, flush=True)
        else:
            self._err_console.print(_MARKUP[level].format(message))


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _plain_lines(data: Any) -> list[str]:
    """Tab-separated rendering: one line per record or per mapping key."""
    if isinstance(data, dict):
        return [f"{key}\t{_cell(value)}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(_cell(v) for v in item.values()) if isinstance(item, dict) else _cell(item)
            for item in data
        ]
    return [_cell(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (with any value, even empty) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide manager
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager; tests call this between cases."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def debug(message: str) -> None:
    get_output().debug(message)


def progress(message: str) -> None:
    get_output().progress(message)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)
