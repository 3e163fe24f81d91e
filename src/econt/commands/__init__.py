"""Built-in CLI sub-commands for econt.

* :mod:`~econt.commands.cache` -- ``econt cache export|status|clear``.
* :mod:`~econt.commands.lookup` -- nomenclature lookups (``countries``,
  ``cities``, ``offices``, ``streets``) and ``track``.

Commands build their :class:`~econt.client.EcontClient` through
:func:`open_client`, which honours the ``--config`` path stored on the
Typer context by the root callback.
"""

from __future__ import annotations

from typing import Any

import typer

from econt.client import EcontClient


def open_client(ctx: typer.Context, **overrides: Any) -> EcontClient:
    """Create a client from the config file, environment and *overrides*."""
    config_path = ctx.obj.get("config_path") if ctx.obj else None
    return EcontClient.from_config(config_path, **overrides)
