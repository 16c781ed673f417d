"""Built-in CLI sub-commands (``request``, ``upload``, ``cache``).

Commands run their work inside :func:`handle_errors`, which reports an
:class:`~apiflight.exceptions.ApiflightError` on stderr and exits with the
error's ``exit_code``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from apiflight.exceptions import ApiflightError
from apiflight.output import error


@contextmanager
def handle_errors() -> Iterator[None]:
    try:
        yield
    except ApiflightError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from exc
