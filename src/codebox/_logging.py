"""Centralized logging for codebox.

The ``codebox`` logger only carries a NullHandler; handlers belong to the
application. ``CODEBOX_LOG_LEVEL`` sets the library level at import time and
configure_logging() wires up stderr output for the CLI.

Call sites pass structured context through ``extra`` rather than formatting
it into the message:

    logger.warning("Container kill failed", extra={"container_id": cid, "error": str(e)})

The CLI renders that context after the message, sorted by key:

    WARNING [2026-02-25 10:02:54] codebox.resource_cleanup - Container kill failed container_id=3f2a error='boom'

Records pass through a bounded queue drained by a listener thread, so an
execution coroutine never waits on stderr. Overflow is dropped.
"""

import contextlib
import logging
import logging.handlers
import os
import queue

import click

LIBRARY_LOGGER_NAME: str = "codebox"
LOG_LEVEL_ENV_VAR: str = "CODEBOX_LOG_LEVEL"

logging.getLogger(LIBRARY_LOGGER_NAME).addHandler(logging.NullHandler())


def _level_from_env() -> int | None:
    name = os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    value = logging.getLevelNamesMapping().get(name)
    return value or None  # NOTSET counts as unset


if (_env_level := _level_from_env()) is not None:
    logging.getLogger(LIBRARY_LOGGER_NAME).setLevel(_env_level)

_FMT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

_QUEUE_CAPACITY = 1024

# Attributes every LogRecord has; anything else on a record came from `extra`
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}


def record_context(record: logging.LogRecord) -> dict[str, object]:
    """The ``extra`` fields attached to a record, without the standard attributes."""
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and not k.startswith("_")}


class ContextFormatter(logging.Formatter):
    """Standard line format followed by ``key=value`` pairs from ``extra``."""

    def __init__(self) -> None:
        super().__init__(fmt=_FMT, datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={_render(value)}" for key, value in sorted(context.items()))
        # Keep any traceback below the context
        head, sep, tail = line.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


def _render(value: object) -> str:
    if isinstance(value, str):
        return value if value and " " not in value and "=" not in value else repr(value)
    return str(value)


class _ClickHandler(logging.Handler):
    """Writes to stderr through click.echo, dimmed (plain when stderr is not a TTY).

    Runs on the listener thread.
    """

    def __init__(self) -> None:
        super().__init__()
        self.formatter = ContextFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(click.style(self.format(record), dim=True), err=True)
        except BlockingIOError:
            pass  # stderr saturated
        except Exception:  # noqa: BLE001
            self.handleError(record)


class _NonBlockingHandler(logging.handlers.QueueHandler):
    """QueueHandler whose enqueue never blocks; a full queue drops the record."""

    def __init__(self) -> None:
        q: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=_QUEUE_CAPACITY)
        super().__init__(q)
        self._listener = logging.handlers.QueueListener(q, _ClickHandler(), respect_handler_level=False)
        self._listener.start()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # In-process queue: keep the record intact so the formatter still sees `extra`
        return record

    def enqueue(self, record: logging.LogRecord) -> None:
        with contextlib.suppress(queue.Full):
            self.queue.put_nowait(record)

    def close(self) -> None:
        self._listener.stop()
        super().close()


def get_logger(name: str) -> logging.Logger:
    """Logger for a codebox module; pass ``__name__``."""
    return logging.getLogger(name)


def configure_logging(
    *,
    level: int | str | None = None,
    quiet: bool = False,
) -> None:
    """Send codebox logs to stderr. Safe to call more than once.

    Args:
        level: Log level (e.g. logging.DEBUG, "WARNING"). Overrides CODEBOX_LOG_LEVEL.
        quiet: Only errors. Takes precedence over level.
    """
    lib_logger = logging.getLogger(LIBRARY_LOGGER_NAME)

    if not any(isinstance(h, _NonBlockingHandler) for h in lib_logger.handlers):
        lib_logger.addHandler(_NonBlockingHandler())

    if quiet:
        lib_logger.setLevel(logging.ERROR)
    elif level is not None:
        lib_logger.setLevel(level)
