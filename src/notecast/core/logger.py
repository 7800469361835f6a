"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module. Every record carries a
snake_case event name as its message plus keyword context, rendered either
as ``key=value`` pairs (default) or as one JSON object per line.

Values containing spaces, equals signs, or quotes are escaped and quoted;
long values are truncated. Secret keys must never be passed as context.

Examples:
    ```python
    from notecast.core.logger import Logger

    logger = Logger("publisher")
    logger.info("publish_ok", relay="wss://relay.example.com", event_id="ab12cd34")
    # info publisher publish_ok relay=wss://relay.example.com event_id=ab12cd34

    relay_logger = logger.bind(relay="wss://relay.example.com")
    relay_logger.warning("relay_notice", message="rate limited")
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ``' key1=value1 key2="value with spaces"'``,
        or an empty string if *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = _truncate(str(v), max_value_length)
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + f"...<truncated {len(value) - max_length} chars>"
    return value


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value ...``.

    Reads context from the ``structured_kv`` extra attached by
    [Logger][notecast.core.logger.Logger]. Plain ``logging.getLogger()``
    records are emitted with the same prefix and no context.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as context fields.

    All public methods mirror the standard logging API with an added
    ``**kwargs`` parameter. [bind()][notecast.core.logger.Logger.bind]
    returns a child logger that prepends fixed context to every record.
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, mapped to ``logging.getLogger(f"notecast.{name}")``.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum characters per value before truncation.
                Defaults to 1000.
            context: Fixed key-value pairs included in every record.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        qualified = name if name.startswith("notecast") else f"notecast.{name}"
        self._logger = logging.getLogger(qualified)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger sharing this one's sink with extra fixed context."""
        child = Logger.__new__(Logger)
        child._logger = self._logger
        child._json_output = self._json_output
        child._max_value_length = self._max_value_length
        child._context = {**self._context, **context}
        return child

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _format_json(self, msg: str, level: str, fields: dict[str, Any]) -> str:
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **fields,
        }
        return json.dumps(record, default=str)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            truncated = {
                k: _truncate(str(v), self._max_value_length) if isinstance(v, str) else v
                for k, v in fields.items()
            }
            name = logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, name, truncated), exc_info=exc_info)
            return
        extra = {
            "structured_kv": {
                k: _truncate(str(v), self._max_value_length) for k, v in fields.items()
            }
        }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def setup_logging(level: str = "INFO") -> None:
    """Install a ``StructuredFormatter`` handler on the root logger.

    Unifies output from [Logger][notecast.core.logger.Logger] and plain
    ``logging.getLogger()`` calls as ``level name message key=value ...``.
    Idempotent: a second call only adjusts the level.
    """
    root = logging.getLogger()
    if not any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper()))
