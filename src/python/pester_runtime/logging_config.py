"""
Logging configuration for the pester runtime.

Uses structlog on top of stdlib logging so every framework component emits
structured events. Framework events carry a ``source`` key (Discovery, Filter,
Skip, Runtime, ...) that the Debug configuration section uses to select which
debug messages are written.
"""

import fnmatch
import logging
import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, cast

import structlog
from structlog.stdlib import LoggerFactory

if TYPE_CHECKING:
    from .configuration.root import PesterConfiguration

# Sources written when WriteDebugMessagesFrom is left at its default.
DEFAULT_DEBUG_SOURCES = ("Discovery", "Skip", "Mock", "CodeCoverage")


class DebugSourceFilter:
    """Drop debug events whose ``source`` matches none of the given wildcards."""

    def __init__(self, sources: Iterable[str] | None = None) -> None:
        self.patterns = [s.lower() for s in (sources or ())]

    def matches(self, source: str | None) -> bool:
        if not self.patterns:
            return False
        if source is None:
            return "*" in self.patterns
        name = source.lower()
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.patterns)

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        if method_name == "debug" and not self.matches(event_dict.get("source")):
            raise structlog.DropEvent
        return event_dict


def configure_logging(
    level: str = "info",
    format_type: str = "pretty",
    debug_sources: Iterable[str] | None = None,
    file_path: str | None = None,
) -> None:
    """Configure structured logging for the runtime.

    Args:
        level: Log level (trace, debug, info, warn, error)
        format_type: Output format (json, pretty, compact)
        debug_sources: Wildcards selecting which sources may log at debug level
        file_path: Optional log file path
    """
    level_mapping = {
        "trace": "DEBUG",
        "debug": "DEBUG",
        "info": "INFO",
        "warn": "WARNING",
        "warning": "WARNING",
        "error": "ERROR",
    }

    log_level = level_mapping.get(level.lower(), "INFO")

    processors = [
        structlog.stdlib.filter_by_level,
        DebugSourceFilter(
            DEFAULT_DEBUG_SOURCES if debug_sources is None else debug_sources
        ),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    elif format_type == "pretty":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    elif format_type == "compact":
        processors.append(
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "logger", "source", "event"],
                drop_missing=True,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=cast(Any, processors),
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    destination: dict[str, Any] = (
        {"filename": file_path} if file_path else {"stream": sys.stderr}
    )
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
        force=True,
        **destination,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def setup_from_config(configuration: "PesterConfiguration") -> None:
    """Setup logging from the Debug and Output configuration sections.

    Debug.WriteDebugMessages enables debug level, restricted to the sources in
    Debug.WriteDebugMessagesFrom. Output.Verbosity 'Diagnostic' turns on debug
    messages from every source.
    """
    debug = configuration.debug
    verbosity = configuration.output.verbosity.value

    if verbosity == "Diagnostic":
        level, sources = "debug", ["*"]
    elif debug.write_debug_messages.value:
        level, sources = "debug", list(debug.write_debug_messages_from.value)
    elif verbosity == "None":
        level, sources = "error", []
    else:
        level, sources = "info", []

    configure_logging(level=level, format_type="pretty", debug_sources=sources)
