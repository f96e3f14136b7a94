"""
Main — entry point for the ``moodring`` command.

Configures logging once, then hands control to the click command group.
All behavior lives in the engine modules; this file only wires them up.
"""

from __future__ import annotations

import logging

import structlog

# Free-text fields that can carry model-generated prose.
_LONG_TEXT_KEYS = ("reason", "source", "trigger")
_MAX_DISPLAY_LEN = 80


def _truncate_long_fields(logger, method_name, event_dict):
    """Structlog processor that keeps free-text fields to a single readable line."""
    for key in _LONG_TEXT_KEYS:
        val = event_dict.get(key)
        if isinstance(val, str) and len(val) > _MAX_DISPLAY_LEN:
            event_dict[key] = val[:_MAX_DISPLAY_LEN] + "... [truncated]"
    return event_dict


_logging_configured = False


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog and standard-library logging.

    Safe to call more than once; subsequent calls are no-ops.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        return
    _logging_configured = True

    logging.basicConfig(format="%(message)s", level=logging.INFO if verbose else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            _truncate_long_fields,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def main() -> None:
    """Entry point for the moodring command."""
    from moodring.cli.app import cli

    cli()


if __name__ == "__main__":
    main()
