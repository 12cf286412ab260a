# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Logging utilities for the messaging dispatch layer.

The actual logging setup (level, handlers, format) is configured via
``configure_logging()`` in the entry point to avoid duplicate handlers.

Example:
    Typical usage in a module::

        from message_dispatch.logger import get_logger

        logger = get_logger("Dispatcher")
        logger.warning("Email send failed: %s", error)
"""

import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def get_logger(name: str = "MessageDispatch") -> logging.Logger:
    """Retrieve a logger instance.

    Args:
        name: The logger name. Defaults to "MessageDispatch".

    Returns:
        A ``logging.Logger`` instance bound to the given name.
    """
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once, from the process entry point."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )
