"""Process restart used as the last-resort recovery."""

import logging
import os
import sys
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

ForceRestart = Callable[[], Union[None, Awaitable[Any]]]


def restart_process() -> None:
    """Replace the current process with a fresh interpreter running the same command."""
    logger.critical("Restarting process to recover session state")
    for handler in logging.getLogger().handlers:
        handler.flush()
    os.execv(sys.executable, [sys.executable, *sys.argv])
