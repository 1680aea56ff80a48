"""
core/shutdown.py -- Stop-file watcher for graceful shutdown.

Operators (and deploy scripts) stop the server by creating a sentinel file
instead of sending a signal. wait_for_stop_file() polls for it once per
second and returns when it appears; main.py then flips uvicorn's
should_exit flag so in-flight requests drain normally.

Layer rule: core/ may not import from api/, auth/, or inventory/.
"""

import asyncio
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger("devicesapi.server")

POLL_INTERVAL_SECONDS = 1.0


def clear_stale_stop_file(path: Union[str, Path]) -> bool:
    """Remove a stop file left over from a previous run. Returns True if one was removed.

    Without this a leftover sentinel would stop the server one poll after
    it starts.
    """
    stop_file = Path(path)
    if not stop_file.exists():
        return False
    stop_file.unlink()
    logger.warning("Removed stale stop file %s", stop_file)
    return True


async def wait_for_stop_file(path: Union[str, Path], interval: float = POLL_INTERVAL_SECONDS) -> Path:
    """Return once path exists, checking every interval seconds.

    Cancellation (server stopped some other way) propagates out of
    asyncio.sleep and ends the watcher cleanly.
    """
    stop_file = Path(path)
    while not stop_file.exists():
        await asyncio.sleep(interval)
    logger.info("Stop file %s detected", stop_file)
    return stop_file
