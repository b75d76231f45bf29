import asyncio
import time

from src.shared.health_checker import HealthChecker
from src.shared.logger import Logger
from src.shared.port_utils import PortUtils

logger = Logger.get(__name__)


class PortReconciler:
    """Makes sure the well-known server port is free before a launch."""

    def __init__(self, host: str = "127.0.0.1"):
        self.host = host

    async def wait_until_free(self, port: int, poll_interval_ms: int, timeout_ms: int) -> bool:
        """Poll until nothing accepts connections on port. Returns False on timeout."""
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            if not await HealthChecker.check_tcp_port(self.host, port):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(poll_interval_ms / 1000)

    async def ensure_free(self, port: int, poll_interval_ms: int, grace_timeout_ms: int) -> None:
        """
        Wait for port to be released, killing its holder once the grace period ends.

        The port is not re-checked after the kill; a launch onto a port that is
        still bound fails on its own.

        Raises:
            PortReclaimFailedError: If the holding process could not be killed.
        """
        if await self.wait_until_free(port, poll_interval_ms, grace_timeout_ms):
            logger.debug(f"Port {port} is free")
            return

        logger.warning(f"Port {port} still in use after {grace_timeout_ms}ms, killing its holder")
        killed = await asyncio.to_thread(PortUtils.kill_port_process, port)
        if killed:
            logger.info(f"Reclaimed port {port} from pid(s) {', '.join(map(str, killed))}")
