import asyncio
import time
from typing import Callable, Optional

from src.shared.errors import LaunchFailedError, ReadinessTimeoutError
from src.shared.health_checker import HealthChecker
from src.shared.logger import Logger

logger = Logger.get(__name__)


class ReadinessGate:
    """Blocks until the inference server accepts TCP connections on its port."""

    def __init__(self, host: str = "127.0.0.1"):
        self.host = host

    async def wait_until_up(self, port: int, poll_interval_ms: int, timeout_ms: int,
                            is_alive: Optional[Callable[[], bool]] = None) -> None:
        """
        Poll port until it accepts connections.

        Args:
            port: The port the server binds.
            poll_interval_ms: Delay between connection attempts.
            timeout_ms: Total time to wait.
            is_alive: Optional liveness probe for the launched process; when it
                returns False the wait stops early.

        Raises:
            ReadinessTimeoutError: If the port never accepted a connection.
            LaunchFailedError: If the launched process exited while waiting.
        """
        deadline = time.monotonic() + timeout_ms / 1000
        attempt = 0
        while True:
            attempt += 1
            if await HealthChecker.check_tcp_port(self.host, port):
                logger.info(f"Server is accepting connections on port {port} after {attempt} attempt(s)")
                return
            if is_alive is not None and not is_alive():
                raise LaunchFailedError(f"Server process exited before binding port {port}")
            if time.monotonic() >= deadline:
                raise ReadinessTimeoutError(f"Server did not accept connections on port {port} within {timeout_ms}ms")
            await asyncio.sleep(poll_interval_ms / 1000)
