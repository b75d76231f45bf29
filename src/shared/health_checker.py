import asyncio
import subprocess
from typing import Optional

from src.shared.logger import Logger
from src.shared.port_utils import PortUtils

logger = Logger.get(__name__)


class HealthChecker:
    """
    Utility class for performing liveness checks on the server port and process.
    """

    @staticmethod
    async def check_tcp_port(host: str, port: int, timeout: float = 1.0) -> bool:
        """
        Check if a TCP listener accepts connections on host:port.

        Args:
            host: The host address
            port: The port number
            timeout: Connect timeout in seconds

        Returns:
            True if the port accepts connections, False otherwise
        """
        try:
            accepting = await asyncio.to_thread(PortUtils.is_port_in_use, port, host, timeout)
        except Exception as e:
            logger.debug(f"Port check failed for {host}:{port}: {e}")
            return False
        if accepting:
            logger.debug(f"Port {host}:{port} is accepting connections")
        return accepting

    @staticmethod
    def check_process_running(process: Optional[subprocess.Popen]) -> bool:
        """
        Check if a subprocess is still running.

        Args:
            process: The subprocess to check

        Returns:
            True if the process is running, False otherwise
        """
        if process is None:
            return False

        return_code = process.poll()
        if return_code is not None:
            logger.warning(f"Process has terminated with return code {return_code}")
            return False

        return True
