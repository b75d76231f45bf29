"""
Shared TCP port helpers: connectability probes and kill-by-port.
"""
import os
import socket

import psutil

from src.shared.errors import PortReclaimFailedError
from src.shared.logger import Logger

logger = Logger.get(__name__)


class PortUtils:
    """Utility class for inspecting and reclaiming local TCP ports."""

    @staticmethod
    def is_port_in_use(port: int, host: str = "127.0.0.1", timeout: float = 1.0) -> bool:
        """
        Check whether something accepts TCP connections on host:port.

        Args:
            port: The port number
            host: The host address
            timeout: Connect timeout in seconds

        Returns:
            True if a connection could be established, False otherwise
        """
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                s.settimeout(timeout)
                return s.connect_ex((host, port)) == 0
        except OSError as e:
            logger.debug(f"Port probe failed for {host}:{port}: {e}")
            return False

    @staticmethod
    def find_pids_on_port(port: int) -> set[int]:
        """Return the pids of processes with a TCP listener on port."""
        try:
            connections = psutil.net_connections(kind="tcp")
        except psutil.AccessDenied:
            # macOS needs root for the system-wide table; walk our own processes instead
            return PortUtils._scan_processes_for_port(port)

        return {
            conn.pid for conn in connections
            if PortUtils._is_listener(conn, port) and conn.pid is not None
        }

    @staticmethod
    def _is_listener(conn, port: int) -> bool:
        return bool(conn.laddr) and conn.laddr.port == port and conn.status == psutil.CONN_LISTEN

    @staticmethod
    def _scan_processes_for_port(port: int) -> set[int]:
        pids = set()
        for proc in psutil.process_iter(["pid"]):
            try:
                for conn in proc.net_connections(kind="tcp"):
                    if PortUtils._is_listener(conn, port):
                        pids.add(proc.pid)
                        break
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return pids

    @staticmethod
    def kill_port_process(port: int) -> list[int]:
        """
        Forcibly kill every process holding the given port.

        Args:
            port: The port to reclaim

        Returns:
            The pids that were killed

        Raises:
            PortReclaimFailedError: If a holder could not be killed or the
                connection table could not be read.
        """
        try:
            pids = PortUtils.find_pids_on_port(port)
        except (psutil.Error, OSError) as e:
            raise PortReclaimFailedError(f"Could not list processes on port {port}: {e}") from e

        pids.discard(os.getpid())
        if not pids:
            logger.info(f"No process found holding port {port}")
            return []

        killed = []
        for pid in sorted(pids):
            try:
                logger.warning(f"Killing process {pid} holding port {port}")
                psutil.Process(pid).kill()
                killed.append(pid)
            except psutil.NoSuchProcess:
                logger.debug(f"Process {pid} already exited")
            except psutil.AccessDenied as e:
                raise PortReclaimFailedError(f"Permission denied killing process {pid} on port {port}") from e
        return killed
