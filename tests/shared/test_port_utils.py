import os
import socket
from types import SimpleNamespace

import psutil
import pytest
from unittest.mock import MagicMock, patch

from src.shared.errors import PortReclaimFailedError
from src.shared.port_utils import PortUtils


def _conn(port, pid, status=psutil.CONN_LISTEN):
    return SimpleNamespace(laddr=SimpleNamespace(ip="127.0.0.1", port=port), pid=pid, status=status)


class TestIsPortInUse:
    def test_listening_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]

            assert PortUtils.is_port_in_use(port) is True

    def test_free_port(self, free_port):
        assert PortUtils.is_port_in_use(free_port) is False


class TestFindPidsOnPort:
    @patch('src.shared.port_utils.psutil.net_connections')
    def test_matches_local_port(self, mock_connections):
        mock_connections.return_value = [_conn(3928, 100), _conn(8080, 200), _conn(3928, None)]

        assert PortUtils.find_pids_on_port(3928) == {100}

    @patch('src.shared.port_utils.psutil.net_connections')
    def test_only_tcp_listeners_count(self, mock_connections):
        mock_connections.return_value = [
            _conn(3928, 100, psutil.CONN_ESTABLISHED),
            _conn(3928, 101, psutil.CONN_NONE),
            _conn(3928, 102),
        ]

        assert PortUtils.find_pids_on_port(3928) == {102}
        mock_connections.assert_called_once_with(kind="tcp")

    @patch('src.shared.port_utils.psutil.process_iter')
    @patch('src.shared.port_utils.psutil.net_connections', side_effect=psutil.AccessDenied())
    def test_falls_back_to_process_scan(self, mock_connections, mock_iter):
        holder = MagicMock(pid=300)
        holder.net_connections.return_value = [_conn(3928, 300)]
        other = MagicMock(pid=301)
        other.net_connections.side_effect = psutil.AccessDenied()
        mock_iter.return_value = [holder, other]

        assert PortUtils.find_pids_on_port(3928) == {300}


class TestKillPortProcess:
    @patch('src.shared.port_utils.psutil.Process')
    @patch.object(PortUtils, 'find_pids_on_port', return_value={100, 101})
    def test_kills_every_holder(self, mock_find, mock_process):
        assert PortUtils.kill_port_process(3928) == [100, 101]
        assert mock_process.return_value.kill.call_count == 2

    @patch('src.shared.port_utils.psutil.Process')
    @patch.object(PortUtils, 'find_pids_on_port', return_value=set())
    def test_nothing_to_kill(self, mock_find, mock_process):
        assert PortUtils.kill_port_process(3928) == []
        mock_process.assert_not_called()

    @patch('src.shared.port_utils.psutil.Process')
    @patch.object(PortUtils, 'find_pids_on_port')
    def test_never_kills_itself(self, mock_find, mock_process):
        mock_find.return_value = {os.getpid()}

        assert PortUtils.kill_port_process(3928) == []
        mock_process.assert_not_called()

    @patch('src.shared.port_utils.psutil.Process', side_effect=psutil.NoSuchProcess(100))
    @patch.object(PortUtils, 'find_pids_on_port', return_value={100})
    def test_already_exited_holder_is_ignored(self, mock_find, mock_process):
        assert PortUtils.kill_port_process(3928) == []

    @patch('src.shared.port_utils.psutil.Process')
    @patch.object(PortUtils, 'find_pids_on_port', return_value={100})
    def test_access_denied_raises(self, mock_find, mock_process):
        mock_process.return_value.kill.side_effect = psutil.AccessDenied(100)

        with pytest.raises(PortReclaimFailedError):
            PortUtils.kill_port_process(3928)

    @patch.object(PortUtils, 'find_pids_on_port', side_effect=psutil.Error())
    def test_unreadable_connection_table_raises(self, mock_find):
        with pytest.raises(PortReclaimFailedError):
            PortUtils.kill_port_process(3928)


class TestProcessScan:
    @patch('src.shared.port_utils.psutil.process_iter')
    def test_ignores_non_listening_sockets(self, mock_iter):
        client = MagicMock(pid=400)
        client.net_connections.return_value = [_conn(3928, 400, psutil.CONN_ESTABLISHED)]
        listener = MagicMock(pid=401)
        listener.net_connections.return_value = [_conn(3928, 401)]
        mock_iter.return_value = [client, listener]

        assert PortUtils._scan_processes_for_port(3928) == {401}
        listener.net_connections.assert_called_once_with(kind="tcp")
