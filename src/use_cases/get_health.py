from typing import Any

from src.entities.server_process import ProcessState
from src.shared.protocols import SupervisorProtocol


class GetHealth:
    def __init__(self, supervisor: SupervisorProtocol):
        self.supervisor = supervisor

    def execute(self) -> dict[str, Any]:
        status = self.supervisor.status()
        response = status.model_dump(mode="json")
        # The port can be bound by a server started out-of-band, so both must hold
        response["healthy"] = status.state == ProcessState.READY and status.port_in_use
        return response
