from src.shared.protocols import SupervisorProtocol


class StopModel:
    def __init__(self, supervisor: SupervisorProtocol):
        self.supervisor = supervisor

    def execute(self) -> dict:
        self.supervisor.kill_subprocess()
        return {"status": "ok"}
