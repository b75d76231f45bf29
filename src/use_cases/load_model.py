from src.shared.protocols import SupervisorProtocol


class LoadModel:
    def __init__(self, supervisor: SupervisorProtocol):
        self.supervisor = supervisor

    async def execute(self, file_name: str) -> dict:
        return await self.supervisor.init_model(file_name)
