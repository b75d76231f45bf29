import asyncio
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from src.interface_adapters.health_controller import HealthController
from src.interface_adapters.model_controller import ModelController
from src.shared.protocols import SupervisorProtocol


class API:
    def __init__(self, supervisor: SupervisorProtocol):
        self.supervisor = supervisor
        self.app = FastAPI(title="Nitro Supervisor", version="0.1.0", lifespan=self._lifespan)

        # Dependency functions for per-request instances
        self.get_model_controller = lambda: self._create_model_controller()
        self.get_health_controller = lambda: self._create_health_controller()

        self._register_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        yield
        await asyncio.to_thread(self.supervisor.dispose)

    def _register_routes(self):
        async def init_model_handler(request: dict, controller=Depends(self.get_model_controller)) -> dict:
            return await controller.init_model(request)

        def kill_handler(controller=Depends(self.get_model_controller)) -> dict:
            return controller.kill_subprocess()

        def health_handler(controller=Depends(self.get_health_controller)):
            return controller.health()

        self.app.post("/model/init")(init_model_handler)
        self.app.post("/model/kill")(kill_handler)
        self.app.get("/health")(health_handler)

    def _create_model_controller(self):
        from src.use_cases.load_model import LoadModel
        from src.use_cases.stop_model import StopModel

        return ModelController(LoadModel(self.supervisor), StopModel(self.supervisor))

    def _create_health_controller(self):
        from src.use_cases.get_health import GetHealth

        return HealthController(GetHealth(self.supervisor))
