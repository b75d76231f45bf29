import os
from pathlib import Path

import uvicorn

from src.frameworks_drivers.config import Config
from src.frameworks_drivers.model_server_supervisor import ModelServerSupervisor
from src.interface_adapters.api import API
from src.shared.logger import Logger

if __name__ == "__main__":
    logger = Logger.get(__name__)

    try:
        config_path = os.environ.get("NITRO_SUPERVISOR_CONFIG", "config.json")
        if Path(config_path).exists():
            config = Config.load(config_path)
        else:
            logger.info(f"No configuration file at {config_path}, using defaults")
            config = Config()
        config.apply_env_overrides()

        supervisor = ModelServerSupervisor(config.supervisor)
        api = API(supervisor)

        logger.info(f"Starting Nitro supervisor; inference server port {config.supervisor.port}")
        uvicorn.run(api.app, host=config.server.host, port=config.server.port)
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
