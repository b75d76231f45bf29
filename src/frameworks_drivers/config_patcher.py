import json
from pathlib import Path
from typing import Any

from src.shared.errors import ConfigCorruptError
from src.shared.logger import Logger

logger = Logger.get(__name__)


class ConfigPatcher:
    """
    Read-merge-write of the inference server's JSON config file.
    Only custom_config.llama_model_path is touched; every other field is kept.
    """

    SECTION = "custom_config"
    MODEL_PATH_KEY = "llama_model_path"

    @staticmethod
    def _read(config_path: Path) -> dict[str, Any]:
        if not config_path.exists():
            logger.info(f"Server config {config_path} not found, starting from an empty document")
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigCorruptError(f"Server config {config_path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigCorruptError(f"Server config {config_path} must contain a JSON object, got {type(data).__name__}")
        return data

    @classmethod
    def apply(cls, config_path: Path, model_path: Path) -> dict[str, Any]:
        """
        Point the server config at a model file.

        Args:
            config_path: Location of the server's config.json.
            model_path: Absolute path of the model file to load.

        Returns:
            The patched config document as written to disk.

        Raises:
            ConfigCorruptError: If the existing file cannot be parsed.
        """
        config_path = Path(config_path)
        config = cls._read(config_path)

        section = config.setdefault(cls.SECTION, {})
        if not isinstance(section, dict):
            raise ConfigCorruptError(f"'{cls.SECTION}' in {config_path} must be a JSON object")
        section[cls.MODEL_PATH_KEY] = str(model_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=4)

        logger.info(f"Set {cls.SECTION}.{cls.MODEL_PATH_KEY} to {model_path} in {config_path}")
        return config
