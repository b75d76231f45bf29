from fastapi import HTTPException

from src.shared.error_utils import ErrorUtils
from src.use_cases.load_model import LoadModel
from src.use_cases.stop_model import StopModel


class ModelController:
    def __init__(self, load_model_use_case: LoadModel, stop_model_use_case: StopModel):
        self.load_model_use_case = load_model_use_case
        self.stop_model_use_case = stop_model_use_case

    async def init_model(self, request: dict) -> dict:
        self._validate_init_request(request)

        try:
            return await self.load_model_use_case.execute(request.get("file_name"))
        except Exception as e:
            return ErrorUtils.format_error_response(f"Internal server error: {str(e)}", "internal_error")

    def kill_subprocess(self) -> dict:
        try:
            return self.stop_model_use_case.execute()
        except Exception as e:
            return ErrorUtils.format_error_response(f"Failed to stop server: {str(e)}", "internal_error")

    def _validate_init_request(self, request: dict) -> None:
        """Validate the init request shape; an empty file name is left to the supervisor."""
        if not isinstance(request, dict):
            raise HTTPException(status_code=400, detail="Request must be a JSON object")

        file_name = request.get("file_name")
        if file_name is not None and not isinstance(file_name, str):
            raise HTTPException(status_code=400, detail="file_name must be a string")
