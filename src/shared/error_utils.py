from typing import Optional


class ErrorUtils:
    @staticmethod
    def format_error_response(message: str, error_type: str, stage: Optional[str] = None) -> dict:
        """
        Formats a consistent error response dictionary.

        Args:
            message: The error message to include in the response.
            error_type: The type of error (e.g., "invalid_input", "readiness_timeout").
            stage: The supervisor stage that failed, if any.

        Returns:
            A dictionary with the error details.
        """
        error = {
            "message": message,
            "type": error_type
        }
        if stage is not None:
            error["stage"] = stage
        return {"error": error}
