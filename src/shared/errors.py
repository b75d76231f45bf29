class SupervisorError(Exception):
    """Base exception for model server supervisor errors."""

    error_type = "supervisor_error"


class InvalidInputError(SupervisorError):
    """Raised when the caller supplies no model reference."""

    error_type = "invalid_input"


class ConfigCorruptError(SupervisorError):
    """Raised when an existing server config file cannot be parsed."""

    error_type = "config_corrupt"


class UnsupportedPlatformError(SupervisorError):
    """Raised when no server binary is mapped for the host OS and architecture."""

    error_type = "unsupported_platform"


class LaunchFailedError(SupervisorError):
    """Raised when the server binary cannot be started."""

    error_type = "launch_failed"


class ReadinessTimeoutError(SupervisorError):
    """Raised when the server does not bind its port in time."""

    error_type = "readiness_timeout"


class PortReclaimFailedError(SupervisorError):
    """Raised when the process holding the server port cannot be killed."""

    error_type = "port_reclaim_failed"
