from typing import Any, Protocol


class LogSinkProtocol(Protocol):
    def write(self, stream: str, line: str) -> None: ...


class SupervisorProtocol(Protocol):
    async def init_model(self, file_name: str | None) -> dict[str, Any]: ...

    def kill_subprocess(self) -> None: ...

    def dispose(self) -> None: ...

    def status(self) -> Any: ...
