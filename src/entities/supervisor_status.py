from typing import Optional

from pydantic import BaseModel, Field

from .server_process import ProcessState


class SupervisorStatus(BaseModel):
    state: ProcessState
    pid: Optional[int] = None
    port: int = Field(ge=1, le=65535)
    model_path: Optional[str] = None
    last_exit_code: Optional[int] = None
    port_in_use: bool = False
