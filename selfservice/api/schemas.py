from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field

FlowStatus = Literal["IN_PROGRESS", "COMPLETED", "FAILED"]

class FlowRequest(BaseModel):
    # Absent on the first request of a flow
    token: Optional[str] = None
    # Tag of the stage the input is meant for; input for another stage is ignored
    stage: Optional[str] = None
    input: Optional[Dict[str, Any]] = None

class FlowError(BaseModel):
    code: int
    message: str

class FlowResponseModel(BaseModel):
    status: FlowStatus
    flow: str
    stage: Optional[str] = None
    stageIndex: int = 0
    requirements: Optional[Dict[str, Any]] = None
    token: Optional[str] = None
    error: Optional[FlowError] = None
    additions: Dict[str, Any] = Field(default_factory=dict)

class FlowSummary(BaseModel):
    name: str
    stages: List[str] = Field(default_factory=list)

class ErrorResponse(BaseModel):
    status: Literal["error"] = "error"
    code: int
    message: str
