from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional


class TensorJSON(BaseModel):
    """Wire shape of a single tensor, used in both directions."""

    model_config = ConfigDict(populate_by_name=True)

    type: Any
    shape: List[Any]
    value: Optional[List[Any]] = None
    b64_value: Optional[str] = Field(default=None, alias="b64Value")
    name: Optional[str] = None


class RunRequest(BaseModel):
    model: str
    input: List[TensorJSON]
