"""Remote procedure response envelope."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InvocationResponse(BaseModel):
    """Success/failure envelope returned by a remote procedure.

    Remote procedures report failures either as ``message`` or as ``error``;
    both are folded into ``message``.
    """

    success: bool = Field(..., description="Whether the remote procedure applied the action")
    message: str | None = Field(default=None)
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def fold_error_into_message(cls, values: Any) -> Any:
        if isinstance(values, dict) and not values.get("message") and values.get("error"):
            values = {**values, "message": str(values["error"])}
        if isinstance(values, dict) and values.get("data") is None:
            values = {**values, "data": {}}
        return values
