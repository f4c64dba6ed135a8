"""Bulk import and bulk approval result models."""

from pydantic import BaseModel, Field, model_validator


class RowError(BaseModel):
    """Failure of one batch row."""

    row_index: int = Field(..., ge=1, description="1-based position of the row in the input")
    key: str | None = Field(default=None, description="Natural key of the row, if parsed")
    message: str = Field(..., description="Human-actionable message referencing the key")
    category: str = Field(..., description="Error category of the underlying cause")


class BatchResult(BaseModel):
    """Per-row outcome of a bulk import.

    When ``total_rows`` is set, every row is accounted for exactly once:
    ``success_count + failure_count == total_rows``.
    """

    total_rows: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    errors: list[RowError] = Field(default_factory=list)
    created_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_counts(self) -> "BatchResult":
        if self.total_rows and self.success_count + self.failure_count != self.total_rows:
            raise ValueError(
                f"success_count ({self.success_count}) + failure_count "
                f"({self.failure_count}) must equal total_rows ({self.total_rows})"
            )
        if self.failure_count != len(self.errors):
            raise ValueError("failure_count must match the number of errors")
        return self

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0


class BulkApprovalResult(BaseModel):
    """Outcome of approving many stickers at once.

    Stickers that are not pending approval, not visible to the actor, or
    whose approval fails are listed in ``skipped`` with the reason.
    """

    approved_count: int = Field(default=0, ge=0)
    approved_ids: list[str] = Field(default_factory=list)
    skipped: dict[str, str] = Field(default_factory=dict, description="Sticker id -> reason")
