"""Pydantic schema for the persisted window record."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)


class WindowRecord(BaseModel):
    """Counter state for one counting key, stored as JSON in the shared store.

    The wire format is ``{"total": 5, "remaining": 4, "reset": 1700000060000}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(
        ...,
        ge=1,
        description="Quota ceiling for the window, copied from options when the record is created.",
    )
    remaining: int = Field(
        ...,
        ge=-1,
        description="Requests left in the window; -1 marks the request that exceeded the quota.",
    )
    reset_at: int = Field(
        ...,
        alias="reset",
        description="Epoch milliseconds at which the current window ends.",
    )

    @model_validator(mode="after")
    def _remaining_within_total(self) -> "WindowRecord":
        if self.remaining > self.total:
            raise ValueError("remaining must not exceed total")
        return self

    @classmethod
    def load(cls, raw: str | bytes | None) -> "WindowRecord | None":
        """Deserialize a stored record.

        Absent and corrupt payloads both return ``None`` so the caller starts
        a fresh window instead of failing the request.
        """
        if raw is None:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "window_record.corrupt",
                extra={"error_count": exc.error_count(), "payload_size": len(raw)},
            )
            return None

    def dump(self) -> str:
        return self.model_dump_json(by_alias=True)
