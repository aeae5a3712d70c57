"""
Response envelope returned by every data-access call.

Every call site receives an Envelope regardless of which backend answered
or whether the call succeeded. The envelope is validated on construction:
a successful envelope never carries an error, a failed envelope always
carries one and never carries data, and a timestamp is always present.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ErrorPayload(BaseModel):
    """
    Error information attached to a failed envelope.

    Attributes:
        message: Human-readable message suitable for display
        details: Optional additional context
        kind: Error classification (an ErrorCode value)
        retryable: Whether the failure was transient in nature
        status: HTTP status code, where one was received
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str
    details: Optional[Any] = None
    kind: Optional[str] = None
    retryable: Optional[bool] = None
    status: Optional[int] = None


class PaginationMeta(BaseModel):
    """Pagination information for list responses."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    total: Optional[int] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    total_pages: Optional[int] = Field(default=None, alias="totalPages")
    has_next: Optional[bool] = Field(default=None, alias="hasNext")
    has_prev: Optional[bool] = Field(default=None, alias="hasPrev")


class Envelope(BaseModel):
    """
    Uniform response shape for all backends.

    Instances are frozen; the cache hands out deep copies so each caller
    owns the envelope it receives.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    data: Optional[Any] = None
    error: Optional[ErrorPayload] = None
    meta: Optional[PaginationMeta] = None
    timestamp: str = Field(default_factory=utc_timestamp)

    @model_validator(mode="after")
    def check_success_gating(self) -> "Envelope":
        """Enforce that data and error are gated by success."""
        if self.success and self.error is not None:
            raise ValueError("a successful envelope cannot carry an error")
        if not self.success:
            if self.error is None:
                raise ValueError("a failed envelope must carry an error")
            if self.data is not None:
                raise ValueError("a failed envelope cannot carry data")
        return self

    @classmethod
    def ok(cls, data: Any = None, meta: Optional[PaginationMeta] = None) -> "Envelope":
        """Build a successful envelope."""
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(
        cls,
        message: str,
        *,
        details: Any = None,
        kind: Optional[str] = None,
        retryable: Optional[bool] = None,
        status: Optional[int] = None,
    ) -> "Envelope":
        """Build a failed envelope."""
        return cls(
            success=False,
            error=ErrorPayload(
                message=message,
                details=details,
                kind=kind,
                retryable=retryable,
                status=status,
            ),
        )

    @classmethod
    def from_wire(cls, payload: Any) -> "Envelope":
        """
        Normalize a primary-backend response body into an Envelope.

        The primary backend already speaks the envelope shape, but bodies
        are normalized defensively: a missing timestamp is filled in, an
        error on a successful body is dropped, and a failed body without
        an error gets a generic one.

        Args:
            payload: The decoded JSON body

        Returns:
            The normalized Envelope

        Raises:
            ValueError: If the body is not an envelope-shaped object
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("success"), bool):
            raise ValueError("response body is not an envelope")

        body = dict(payload)
        if not body.get("timestamp"):
            body["timestamp"] = utc_timestamp()

        if body["success"]:
            body.pop("error", None)
        else:
            body.pop("data", None)
            error = body.get("error")
            if isinstance(error, str) and error:
                body["error"] = {"message": error}
            elif not isinstance(error, dict) or not error.get("message"):
                body["error"] = {"message": "Request failed"}

        try:
            return cls.model_validate(body)
        except ValidationError as e:
            raise ValueError(f"response body is not an envelope: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape, omitting empty fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
