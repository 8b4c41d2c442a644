"""Request and response payloads. Created per request, never stored."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utc_timestamp() -> str:
    """ISO8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UrlRequest(BaseModel):
    # optional so a missing url becomes our 400, not a 422
    url: Optional[str] = None


class Evidence(BaseModel):
    screenshot: str


class ErrorInfo(BaseModel):
    name: str
    stack: Optional[str] = None


class TestResult(BaseModel):
    __test__ = False

    success: bool
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)
    title: Optional[str] = None
    evidence: Optional[Evidence] = None
    error: Optional[ErrorInfo] = None


class CheckResult(BaseModel):
    success: bool
    message: str
    url: Optional[str] = None
    status_code: Optional[int] = None


class HealthStatus(BaseModel):
    status: str = "healthy"
    uptime: float
    timestamp: str = Field(default_factory=utc_timestamp)
