"""
Error taxonomy.

Upstream data-path errors (ConfigurationError, UpstreamRequestError, report
errors) are recovered by the routers with demo data. Oracle errors are surfaced
to the caller with a distinct code each, because the seller's next step differs
(wait, retry, or report a bug).
"""

from typing import Optional


class PPCCopilotError(Exception):
    """Base class for all application errors."""


class ConfigurationError(PPCCopilotError):
    """Required credentials are missing. Raised before any network call."""


class UpstreamRequestError(PPCCopilotError):
    """Non-2xx response from the Amazon Ads or LwA APIs."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        detail = f"{message} ({status_code})" if status_code is not None else message
        if body:
            detail = f"{detail}: {body[:500]}"
        super().__init__(detail)


class ReportTimeoutError(PPCCopilotError):
    """Report polling exhausted without a terminal status."""

    def __init__(self, report_id: str, attempts: int, waited_seconds: float):
        self.report_id = report_id
        self.attempts = attempts
        super().__init__(
            f"Report {report_id} timed out after {attempts} polls ({waited_seconds:.0f}s)"
        )


class ReportFailureError(PPCCopilotError):
    """The Ads API reported the report job as failed. Not retried."""

    def __init__(self, report_id: str, reason: Optional[str] = None):
        self.report_id = report_id
        self.reason = reason
        super().__init__(f"Report generation failed: {reason or 'unknown reason'}")


class OracleError(PPCCopilotError):
    """Generic failure of the LLM call."""


class OracleRateLimitError(OracleError):
    """Rate limited on every model in the fallback list."""

    def __init__(self, models_tried: Optional[list[str]] = None):
        self.models_tried = models_tried or []
        super().__init__("AI rate limit reached. Please wait a minute and try again.")


class OracleParseError(OracleError):
    """The LLM response was not valid JSON, or not the expected shape."""

    def __init__(self, message: str, raw: str = "", reason: str = "unparseable"):
        self.raw = raw
        self.reason = reason
        super().__init__(message)
