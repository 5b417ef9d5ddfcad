"""
Exception hierarchy for the symptom-check pipeline.

Upstream failures are recovered inside the services and turned into
fallback values; only programming errors escape to the HTTP layer.
"""


class SymptomCheckerError(Exception):
    """Base class for all anticipated pipeline failures."""


class UpstreamServiceError(SymptomCheckerError):
    """An external collaborator failed or is unreachable."""


class LLMServiceError(UpstreamServiceError):
    """The completion service is unavailable or not configured."""


class CatalogUnavailableError(UpstreamServiceError):
    """The condition catalog or its relevance index cannot be queried."""


class QueryLogError(SymptomCheckerError):
    """An audit record could not be written or read."""
