"""Exception types shared across the analyzer."""


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""


class ValidationError(AnalyzerError):
    """Missing or malformed request input."""


class NotFoundError(AnalyzerError):
    """Requested record does not exist."""


class ConfigurationError(AnalyzerError):
    """A feature was requested that is not configured (e.g. email)."""


class AnalysisError(AnalyzerError):
    """An unrecoverable step of the analysis pipeline failed."""


class FetchError(AnalysisError):
    """The target URL could not be fetched."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(AnalysisError):
    """Too little text could be extracted from the page."""


class StoreConflictError(AnalysisError):
    """Another record with the same URL was written first."""


class EmailDeliveryError(AnalyzerError):
    """The email provider rejected or failed a delivery."""
