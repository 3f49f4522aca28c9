"""
Exception taxonomy for the processing pipeline and export.

Each pipeline stage catches its own errors and turns them into a status
transition; only the API layer maps them to HTTP responses.
"""


class ObligationRegistryError(Exception):
    """Base class for all domain errors."""


class RetrievalError(ObligationRegistryError):
    """Blob fetch failed. Terminal for the document (status -> error)."""


class ProviderUploadError(ObligationRegistryError):
    """The provider rejected the file upload. Terminal (status -> error)."""


class ProviderInferenceError(ObligationRegistryError):
    """The analysis call failed. Terminal (status -> analysis_error)."""


class ResponseParseError(ObligationRegistryError):
    """Analysis output was not structured. Degrades to a placeholder obligation."""


class PersistenceError(ObligationRegistryError):
    """A store write failed, possibly after a remote side effect succeeded."""


class ExportValidationError(ObligationRegistryError):
    """Export request rejected locally, the sink was not called."""


class ExportSinkError(ObligationRegistryError):
    """The export webhook answered with an error; message is the sink's text."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
