from __future__ import annotations


class CiteviewError(RuntimeError):
    """Base class for recoverable failures raised by citeview collaborators."""


class DocumentFetchError(CiteviewError):
    """Raised when document bytes cannot be retrieved."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PdfLoadError(CiteviewError):
    """Raised when a document cannot be opened as a PDF."""

    def __init__(self, message: str, *, server_message: str | None = None) -> None:
        super().__init__(message)
        self.server_message = server_message


class DocxFetchError(DocumentFetchError):
    """Raised when DOCX bytes cannot be retrieved."""


class DocxConversionError(CiteviewError):
    """Raised when DOCX bytes cannot be converted into markup."""


class DiagramValidationError(CiteviewError):
    """Raised when the diagram service cannot validate a diagram source."""


class DiagramRenderError(CiteviewError):
    """Raised when a valid diagram source cannot be rendered."""
