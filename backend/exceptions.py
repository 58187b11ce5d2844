"""
PaperGraph Exception Hierarchy
Provides structured error handling across the application
"""
from typing import Optional, Dict, Any


class PaperGraphException(Exception):
    """
    Base exception for all PaperGraph errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details
            }
        }


# ============================================================================
# LLM Provider Exceptions
# ============================================================================

class LLMProviderError(PaperGraphException):
    """Base exception for LLM provider errors"""

    def __init__(
        self,
        message: str,
        provider: str,
        code: str = "LLM_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, details)
        self.provider = provider
        self.details["provider"] = provider


class LLMRateLimitError(LLMProviderError):
    """Raised when LLM provider rate limit is exceeded"""

    def __init__(
        self,
        provider: str,
        retry_after: Optional[int] = None,
        message: str = "Rate limit exceeded"
    ):
        super().__init__(
            message=message,
            provider=provider,
            code="LLM_RATE_LIMIT",
            details={"retry_after_seconds": retry_after}
        )
        self.retry_after = retry_after


class LLMResponseParseError(LLMProviderError):
    """Raised when LLM response cannot be parsed"""

    def __init__(
        self,
        provider: str,
        raw_response: Optional[str] = None,
        message: str = "Failed to parse LLM response"
    ):
        super().__init__(
            message=message,
            provider=provider,
            code="LLM_PARSE_ERROR",
            details={"raw_response": raw_response[:500] if raw_response else None}
        )


class LLMUnavailableError(LLMProviderError):
    """Raised when LLM provider is unavailable (circuit breaker open)"""

    def __init__(self, provider: str, message: str = "LLM service unavailable"):
        super().__init__(
            message=message,
            provider=provider,
            code="LLM_UNAVAILABLE"
        )


class LLMConnectionError(LLMProviderError):
    """Raised when the LLM backend cannot be reached; retryable"""

    def __init__(self, provider: str, message: str = "LLM backend not reachable"):
        super().__init__(
            message=message,
            provider=provider,
            code="LLM_CONNECTION_ERROR"
        )


class CompletionError(LLMProviderError):
    """Raised when a structured completion fails after all retry attempts"""

    def __init__(self, provider: str, attempts: int, reason: str):
        super().__init__(
            message=f"Structured completion failed after {attempts} attempt(s): {reason}",
            provider=provider,
            code="COMPLETION_FAILED",
            details={"attempts": attempts, "reason": reason}
        )
        self.attempts = attempts


# ============================================================================
# Graph Store Exceptions
# ============================================================================

class GraphStoreError(PaperGraphException):
    """Base exception for graph storage errors"""

    def __init__(
        self,
        message: str,
        code: str = "GRAPH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, details)


class NodeNotFoundError(GraphStoreError):
    """Raised when node is not found"""

    def __init__(self, node_id: str):
        super().__init__(
            message=f"Node not found: {node_id}",
            code="NODE_NOT_FOUND",
            details={"node_id": node_id}
        )


class InvalidGraphDataError(GraphStoreError):
    """Raised when a write would violate the graph data model"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_GRAPH_DATA",
            details={"field": field}
        )


# ============================================================================
# Pipeline Exceptions
# ============================================================================

class PipelineError(PaperGraphException):
    """Base exception for paper processing failures that abort a paper"""
    pass


class PaperNotFoundError(PipelineError):
    """Raised when paper is not found"""

    def __init__(self, paper_id: str):
        super().__init__(
            message=f"Paper not found: {paper_id}",
            code="PAPER_NOT_FOUND",
            details={"paper_id": paper_id}
        )


class PaperTextMissingError(PipelineError):
    """Raised when a paper has no raw text to process"""

    def __init__(self, paper_id: str):
        super().__init__(
            message=f"Paper has no raw text: {paper_id}",
            code="PAPER_TEXT_MISSING",
            details={"paper_id": paper_id}
        )


# ============================================================================
# Import Exceptions
# ============================================================================

class DataImportError(PaperGraphException):
    """Base exception for import processing errors (renamed from ImportError to avoid shadowing builtin)"""

    def __init__(
        self,
        message: str,
        source_type: str,
        code: str = "IMPORT_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, details)
        self.source_type = source_type
        self.details["source_type"] = source_type


class PDFFetchError(DataImportError):
    """Raised when a PDF cannot be downloaded"""

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: Optional[int] = None
    ):
        super().__init__(
            message=f"Failed to fetch PDF: {reason}",
            source_type="pdf",
            code="PDF_FETCH_ERROR",
            details={"url": url, "reason": reason, "status_code": status_code}
        )
        self.status_code = status_code


class PDFExtractionError(DataImportError):
    """Raised when PDF extraction fails"""

    def __init__(
        self,
        filename: str,
        reason: str,
        message: str = "Failed to extract PDF content"
    ):
        super().__init__(
            message=message,
            source_type="pdf",
            code="PDF_EXTRACTION_ERROR",
            details={"filename": filename, "reason": reason}
        )
