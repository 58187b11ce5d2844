"""
PDF Fetcher

Downloads a PDF over HTTP and extracts its text with PyMuPDF. Network errors,
429 and 5xx responses are retried with exponential backoff; other 4xx
responses and unreadable PDFs fail immediately.
"""

import logging
from typing import Awaitable, Callable, Optional, Tuple

import fitz  # PyMuPDF
import httpx

from config import settings
from exceptions import PDFExtractionError, PDFFetchError
from retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


def _is_retryable(error: BaseException) -> bool:
    if not isinstance(error, PDFFetchError):
        return False
    status = error.status_code
    return status is None or status == 429 or status >= 500


def extract_text_from_pdf_bytes(content: bytes, source: str = "document.pdf") -> Tuple[str, int]:
    """Extract text page by page; returns (text, page_count)."""
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except Exception as e:
        raise PDFExtractionError(filename=source, reason=f"{type(e).__name__}: {e}") from e

    try:
        text_parts = []
        for page in doc:
            text = page.get_text()
            if text.strip():
                text_parts.append(text)
        return "\n\n".join(text_parts), doc.page_count
    finally:
        doc.close()


class PDFFetcher:
    """The PDF/text capability: ``fetch_and_extract_text(url) -> (text, page_count)``."""

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.pdf_fetch_max_attempts,
            base_delay=settings.pdf_fetch_base_delay,
            multiplier=2.0,
        )
        self.timeout = settings.pdf_fetch_timeout if timeout is None else timeout
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def download(self, url: str) -> bytes:
        """Download with retries. Raises PDFFetchError."""

        async def attempt() -> bytes:
            try:
                response = await self.client.get(url)
            except httpx.RequestError as e:
                raise PDFFetchError(url=url, reason=f"{type(e).__name__}: {e}") from e
            if response.status_code >= 400:
                raise PDFFetchError(
                    url=url,
                    reason=f"HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            return response.content

        return await self.retry_policy.run(
            attempt,
            retry_on=(PDFFetchError,),
            is_retryable=_is_retryable,
            operation_name=f"PDF download {url}",
            sleep=self._sleep,
        )

    async def fetch_and_extract_text(self, url: str) -> Tuple[str, int]:
        """
        Download a PDF and extract its text.

        Raises:
            PDFFetchError: download failed after retries
            PDFExtractionError: the content is not a readable PDF
        """
        content = await self.download(url)
        text, page_count = extract_text_from_pdf_bytes(content, source=url)
        logger.info(f"Extracted {len(text)} chars from {page_count} pages: {url}")
        return text, page_count
