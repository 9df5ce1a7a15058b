"""Client for the GROBID reference parsing service."""

import base64
import os
import threading
from typing import Optional

import requests
from requests.exceptions import ConnectionError, RequestException, Timeout

from ..config.settings import get_settings
from ..utils.errors import (
    ConfigurationError,
    FileReadError,
    ParsingServiceError,
    ParsingServiceUnavailableError,
)
from ..utils.logging import get_logger
from ..utils.types import FilePath

logger = get_logger(__name__)

ALIVE_ENDPOINT = "/api/isalive"
REFERENCES_ENDPOINT = "/api/processReferences"
FULLTEXT_ENDPOINT = "/api/processFulltextDocument"


class GrobidClient:
    """Client for interacting with a GROBID service.

    There is no retry policy: a failed probe or request is reported straight
    away and the caller skips that file.

    Unless a session is passed in, each thread gets its own
    ``requests.Session``, so one client can serve a pool of workers.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        probe_timeout: Optional[float] = None,
        consolidate: Optional[bool] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize GROBID client.

        Args:
            base_url: Service root, e.g. ``http://localhost:8070``
            timeout: Timeout in seconds for processing requests
            probe_timeout: Timeout in seconds for the liveness probe
            consolidate: Whether to request citation consolidation
            session: Preconfigured requests session, shared by every thread

        Raises:
            ConfigurationError: If the URL is not an http(s) URL
        """
        settings = get_settings()

        self.base_url = (base_url or settings.grobid.url).rstrip("/")
        if not self.base_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"GROBID URL must start with http:// or https://: {self.base_url}")
        self.timeout = timeout or settings.grobid.timeout
        self.probe_timeout = probe_timeout or settings.grobid.probe_timeout
        self.consolidate = settings.grobid.consolidate if consolidate is None else consolidate
        self._shared_session = session
        self._local = threading.local()

        logger.debug(
            f"Initializing GROBID client for {self.base_url} "
            f"(timeout: {self.timeout}s, probe timeout: {self.probe_timeout}s)"
        )

    @property
    def session(self) -> requests.Session:
        """The requests session for the calling thread."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    def is_alive(self) -> bool:
        """Probe the service health endpoint.

        Returns:
            bool: True if the service answered with a success status
        """
        try:
            response = self.session.get(
                f"{self.base_url}{ALIVE_ENDPOINT}",
                timeout=self.probe_timeout,
            )
        except RequestException as e:
            logger.debug(f"GROBID liveness probe failed: {str(e)}")
            return False
        return response.ok

    def ensure_alive(self) -> None:
        """Raise if the service does not answer the liveness probe.

        Raises:
            ParsingServiceUnavailableError: If the probe fails
        """
        if not self.is_alive():
            raise ParsingServiceUnavailableError(self.base_url, "service not responding")

    def process_references(self, pdf_path: FilePath, full_text: bool = False) -> str:
        """Submit a PDF and return GROBID's TEI XML.

        The PDF is sent base64-encoded in a url-encoded form body.

        Args:
            pdf_path: Path to the PDF file
            full_text: Use the full-text endpoint with raw citations instead of
                the references-only endpoint

        Returns:
            str: TEI XML response body

        Raises:
            FileReadError: If the PDF cannot be read
            ParsingServiceUnavailableError: If the service cannot be reached
            ParsingServiceError: If the request times out or GROBID answers
                with a non-success status
        """
        if not os.path.exists(pdf_path):
            raise FileReadError(pdf_path, "file not found")

        try:
            with open(pdf_path, "rb") as pdf_file:
                encoded = base64.b64encode(pdf_file.read()).decode("ascii")
        except OSError as e:
            raise FileReadError(pdf_path, str(e))

        if full_text:
            endpoint = FULLTEXT_ENDPOINT
            data = {"input": encoded, "includeRawCitations": "1"}
        else:
            endpoint = REFERENCES_ENDPOINT
            data = {"input": encoded}
        data["consolidateCitations"] = "1" if self.consolidate else "0"

        logger.info(f"Sending {os.path.basename(str(pdf_path))} to GROBID (timeout: {self.timeout}s)")

        try:
            response = self.session.post(
                f"{self.base_url}{endpoint}",
                data=data,
                headers={"Accept": "application/xml"},
                timeout=self.timeout,
            )
        except Timeout:
            logger.error(f"GROBID request timed out for {pdf_path} after {self.timeout}s")
            raise ParsingServiceError(pdf_path, f"request timed out after {self.timeout}s")
        except ConnectionError as e:
            logger.error(f"Connection error to GROBID: {str(e)}")
            raise ParsingServiceUnavailableError(self.base_url, str(e))
        except RequestException as e:
            raise ParsingServiceError(pdf_path, str(e))

        if response.status_code != 200:
            body = response.text or ""
            raise ParsingServiceError(
                pdf_path,
                f"HTTP {response.status_code}: {body[:200]}",
                status_code=response.status_code,
                body=body,
            )

        return response.text
