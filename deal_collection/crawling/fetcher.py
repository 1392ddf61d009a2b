import requests
from typing import Dict, List, Optional
from urllib.parse import urlparse
import threading
import logging
import time

from ..config import PipelineConfig

logger = logging.getLogger(__name__)

class PoliteFetcher:
    """
    Shared HTTP client for every network stage.

    One session, bounded timeouts, no automatic retries, and at most one
    request in flight per host. Every failure (timeout, DNS, non-2xx) is
    logged and reported as an empty result so one venue never fails a batch.
    """

    def __init__(self, config: PipelineConfig = None, session=None):
        self.config = config or PipelineConfig()
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.config.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        })

        self._host_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._failures_guard = threading.Lock()
        self.failed_urls: List[str] = []

    def _host_lock(self, url: str) -> threading.Lock:
        host = urlparse(url).netloc.lower()
        with self._locks_guard:
            if host not in self._host_locks:
                self._host_locks[host] = threading.Lock()
            return self._host_locks[host]

    def _record_failure(self, url: str, reason: str):
        logger.warning(f"Fetch failed for {url}: {reason}")
        with self._failures_guard:
            self.failed_urls.append(url)

    def get(self, url: str, timeout: Optional[float] = None):
        """GET a URL; returns the response on 2xx, otherwise None"""
        timeout = timeout or self.config.page_timeout
        with self._host_lock(url):
            try:
                logger.debug(f"Fetching: {url}")
                response = self.session.get(url, timeout=timeout, allow_redirects=True)
            except requests.RequestException as e:
                self._record_failure(url, str(e))
                return None
            finally:
                if self.config.delay_between_requests:
                    time.sleep(self.config.delay_between_requests)

        if not 200 <= response.status_code < 300:
            self._record_failure(url, f"status {response.status_code}")
            return None
        return response

    def fetch_text(self, url: str, timeout: Optional[float] = None) -> str:
        """Body of a successful response as text, or '' on any failure"""
        response = self.get(url, timeout=timeout)
        if response is None:
            return ""
        return response.text or ""

    def fetch_html(self, url: str, timeout: Optional[float] = None) -> str:
        """Like fetch_text, but only for text/html responses"""
        response = self.get(url, timeout=timeout)
        if response is None:
            return ""

        content_type = response.headers.get('content-type', '').lower()
        if 'text/html' not in content_type:
            logger.info(f"Skipping non-HTML content: {url} (content-type: {content_type})")
            return ""

        if not response.text:
            logger.info(f"Empty response from {url}")
            return ""
        return response.text

    def close(self):
        """Close the session"""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
