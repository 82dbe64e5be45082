"""Breadth-first URL queue with same-domain and exclude-path filtering."""

import re
from collections import deque
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


class UrlQueue:
    """FIFO queue of normalized URLs restricted to one site."""

    def __init__(self, start_url: str, exclude_patterns: list[str] | None = None):
        self.start_url = start_url
        self.base_host = self._strip_www(urlparse(start_url).netloc.lower())
        self.exclude_patterns = [self._compile_glob(p) for p in (exclude_patterns or []) if p]
        self._queue: deque[str] = deque()
        self._seen: set[str] = set()

        start = self.normalize(start_url)
        if start:
            self._seen.add(start)
            self._queue.append(start)

    @staticmethod
    def _strip_www(host: str) -> str:
        return host[4:] if host.startswith("www.") else host

    @staticmethod
    def _compile_glob(pattern: str) -> re.Pattern:
        """Compile a path glob (``/blog/*``) into an anchored regex."""
        escaped = re.escape(pattern).replace(r"\*", ".*")
        return re.compile(f"^{escaped}$")

    @staticmethod
    def normalize(url: str) -> str | None:
        """Normalize URL for deduplication.

        - Strips fragments (#section)
        - Sorts query parameters
        - Removes trailing slashes (except for root)

        Returns None for URLs that cannot be crawled.
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            return None

        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None

        path = parsed.path or "/"
        if len(path) > 1:
            path = path.rstrip("/") or "/"

        query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
        return urlunparse((parsed.scheme, parsed.netloc.lower(), path, "", query, ""))

    def is_same_domain(self, url: str) -> bool:
        """Check the URL's host matches the start host, ignoring ``www.``."""
        host = urlparse(url).netloc.lower()
        return self._strip_www(host) == self.base_host

    def should_exclude(self, url: str) -> bool:
        """Check the URL's path against the exclude globs."""
        path = urlparse(url).path or "/"
        return any(pattern.match(path) for pattern in self.exclude_patterns)

    def add(self, url: str) -> bool:
        """Enqueue a URL if it is new, same-domain and not excluded."""
        normalized = self.normalize(url)
        if not normalized or normalized in self._seen:
            return False
        if not self.is_same_domain(normalized) or self.should_exclude(normalized):
            return False
        self._seen.add(normalized)
        self._queue.append(normalized)
        return True

    def next(self) -> str | None:
        return self._queue.popleft() if self._queue else None

    def has_more(self) -> bool:
        return bool(self._queue)

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def seen_count(self) -> int:
        return len(self._seen)
