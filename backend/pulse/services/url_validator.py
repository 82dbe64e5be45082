"""Site URL normalization and reachability checks for site creation."""

import html
import re
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

DOMAIN_PATTERN = re.compile(r"^([a-zA-Z0-9]([a-zA-Z0-9\-]*[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$")


@dataclass
class ValidationResult:
    """Result of URL validation."""
    is_valid: bool
    error_message: str | None = None
    url: str | None = None  # Normalized site root
    domain: str | None = None
    title: str | None = None


def normalize_site_url(raw: str) -> tuple[str, str]:
    """Turn user input like ``www.Example.com/`` into (``https://www.example.com``, ``example.com``).

    Raises:
        ValueError: if the input is not an http(s) URL on a valid domain.
    """
    value = (raw or "").strip()
    if not value:
        raise ValueError("URL is required")
    if "://" not in value:
        value = f"https://{value}"

    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("URL must use http:// or https://")
    if not parsed.netloc:
        raise ValueError("URL must include a domain name")

    host = (parsed.hostname or "").lower()
    if not DOMAIN_PATTERN.match(host) and host != "localhost":
        raise ValueError("Invalid domain name")

    domain = host[4:] if host.startswith("www.") else host
    return f"{parsed.scheme}://{parsed.netloc.lower()}", domain


class URLValidator:
    """Validates a site before it is added and crawled."""

    def __init__(self, timeout: float = 10.0, user_agent: str = "PulseSEO-Crawler/1.0"):
        self.timeout = timeout
        self.user_agent = user_agent

    async def validate(self, raw_url: str) -> ValidationResult:
        """Normalize the URL, then confirm the site answers with HTML."""
        try:
            url, domain = normalize_site_url(raw_url)
        except ValueError as e:
            return ValidationResult(is_valid=False, error_message=str(e))

        result = await self._check_site(url)
        result.domain = domain
        if result.is_valid and not result.url:
            result.url = url
        return result

    async def _check_site(self, url: str) -> ValidationResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return ValidationResult(is_valid=False, error_message="Site took too long to respond (timeout)")
        except httpx.ConnectError:
            return ValidationResult(
                is_valid=False,
                error_message="Could not connect to site. Check the URL and try again.",
            )
        except httpx.TooManyRedirects:
            return ValidationResult(
                is_valid=False,
                error_message="Too many redirects. The URL may be misconfigured.",
            )
        except httpx.HTTPError as e:
            return ValidationResult(is_valid=False, error_message=f"Could not access site: {e}")

        if response.status_code >= 400:
            return ValidationResult(is_valid=False, error_message=f"Site returned error: HTTP {response.status_code}")
        if "text/html" not in response.headers.get("content-type", "").lower():
            return ValidationResult(is_valid=False, error_message="URL does not point to an HTML page")

        final = urlparse(str(response.url))
        return ValidationResult(
            is_valid=True,
            url=f"{final.scheme}://{final.netloc.lower()}",
            title=self._extract_title(response.text),
        )

    def _extract_title(self, html_content: str) -> str | None:
        match = re.search(r"<title[^>]*>([^<]+)</title>", html_content, re.IGNORECASE)
        if match:
            return html.unescape(match.group(1).strip()[:200])
        return None
