"""HTML parsing and cleaning for crawled pages."""

import html
import re
from typing import Any
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Comment

# Attributes that survive cleaning; everything else is layout noise
KEEP_ATTRIBUTES = {
    "href", "src", "alt", "title",
    "datetime", "role", "aria-label", "aria-labelledby",
    "type", "rel", "name", "content", "property",
}

REMOVE_TAGS = ["script", "style", "noscript", "iframe", "svg", "path", "link", "meta"]

NON_CONTENT_SELECTORS = (
    "nav, header, footer, aside, noscript, iframe, form, "
    "[role='navigation'], [role='banner'], [role='contentinfo'], "
    ".nav, .navigation, .header, .footer, .sidebar"
)

MAIN_CONTENT_SELECTORS = ["main", "article", "[role='main']", ".content", "#content", ".main-content", "#main"]

BLOCK_TAGS = [
    "p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "ul", "ol",
    "section", "article", "figure", "figcaption", "blockquote",
]

MAX_STRUCTURED_BLOCKS = 100
MAX_PARAGRAPH_CHARS = 500


def _strip_data_images(soup: BeautifulSoup) -> None:
    for img in soup.find_all("img"):
        if (img.get("src") or "").startswith("data:"):
            img.decompose()


def _find_main(soup: BeautifulSoup):
    for selector in MAIN_CONTENT_SELECTORS:
        found = soup.select_one(selector)
        if found:
            return found
    return soup.find("body") or soup


def clean_html(raw_html: str | None) -> str:
    """Reduce a page to its main content markup for LLM consumption.

    Removes scripts, styles, navigation chrome and base64 images, keeps only
    structural attributes, and puts block-level elements on their own lines.
    """
    if not raw_html:
        return ""

    soup = BeautifulSoup(raw_html, "lxml")
    for tag in soup.find_all(REMOVE_TAGS):
        tag.decompose()
    for element in soup.select(NON_CONTENT_SELECTORS):
        element.decompose()
    _strip_data_images(soup)

    main = _find_main(soup)
    content = BeautifulSoup(main.decode_contents(), "lxml")

    for comment in content.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for element in content.find_all(True):
        element.attrs = {k: v for k, v in element.attrs.items() if k in KEEP_ATTRIBUTES}

    body = content.find("body")
    cleaned = body.decode_contents() if body else str(content)
    if not cleaned:
        return ""

    for tag in BLOCK_TAGS:
        cleaned = re.sub(f"</{tag}>", f"</{tag}>\n", cleaned, flags=re.IGNORECASE)

    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n\s*\n", "\n", cleaned)
    cleaned = re.sub(r">\s+<", ">\n<", cleaned)
    cleaned = "\n".join(line.strip() for line in cleaned.splitlines())
    return cleaned.strip()


def _is_same_host(host: str, base_host: str) -> bool:
    strip = lambda h: h[4:] if h.startswith("www.") else h  # noqa: E731
    return strip(host) == strip(base_host)


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Collect og:*, article:*, twitter:* and description meta values."""
    meta_tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        key = meta.get("property") or meta.get("name")
        value = meta.get("content")
        if not key or value is None:
            continue
        key = key.lower()
        if key.startswith(("og:", "article:", "twitter:")) or key in ("description", "author", "robots"):
            meta_tags.setdefault(key, html.unescape(value.strip()))
    return meta_tags


def _extract_links(soup: BeautifulSoup, base_url: str) -> tuple[list[str], list[str]]:
    base_host = urlparse(base_url).netloc.lower()
    internal: list[str] = []
    external: list[str] = []

    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("mailto:", "tel:", "javascript:")):
            continue
        # Broken embeds sometimes leak markup into href values
        if "<" in href or "%3C" in href:
            continue

        resolved = urljoin(base_url, href)
        parsed = urlparse(resolved)
        if parsed.scheme not in ("http", "https"):
            continue
        resolved = parsed._replace(fragment="").geturl()

        if _is_same_host(parsed.netloc.lower(), base_host):
            internal.append(resolved)
        else:
            external.append(resolved)

    return list(dict.fromkeys(internal)), list(dict.fromkeys(external))


def parse_page(raw_html: str, url: str) -> dict[str, Any]:
    """Extract metadata, headings, links and content from a page.

    Links are collected before non-content elements are removed so that
    navigation links still feed the crawl queue.
    """
    soup = BeautifulSoup(raw_html, "lxml")

    title_tag = soup.find("title")
    title = html.unescape(title_tag.get_text(strip=True))[:512] if title_tag else None

    meta_desc = soup.find("meta", attrs={"name": "description"})
    meta_description = html.unescape(meta_desc.get("content", "")).strip() if meta_desc else None

    canonical = soup.find("link", rel="canonical")
    canonical_url = canonical.get("href") if canonical else None

    meta_tags = _extract_meta_tags(soup)
    internal_links, external_links = _extract_links(soup, url)

    for element in soup.select(
        "script, style, nav, header, footer, aside, noscript, iframe, form, "
        "[role='navigation'], [role='banner'], [role='contentinfo']"
    ):
        element.decompose()

    headings: dict[str, list[str]] = {"h1": [], "h2": [], "h3": []}
    for level in headings:
        for heading in soup.find_all(level):
            text = heading.get_text(" ", strip=True)
            if text and len(text) > 2:
                headings[level].append(text)

    main = _find_main(soup)
    structured_content: list[dict[str, str]] = []
    for element in main.find_all(["h1", "h2", "h3", "h4", "p", "li"]):
        text = element.get_text(" ", strip=True)
        if not text or len(text) < 3:
            continue
        if element.name in ("h1", "h2", "h3", "h4"):
            structured_content.append({"type": "heading", "level": element.name, "text": text})
        else:
            if len(text) > MAX_PARAGRAPH_CHARS:
                text = text[:MAX_PARAGRAPH_CHARS] + "..."
            structured_content.append({"type": "paragraph", "text": text})
        if len(structured_content) >= MAX_STRUCTURED_BLOCKS:
            break

    main_content = re.sub(r"\s+", " ", main.get_text(" ")).strip()

    return {
        "title": title or None,
        "meta_description": meta_description or None,
        "canonical_url": canonical_url,
        "meta_tags": meta_tags,
        "headings": headings,
        "structured_content": structured_content,
        "internal_links": internal_links,
        "external_links": external_links,
        "main_content": main_content,
    }
