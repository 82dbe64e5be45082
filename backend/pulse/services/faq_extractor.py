"""FAQ extraction from page HTML and FAQPage schema building."""

import re
from typing import Any

from bs4 import BeautifulSoup, Tag

MAX_FAQS = 10
MAX_ANSWER_CHARS = 500
MIN_ANSWER_CHARS = 50
MIN_QUESTION_CHARS = 10

QUESTION_START = re.compile(r"^(how|what|why|when|where|who|can|is|are|do|does|will|should)\b", re.IGNORECASE)


def clean_text(text: str | None) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def truncate_at_sentence(text: str, max_len: int) -> str:
    """Cut at the last sentence end before ``max_len`` if it is past halfway."""
    if len(text) <= max_len:
        return text
    truncated = text[:max_len]
    boundary = max(truncated.rfind("."), truncated.rfind("?"), truncated.rfind("!"))
    if boundary > max_len * 0.5:
        return text[:boundary + 1]
    return truncated + "..."


def looks_like_question(text: str) -> bool:
    return "?" in text or bool(QUESTION_START.match(text))


def _next_dd(dt: Tag) -> Tag | None:
    sibling = dt.find_next_sibling()
    return sibling if sibling is not None and sibling.name == "dd" else None


def _elementor_toggles(soup: BeautifulSoup) -> list[dict[str, str]]:
    faqs = []
    for item in soup.select(".elementor-toggle-item"):
        title = item.select_one(".elementor-toggle-title")
        body = item.select(".elementor-toggle-content, .elementor-tab-content")
        question = clean_text(title.get_text(" ") if title else "")
        answer = clean_text(" ".join(b.get_text(" ") for b in body))
        if question and len(answer) > MIN_ANSWER_CHARS:
            faqs.append({"question": question, "answer": answer[:MAX_ANSWER_CHARS]})
    return faqs


def _accordions(soup: BeautifulSoup) -> list[dict[str, str]]:
    faqs = []
    for item in soup.select(".accordion-item, .faq-item, [class*='accordion']"):
        header = item.select_one(".accordion-header, .accordion-title, h3, h4")
        body = item.select(".accordion-body, .accordion-content, .panel-body")
        question = clean_text(header.get_text(" ") if header else "")
        answer = clean_text(" ".join(b.get_text(" ") for b in body))
        if question and len(answer) > MIN_ANSWER_CHARS:
            faqs.append({"question": question, "answer": answer[:MAX_ANSWER_CHARS]})
    return faqs


def _faq_definition_lists(soup: BeautifulSoup) -> list[dict[str, str]]:
    faqs = []
    for dl in soup.select("dl.flc-faq, dl.faq-list, dl[class*='faq']"):
        for dt in dl.find_all("dt"):
            dd = _next_dd(dt)
            question = clean_text(dt.get_text(" "))
            answer = clean_text(dd.get_text(" ") if dd else "")
            if len(question) > MIN_QUESTION_CHARS and len(answer) > MIN_ANSWER_CHARS:
                faqs.append({"question": question, "answer": truncate_at_sentence(answer, MAX_ANSWER_CHARS)})
    return faqs


def _generic_definition_lists(soup: BeautifulSoup) -> list[dict[str, str]]:
    faqs = []
    for dl in soup.find_all("dl"):
        terms = dl.find_all("dt")
        if len(terms) < 3:
            continue
        for dt in terms:
            dd = _next_dd(dt)
            question = clean_text(dt.get_text(" "))
            answer = clean_text(dd.get_text(" ") if dd else "")
            if looks_like_question(question) and len(answer) > MIN_ANSWER_CHARS:
                faqs.append({"question": question, "answer": answer[:MAX_ANSWER_CHARS]})
    return faqs


STRATEGIES = [_elementor_toggles, _accordions, _faq_definition_lists, _generic_definition_lists]


def extract_faqs(html: str | None, max_faqs: int = MAX_FAQS) -> list[dict[str, str]]:
    """Extract question/answer pairs from common FAQ markup.

    Strategies are tried in order and the first one that finds anything wins.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")
    for strategy in STRATEGIES:
        found = strategy(soup)
        if found:
            # Nested accordion containers can match the same item twice
            unique: dict[str, dict[str, str]] = {}
            for faq in found:
                unique.setdefault(faq["question"].lower(), faq)
            return list(unique.values())[:max_faqs]
    return []


def build_faq_schema(faqs: list[dict[str, str]], page_url: str, about_id: str | None = None) -> dict[str, Any] | None:
    if not faqs:
        return None
    schema: dict[str, Any] = {
        "@type": "FAQPage",
        "@id": f"{page_url}#faq",
        "mainEntity": [
            {
                "@type": "Question",
                "name": faq["question"],
                "acceptedAnswer": {"@type": "Answer", "text": faq["answer"]},
            }
            for faq in faqs
        ],
    }
    if about_id:
        schema["about"] = {"@id": about_id}
    return schema
