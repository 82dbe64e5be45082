"""Batch classification of a site's pages."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from pulse.config import Settings
from pulse.models import Page, Site
from pulse.services.llm_client import LLMClient
from pulse.services.page_classifier import PageTypeClassifier
from pulse.services.prompt_store import PromptStore
from pulse.services.usage import UsageLogger

logger = logging.getLogger(__name__)


@dataclass
class ClassificationSummary:
    """Outcome of a classification run."""
    processed: int = 0
    errors: int = 0
    type_counts: dict[str, int] = field(default_factory=dict)


class ClassificationRunner:
    """Runs pass 1 over the whole site, then pass 2 page by page in batches."""

    def __init__(
        self,
        session: Session,
        classifier: PageTypeClassifier,
        batch_size: int = 10,
        on_progress: Callable[[int, int, str], None] | None = None,
    ):
        self.session = session
        self.classifier = classifier
        self.batch_size = batch_size
        self.on_progress = on_progress

    def batch_query(self, site_id: str, reclassify: bool, offset: int):
        query = self.session.query(Page).filter(Page.site_id == site_id)
        if reclassify:
            # Rows keep their page_type, so page through by offset
            return query.order_by(Page.path).offset(offset).limit(self.batch_size)
        # Classified rows drop out of this filter, so always take the head
        return query.filter(Page.page_type.is_(None)).order_by(Page.path).limit(self.batch_size)

    def _next_batch(self, site_id: str, reclassify: bool, offset: int) -> list[Page]:
        return self.batch_query(site_id, reclassify, offset).all()

    def run(self, site_id: str, reclassify: bool = False) -> ClassificationSummary:
        site = self.session.query(Site).filter(Site.id == site_id).first()
        if not site:
            raise ValueError(f"Site not found: {site_id}")

        logger.info(
            f"Classifying {site.domain} "
            f"({'all pages' if reclassify else 'unclassified pages only'})"
        )

        all_pages = self.session.query(Page).filter(Page.site_id == site_id).order_by(Page.path).all()
        # Pass 1 sees every page; progress counts only the pages pass 2 will visit
        total = len(all_pages) if reclassify else sum(1 for p in all_pages if p.page_type is None)
        site_context = self.classifier.analyze_site_structure(
            [p.to_context() for p in all_pages], domain=site.domain
        )
        site.site_analysis = site_context
        self.session.commit()

        summary = ClassificationSummary()
        offset = 0
        seen: set[str] = set()

        while True:
            batch = self._next_batch(site_id, reclassify, offset)
            if not batch:
                break
            if all(page.id in seen for page in batch):
                logger.warning("Classification batch made no progress, stopping")
                break

            for page in batch:
                seen.add(page.id)
                try:
                    page_type, method = self.classifier.classify_page(page.to_context(), site_context)
                    page.page_type = page_type.value
                    page.classification_method = method
                    summary.type_counts[page_type.value] = summary.type_counts.get(page_type.value, 0) + 1
                    logger.info(f"{page_type.value:<18} {page.path}")
                except Exception as e:
                    summary.errors += 1
                    logger.error(f"Error classifying {page.path}: {e}")
                summary.processed += 1
                if self.on_progress:
                    self.on_progress(summary.processed, total, page.url)

            self.session.commit()
            offset += len(batch)
            logger.info(f"Batch complete. Processed {summary.processed} total.")

        logger.info(f"Classification complete: {summary.processed} pages, {summary.type_counts}")
        return summary

    def status(self, site_id: str) -> dict:
        """Counts per page type plus unclassified pages."""
        rows = (
            self.session.query(Page.page_type, func.count(Page.id))
            .filter(Page.site_id == site_id)
            .group_by(Page.page_type)
            .all()
        )
        by_type = {page_type: count for page_type, count in rows if page_type is not None}
        unclassified = sum(count for page_type, count in rows if page_type is None)
        return {
            "total": sum(count for _, count in rows),
            "unclassified": unclassified,
            "by_type": dict(sorted(by_type.items(), key=lambda item: item[1], reverse=True)),
        }


def build_classification_runner(
    session: Session,
    settings: Settings,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> ClassificationRunner:
    """Wire a runner whose LLM usage is logged through ``session``."""
    llm = LLMClient(settings, on_usage=UsageLogger(session))
    classifier = PageTypeClassifier(llm, PromptStore(session), model=settings.classifier_model)
    return ClassificationRunner(session, classifier, settings.classifier_batch_size, on_progress)
