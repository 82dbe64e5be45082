"""Celery task definitions.

These tasks are thin wrappers that call into the service layer.
The actual business logic lives in the services module.
"""

import logging

from celery.exceptions import SoftTimeLimitExceeded
from celery.signals import task_prerun
from sqlalchemy import distinct

from pulse.config import get_settings
from pulse.database import SyncSessionLocal
from pulse.models import Page, Site
from pulse.page_types import CrawlStatus, SchemaStatus
from pulse.workers.celery_app import celery_app

settings = get_settings()
logger = logging.getLogger(__name__)


@task_prerun.connect
def reset_prompt_cache(**kwargs):
    """Pick up prompt edits made in the admin API since the last task."""
    from pulse.services.prompt_store import PromptStore

    PromptStore.clear_cache()


@celery_app.task(bind=True, max_retries=3, soft_time_limit=1800, time_limit=1860)
def crawl_site(self, site_id: str, run_classifier: bool = True) -> dict:
    """Crawl a site, store its pages, then classify them.

    Status moves in_progress -> classifying -> complete, or error.
    """
    from pulse.services.classification_runner import build_classification_runner
    from pulse.services.progress import StageProgress, get_progress_service
    from pulse.services.site_pipeline import crawl_and_store

    progress_service = get_progress_service()
    session = SyncSessionLocal()

    try:
        site = session.query(Site).filter(Site.id == site_id).first()
        if not site:
            return {"error": "Site not found"}

        site.start_crawl()
        site.celery_task_id = self.request.id
        session.commit()

        result = crawl_and_store(
            session, site, settings, on_progress=StageProgress(progress_service, site_id, "CRAWL")
        )

        summary = None
        if run_classifier:
            site.crawl_status = CrawlStatus.CLASSIFYING
            site.current_url = None
            session.commit()

            runner = build_classification_runner(
                session, settings, on_progress=StageProgress(progress_service, site_id, "CLASSIFY")
            )
            summary = runner.run(site_id)

        site.complete_crawl()
        session.commit()
        progress_service.clear(site_id)

        return {
            "status": "completed",
            "pages_crawled": result.pages_crawled,
            "pages_skipped": result.pages_skipped,
            "failed_urls": result.failed_urls,
            "pages_classified": summary.processed if summary else 0,
        }

    except SoftTimeLimitExceeded:
        session.rollback()
        logger.error(f"Crawl timed out for site {site_id}")
        site = session.query(Site).filter(Site.id == site_id).first()
        if site:
            site.fail_crawl("Crawl timed out after 30 minutes - site may be protected or too large")
            session.commit()
        return {"error": "Crawl timed out", "status": "error"}

    except Exception as e:
        session.rollback()
        logger.error(f"Crawl failed for site {site_id}: {e}")
        site = session.query(Site).filter(Site.id == site_id).first()
        if site:
            site.fail_crawl(str(e))
            session.commit()
        raise self.retry(exc=e, countdown=60)

    finally:
        session.close()


@celery_app.task(bind=True, max_retries=2, soft_time_limit=1800, time_limit=1860)
def classify_site(self, site_id: str, reclassify: bool = False) -> dict:
    """Classify a site's unclassified pages (or all of them with ``reclassify``)."""
    from pulse.services.classification_runner import build_classification_runner
    from pulse.services.progress import StageProgress, get_progress_service

    progress_service = get_progress_service()
    session = SyncSessionLocal()

    try:
        site = session.query(Site).filter(Site.id == site_id).first()
        if not site:
            return {"error": "Site not found"}

        previous_status = site.crawl_status
        site.crawl_status = CrawlStatus.CLASSIFYING
        session.commit()

        runner = build_classification_runner(
            session, settings, on_progress=StageProgress(progress_service, site_id, "CLASSIFY")
        )
        summary = runner.run(site_id, reclassify=reclassify)

        site.crawl_status = CrawlStatus.COMPLETE if previous_status != CrawlStatus.ERROR else previous_status
        session.commit()
        progress_service.clear(site_id)

        return {"processed": summary.processed, "errors": summary.errors, "type_counts": summary.type_counts}

    except Exception as e:
        session.rollback()
        logger.error(f"Classification failed for site {site_id}: {e}")
        site = session.query(Site).filter(Site.id == site_id).first()
        if site:
            site.fail_crawl(f"Classification failed: {e}")
            session.commit()
        raise self.retry(exc=e, countdown=60)

    finally:
        session.close()


@celery_app.task(bind=True, max_retries=2, soft_time_limit=1800, time_limit=1860)
def generate_site_schemas(
    self,
    site_id: str,
    include_medium: bool = False,
    retry: bool = False,
    path: str | None = None,
    exceptions_only: bool = False,
) -> dict:
    """Generate template schemas for a site's pending (or needs_review) pages."""
    from pulse.services.progress import StageProgress, get_progress_service
    from pulse.services.schema_generator import SchemaBatchRunner, build_schema_generator

    progress_service = get_progress_service()
    session = SyncSessionLocal()

    try:
        generator = build_schema_generator(session, settings, include_medium=include_medium)
        runner = SchemaBatchRunner(
            session,
            generator,
            batch_size=settings.schema_batch_size,
            on_progress=StageProgress(progress_service, site_id, "SCHEMAS"),
        )
        summary = runner.run(site_id, retry=retry, path=path, exceptions_only=exceptions_only)
        progress_service.clear(site_id)
        return {"processed": summary.processed, "counts": summary.counts}

    except ValueError as e:
        session.rollback()
        logger.error(f"Schema generation for site {site_id} aborted: {e}")
        return {"error": str(e)}

    except Exception as e:
        session.rollback()
        logger.error(f"Schema generation failed for site {site_id}: {e}")
        raise self.retry(exc=e, countdown=120)

    finally:
        session.close()


@celery_app.task
def dispatch_pending_schema_batches():
    """Periodic task: queue schema generation for sites with work left.

    Pending pages get a normal run. Pages whose last attempt raised are
    retried; pages that failed validation wait for review. Only sites whose
    crawl is complete are considered, so pages are not generated before
    they are classified.
    """
    from pulse.services.schema_generator import EXCEPTION_ERROR_TYPE

    session = SyncSessionLocal()
    try:
        def sites_with(*conditions) -> list[str]:
            rows = (
                session.query(distinct(Page.site_id))
                .join(Site, Site.id == Page.site_id)
                .filter(Site.crawl_status == CrawlStatus.COMPLETE, Page.page_type.isnot(None), *conditions)
                .all()
            )
            return [str(site_id) for (site_id,) in rows]

        pending = sites_with(Page.schema_status == SchemaStatus.PENDING)
        retryable = sites_with(
            Page.schema_status == SchemaStatus.NEEDS_REVIEW,
            Page.schema_errors.contains([{"type": EXCEPTION_ERROR_TYPE}]),
        )

        for site_id in pending:
            generate_site_schemas.delay(site_id)
        for site_id in retryable:
            generate_site_schemas.delay(site_id, retry=True, exceptions_only=True)

        if pending or retryable:
            logger.info(f"Dispatched schema generation for {len(pending)} sites, retries for {len(retryable)}")
        return {"sites_dispatched": len(pending), "sites_retried": len(retryable)}

    except Exception as e:
        session.rollback()
        logger.error(f"dispatch_pending_schema_batches failed: {e}")
        return {"error": str(e)}

    finally:
        session.close()
