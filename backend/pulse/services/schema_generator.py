"""Tier-gated JSON-LD generation for classified pages."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from pulse.config import Settings
from pulse.models import Page, PageSchema, Site
from pulse.page_types import PageType, SchemaStatus, SchemaTier
from pulse.prompts import FULL_SCHEMA_PROMPT_NAME
from pulse.services import schema_builders as builders
from pulse.services.faq_extractor import build_faq_schema, extract_faqs
from pulse.services.field_extractor import FieldExtractor
from pulse.services.llm_client import LLMClient, LLMError, parse_json
from pulse.services.preflight import preflight_check
from pulse.services.prompt_store import PromptStore
from pulse.services.schema_tiers import TierInfo, load_tiers, tier_for
from pulse.services.schema_validator import entity_type, validate_llm_schema, validate_schema
from pulse.services.site_profile import SiteContext, load_site_context
from pulse.services.usage import UsageLogger

logger = logging.getLogger(__name__)

SCHEMA_CONTEXT = "https://schema.org"
LLM_CONTENT_CHARS = 6000
# schema_errors entry type for pages the scheduled poll retries
EXCEPTION_ERROR_TYPE = "exception"


@dataclass
class GenerationResult:
    """Outcome of generating schema for one page."""
    page_type: str
    status: str
    graph: dict[str, Any] | None = None
    errors: list[dict[str, Any]] = field(default_factory=list)
    reason: str | None = None
    method: str = "template"

    @property
    def skipped(self) -> bool:
        return self.status == SchemaStatus.SKIPPED

    @classmethod
    def skip(cls, page_type: str, reason: str) -> "GenerationResult":
        return cls(
            page_type=page_type,
            status=SchemaStatus.SKIPPED,
            errors=[{"type": "skipped", "message": reason}],
            reason=reason,
        )


def wrap_graph(entities: list[dict[str, Any]]) -> dict[str, Any]:
    return {"@context": SCHEMA_CONTEXT, "@graph": entities}


class SchemaGenerator:
    """Template-driven generator.

    Steps per page: tier gate, pre-flight data check, template build (with
    LLM field extraction for procedures and team members), FAQ entity,
    validation.
    """

    def __init__(
        self,
        tiers: dict[str, TierInfo],
        extractor: FieldExtractor | None = None,
        include_medium: bool = False,
        inline_threshold: int = builders.INLINE_LOCATION_THRESHOLD,
    ):
        self.tiers = tiers
        self.extractor = extractor
        self.include_medium = include_medium
        self.inline_threshold = inline_threshold

    def generate(self, page: dict[str, Any], site: SiteContext) -> GenerationResult:
        page_type = page.get("page_type")
        if not page_type:
            return GenerationResult.skip("UNCLASSIFIED", "Not classified - run classification first")

        tier = tier_for(self.tiers, page_type)
        if tier.tier == SchemaTier.LOW:
            return GenerationResult.skip(page_type, f"LOW tier - {tier.reason or 'no schema needed'}")
        if tier.tier == SchemaTier.MEDIUM and not self.include_medium:
            return GenerationResult.skip(page_type, "MEDIUM tier - enable include_medium to generate")

        preflight = preflight_check(tier.data_sources, site.preflight_context(page))
        if not preflight.passed:
            logger.info(f"Pre-flight failed for {page.get('path')}: {preflight.messages}")
            return GenerationResult(page_type=page_type, status=SchemaStatus.PREFLIGHT_FAILED, errors=preflight.errors)

        try:
            entity = self._build(page_type, page, site)
        except builders.LocationDataError as e:
            return GenerationResult.skip(page_type, f"Cannot generate schema: {e}")
        except Exception as e:
            logger.exception(f"Schema generation failed for {page.get('path')}")
            return GenerationResult(
                page_type=page_type,
                status=SchemaStatus.NEEDS_REVIEW,
                errors=[{"type": EXCEPTION_ERROR_TYPE, "message": str(e)}],
            )

        if entity is None:
            return GenerationResult.skip(page_type, f"No schemas generated for {page_type}")

        entities = [entity]
        faqs = extract_faqs(page.get("html_content"))
        if faqs:
            faq_schema = build_faq_schema(faqs, builders.page_url_for(page, site.url), about_id=entity.get("@id"))
            entities.append(faq_schema)

        graph = wrap_graph(entities)
        validation = validate_schema(graph)
        return GenerationResult(page_type=page_type, status=validation.status, graph=graph, errors=validation.errors)

    def _fields(self, kind: str, page: dict[str, Any]) -> dict[str, Any]:
        if self.extractor is None:
            return {}
        if kind == "procedure":
            return self.extractor.extract_procedure_fields(page)
        return self.extractor.extract_team_member_fields(page)

    def _build(self, page_type: str, page: dict[str, Any], site: SiteContext) -> dict[str, Any] | None:
        profile, site_url = site.profile, site.url

        if page_type == PageType.PROCEDURE:
            return builders.build_procedure_schema(page, profile, site_url, self._fields("procedure", page))
        if page_type == PageType.RESOURCE:
            return builders.build_blog_schema(page, profile, site_url)
        if page_type == PageType.GALLERY:
            return builders.build_gallery_schema(page, site_url)
        if page_type == PageType.TEAM_MEMBER:
            return builders.build_team_member_schema(page, profile, site_url, self._fields("team_member", page))
        if page_type in (PageType.HOMEPAGE, PageType.LOCATION, PageType.CONTACT):
            return builders.build_local_business_schema(
                profile,
                site_url,
                page_type,
                page_id=page.get("id"),
                page_path=page.get("path"),
                inline_threshold=self.inline_threshold,
            )
        if page_type == PageType.CONDITION:
            return builders.build_condition_schema(page, site_url)
        if page_type == PageType.PRODUCT:
            return builders.build_product_schema(page, profile, site_url)
        if page_type == PageType.PRODUCT_COLLECTION:
            return builders.build_item_list_schema(page, site_url)
        return None


class LLMSchemaGenerator:
    """Writes the whole @graph with one LLM call, then applies the stricter checks."""

    def __init__(self, llm: LLMClient, prompts: PromptStore | None = None, model: str | None = None):
        self.llm = llm
        self.prompts = prompts or PromptStore()
        self.model = model

    def generate(self, page: dict[str, Any], site: SiteContext, model: str | None = None) -> GenerationResult:
        """Generate a graph for the page.

        Raises:
            LLMError: if the call fails or returns something that is not JSON.
        """
        prompt_config = self.prompts.get(FULL_SCHEMA_PROMPT_NAME)
        prompt = prompt_config.render(
            page_type=page.get("page_type") or "GENERIC",
            url=builders.page_url_for(page, site.url),
            title=page.get("title") or "",
            meta_description=page.get("meta_description") or "",
            site_profile=json.dumps(site.profile, indent=2, default=str),
            content=(page.get("main_content") or "")[:LLM_CONTENT_CHARS],
            site_url=site.url,
        )

        response = self.llm.complete(
            prompt,
            system=prompt_config.system_prompt,
            model=model or self.model or prompt_config.default_model,
            max_tokens=4000,
            temperature=0.3,
            json_mode=True,
            action="generate_schema_llm",
            page_id=page.get("id"),
            page_url=page.get("url"),
        )

        try:
            graph = parse_json(response.content)
        except ValueError as e:
            raise LLMError(f"Schema response was not valid JSON: {e}") from e

        validation = validate_llm_schema(graph, page.get("page_type"))
        if isinstance(graph, dict) and "@graph" in graph:
            graph.setdefault("@context", SCHEMA_CONTEXT)
        return GenerationResult(
            page_type=page.get("page_type") or "UNCLASSIFIED",
            status=validation.status,
            graph=graph if isinstance(graph, dict) else None,
            errors=validation.errors,
            method="llm",
        )


def save_generation(session: Session, page: Page, result: GenerationResult) -> None:
    """Write the result onto the page row and upsert one page_schemas row per entity."""
    page.schema_status = result.status
    page.schema_errors = result.errors or None
    page.schema_generated_at = datetime.now(timezone.utc)

    if not result.graph or not isinstance(result.graph.get("@graph"), list):
        return

    existing = {s.schema_type: s for s in session.query(PageSchema).filter(PageSchema.page_id == page.id).all()}
    is_valid = result.status == SchemaStatus.VALIDATED
    for entity in result.graph["@graph"]:
        if not isinstance(entity, dict):
            continue
        schema_type = entity_type(entity)
        row = existing.get(schema_type)
        if row is None:
            row = PageSchema(page_id=page.id, schema_type=schema_type)
            session.add(row)
            existing[schema_type] = row
        row.schema_json = entity
        row.generation_method = result.method
        row.is_valid = is_valid
        row.validation_errors = result.errors

    page.recommended_schema = result.graph


def build_schema_generator(session: Session, settings: Settings, include_medium: bool = False) -> SchemaGenerator:
    """Wire a generator whose LLM usage is logged through ``session``."""
    llm = LLMClient(settings, on_usage=UsageLogger(session))
    extractor = FieldExtractor(llm, PromptStore(session), model=settings.extraction_model)
    return SchemaGenerator(
        tiers=load_tiers(session),
        extractor=extractor,
        include_medium=include_medium,
        inline_threshold=settings.inline_location_threshold,
    )


def generate_page_schema(
    session: Session,
    page_id: str,
    settings: Settings,
    method: str = "template",
    model: str | None = None,
) -> GenerationResult:
    """Generate and persist schema for a single page on request.

    MEDIUM tier pages are generated here since the request is explicit.

    Raises:
        ValueError: if the page does not exist.
        LLMError: if LLM generation fails.
    """
    page = session.query(Page).filter(Page.id == page_id).first()
    if not page:
        raise ValueError(f"Page not found: {page_id}")
    site = load_site_context(session, page.site)

    if method == "llm":
        llm = LLMClient(settings, on_usage=UsageLogger(session))
        generator = LLMSchemaGenerator(llm, PromptStore(session), model=settings.llm_model)
        try:
            result = generator.generate(page.to_context(), site, model=model)
        except LLMError:
            # Keep the failed call in the usage log
            session.commit()
            raise
    else:
        result = build_schema_generator(session, settings, include_medium=True).generate(page.to_context(), site)

    save_generation(session, page, result)
    session.commit()
    return result


@dataclass
class SchemaBatchSummary:
    """Outcome of a batch generation run."""
    processed: int = 0
    counts: dict[str, int] = field(default_factory=dict)


class SchemaBatchRunner:
    """Pages through a site's pending (or needs_review) pages in batches."""

    def __init__(
        self,
        session: Session,
        generator: SchemaGenerator,
        batch_size: int = 10,
        on_progress: Callable[[int, int, str], None] | None = None,
    ):
        self.session = session
        self.generator = generator
        self.batch_size = batch_size
        self.on_progress = on_progress

    def select_pages(
        self,
        site_id: str,
        retry: bool = False,
        path: str | None = None,
        exceptions_only: bool = False,
        exclude_ids: set[str] | None = None,
    ):
        """Query for the pages a run works on.

        ``retry`` switches from pending to needs_review pages; with
        ``exceptions_only`` only those whose last attempt raised are taken.
        """
        status_filter = SchemaStatus.NEEDS_REVIEW if retry else SchemaStatus.PENDING
        query = self.session.query(Page).filter(Page.site_id == site_id, Page.schema_status == status_filter)
        if retry and exceptions_only:
            query = query.filter(Page.schema_errors.contains([{"type": EXCEPTION_ERROR_TYPE}]))
        if path:
            query = query.filter(Page.path == path)
        if exclude_ids:
            query = query.filter(Page.id.notin_(exclude_ids))
        return query

    def run(
        self,
        site_id: str,
        retry: bool = False,
        path: str | None = None,
        exceptions_only: bool = False,
    ) -> SchemaBatchSummary:
        site = self.session.query(Site).filter(Site.id == site_id).first()
        if not site:
            raise ValueError(f"Site not found: {site_id}")

        site_context = load_site_context(self.session, site)
        total = self.select_pages(site_id, retry, path, exceptions_only).count()
        logger.info(
            f"Generating schemas for {site.domain}: {total} "
            f"{SchemaStatus.NEEDS_REVIEW if retry else SchemaStatus.PENDING} pages"
        )

        summary = SchemaBatchSummary()
        done: set[str] = set()

        while True:
            # Retried pages can land back in needs_review
            batch = (
                self.select_pages(site_id, retry, path, exceptions_only, exclude_ids=done)
                .order_by(Page.path)
                .limit(self.batch_size)
                .all()
            )
            if not batch:
                break

            for page in batch:
                done.add(page.id)
                result = self.generator.generate(page.to_context(), site_context)
                save_generation(self.session, page, result)
                summary.processed += 1
                summary.counts[result.status] = summary.counts.get(result.status, 0) + 1

                detail = result.reason or ", ".join(e.get("message") or e.get("error", "") for e in result.errors)
                logger.info(f"{result.status:<16} {page.path} {detail}".rstrip())
                if self.on_progress:
                    self.on_progress(summary.processed, total, page.url)

            self.session.commit()
            logger.info(f"[SCHEMAS] {summary.processed}/{total}")

        logger.info(f"Schema generation complete for {site.domain}: {summary.counts}")
        return summary

    def status(self, site_id: str) -> dict[str, int]:
        rows = (
            self.session.query(Page.schema_status, func.count(Page.id))
            .filter(Page.site_id == site_id)
            .group_by(Page.schema_status)
            .all()
        )
        counts = {status: 0 for status in SchemaStatus.ALL}
        counts.update({status: count for status, count in rows})
        counts["total"] = sum(count for _, count in rows)
        return counts
