"""Tests for the classification and schema batch runners."""

from unittest.mock import MagicMock, Mock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from pulse.models import Page, PageSchema, Site
from pulse.page_types import PageType, SchemaStatus
from pulse.services.classification_runner import ClassificationRunner
from pulse.services.page_classifier import PageTypeClassifier
from pulse.services.schema_generator import GenerationResult, SchemaBatchRunner, SchemaGenerator, save_generation


def make_pages(*paths, **values):
    return [
        Page(id=f"page-{i}", site_id="site-1", url=f"https://example.com{path}", path=path, **values)
        for i, path in enumerate(paths)
    ]


def site_session(site, pages=()):
    """Sync session double: ``query(...).filter(...)`` finds the site and lists ``pages``."""
    session = MagicMock()
    filtered = session.query.return_value.filter.return_value
    filtered.first.return_value = site
    filtered.order_by.return_value.all.return_value = list(pages)
    filtered.all.return_value = []
    return session


def compile_query(query):
    statement = query.statement.compile(dialect=postgresql.dialect())
    return str(statement), list(statement.params.values())


class FakeQuery:
    """Enough of a Query for the runner loop: count, order_by, limit, all."""

    def __init__(self, rows):
        self.rows = rows

    def count(self):
        return len(self.rows)

    def order_by(self, *args):
        return FakeQuery(sorted(self.rows, key=lambda page: page.path))

    def limit(self, size):
        return FakeQuery(self.rows[:size])

    def all(self):
        return list(self.rows)


@pytest.fixture
def site():
    return Site(id="site-1", url="https://example.com", domain="example.com")


# =============================================================================
# Classification
# =============================================================================

@pytest.fixture
def classifier():
    classifier = Mock(spec=PageTypeClassifier)
    classifier.analyze_site_structure.return_value = {"patterns": [], "locations": [], "notes": ""}
    classifier.classify_page.return_value = (PageType.PROCEDURE, "llm")
    return classifier


def unclassified_head(pages, size):
    def next_batch(site_id, reclassify, offset):
        return sorted((p for p in pages if p.page_type is None), key=lambda p: p.path)[:size]

    return next_batch


class TestClassificationRunner:
    def test_default_mode_takes_unclassified_head(self, site, classifier):
        pages = make_pages("/a", "/b", "/c", "/d", "/e")
        pages[0].page_type = "HOMEPAGE"
        pages[3].page_type = "CONTACT"
        session = site_session(site, pages)
        progress = []
        runner = ClassificationRunner(session, classifier, batch_size=2, on_progress=lambda *args: progress.append(args))

        with patch.object(runner, "_next_batch", side_effect=unclassified_head(pages, 2)):
            summary = runner.run("site-1")

        assert summary.processed == 3
        assert summary.type_counts == {"PROCEDURE": 3}
        assert [p.page_type for p in pages] == ["HOMEPAGE", "PROCEDURE", "PROCEDURE", "CONTACT", "PROCEDURE"]
        # Site analysis sees every page, progress only the ones being classified
        assert len(classifier.analyze_site_structure.call_args.args[0]) == 5
        assert [(current, total) for current, total, _ in progress] == [(1, 3), (2, 3), (3, 3)]
        assert site.site_analysis == classifier.analyze_site_structure.return_value
        # One commit for the analysis, one per batch
        assert session.commit.call_count == 3

    def test_reclassify_pages_by_offset(self, site, classifier):
        pages = make_pages("/a", "/b", "/c", page_type="GENERIC")
        runner = ClassificationRunner(site_session(site, pages), classifier, batch_size=2)
        offsets = []

        def next_batch(site_id, reclassify, offset):
            assert reclassify
            offsets.append(offset)
            return pages[offset:offset + 2]

        with patch.object(runner, "_next_batch", side_effect=next_batch):
            summary = runner.run("site-1", reclassify=True)

        assert offsets == [0, 2, 3]
        assert summary.processed == 3
        assert all(p.page_type == "PROCEDURE" for p in pages)

    def test_stops_when_batch_makes_no_progress(self, site, classifier):
        pages = make_pages("/a", "/b", "/c")
        classifier.classify_page.side_effect = RuntimeError("boom")
        runner = ClassificationRunner(site_session(site, pages), classifier, batch_size=2)

        with patch.object(runner, "_next_batch", side_effect=unclassified_head(pages, 2)) as next_batch:
            summary = runner.run("site-1")

        # Failed rows stay unclassified, so the same head comes back once
        assert next_batch.call_count == 2
        assert summary.processed == 2
        assert summary.errors == 2

    def test_missing_site(self, classifier):
        with pytest.raises(ValueError, match="Site not found"):
            ClassificationRunner(site_session(None), classifier).run("nope")

    def test_default_query_filters_unclassified(self, classifier):
        runner = ClassificationRunner(Session(), classifier, batch_size=10)
        sql, params = compile_query(runner.batch_query("site-1", reclassify=False, offset=20))
        assert "page_type IS NULL" in sql
        assert "OFFSET" not in sql
        assert "site-1" in params

    def test_reclassify_query_uses_offset(self, classifier):
        runner = ClassificationRunner(Session(), classifier, batch_size=10)
        sql, params = compile_query(runner.batch_query("site-1", reclassify=True, offset=20))
        assert "page_type IS NULL" not in sql
        assert "OFFSET" in sql
        assert 20 in params


# =============================================================================
# Schema batches
# =============================================================================

def graph(*types):
    return {"@context": "https://schema.org", "@graph": [{"@type": t, "name": t} for t in types]}


def pages_by_status(pages):
    def select_pages(site_id, retry=False, path=None, exceptions_only=False, exclude_ids=None):
        wanted = SchemaStatus.NEEDS_REVIEW if retry else SchemaStatus.PENDING
        return FakeQuery([
            p for p in pages
            if p.schema_status == wanted and (not path or p.path == path) and p.id not in (exclude_ids or set())
        ])

    return select_pages


class TestSchemaBatchRunner:
    @pytest.fixture(autouse=True)
    def profile(self, site_context):
        with patch("pulse.services.schema_generator.load_site_context", return_value=site_context):
            yield

    def test_pending_pages_in_batches(self, site):
        pages = make_pages("/a", "/b", "/c", "/done", schema_status=SchemaStatus.PENDING)
        pages[3].schema_status = SchemaStatus.VALIDATED
        generator = Mock(spec=SchemaGenerator)
        generator.generate.return_value = GenerationResult("PROCEDURE", SchemaStatus.VALIDATED, graph=graph("MedicalProcedure"))
        session = site_session(site)
        progress = []
        runner = SchemaBatchRunner(session, generator, batch_size=2, on_progress=lambda *args: progress.append(args))

        with patch.object(runner, "select_pages", side_effect=pages_by_status(pages)):
            summary = runner.run("site-1")

        assert summary.processed == 3
        assert summary.counts == {"validated": 3}
        assert all(p.schema_status == SchemaStatus.VALIDATED for p in pages)
        assert pages[0].recommended_schema == graph("MedicalProcedure")
        assert [(current, total) for current, total, _ in progress] == [(1, 3), (2, 3), (3, 3)]
        assert session.commit.call_count == 2

    def test_retry_does_not_loop_on_pages_still_needing_review(self, site):
        pages = make_pages("/a", "/b", schema_status=SchemaStatus.NEEDS_REVIEW)
        generator = Mock(spec=SchemaGenerator)
        generator.generate.return_value = GenerationResult(
            "PROCEDURE", SchemaStatus.NEEDS_REVIEW, errors=[{"type": "exception", "message": "boom"}]
        )
        runner = SchemaBatchRunner(site_session(site), generator, batch_size=1)

        with patch.object(runner, "select_pages", side_effect=pages_by_status(pages)) as select_pages:
            summary = runner.run("site-1", retry=True, exceptions_only=True)

        assert summary.processed == 2
        assert summary.counts == {"needs_review": 2}
        assert select_pages.call_args.kwargs["exclude_ids"] == {"page-0", "page-1"}
        assert select_pages.call_args.args[1:] == (True, None, True)

    def test_missing_site(self):
        with pytest.raises(ValueError, match="Site not found"):
            SchemaBatchRunner(site_session(None), Mock(spec=SchemaGenerator)).run("nope")

    def test_pending_selection(self):
        runner = SchemaBatchRunner(Session(), Mock(spec=SchemaGenerator))
        sql, params = compile_query(runner.select_pages("site-1", exceptions_only=True))
        assert "pending" in params
        # exceptions_only only narrows retries
        assert "@>" not in sql
        assert "NOT IN" not in sql

    def test_retry_selection_with_path_and_exclusions(self):
        runner = SchemaBatchRunner(Session(), Mock(spec=SchemaGenerator))
        query = runner.select_pages("site-1", retry=True, path="/botox", exceptions_only=True, exclude_ids={"page-0"})
        sql, params = compile_query(query)
        assert "needs_review" in params
        assert "/botox" in params
        assert [{"type": "exception"}] in params
        assert "@>" in sql
        assert "NOT IN" in sql

    def test_status_counts(self):
        session = MagicMock()
        session.query.return_value.filter.return_value.group_by.return_value.all.return_value = [
            ("validated", 3),
            ("pending", 1),
        ]
        counts = SchemaBatchRunner(session, Mock(spec=SchemaGenerator)).status("site-1")
        assert counts == {
            "pending": 1,
            "validated": 3,
            "needs_review": 0,
            "skipped": 0,
            "preflight_failed": 0,
            "total": 4,
        }


class TestSaveGeneration:
    def test_upserts_one_row_per_entity_type(self):
        page = make_pages("/botox")[0]
        existing = PageSchema(page_id="page-0", schema_type="MedicalProcedure", schema_json={"old": True})
        session = MagicMock()
        session.query.return_value.filter.return_value.all.return_value = [existing]
        result = GenerationResult("PROCEDURE", SchemaStatus.VALIDATED, graph=graph("MedicalProcedure", "FAQPage"))

        save_generation(session, page, result)

        assert existing.schema_json == {"@type": "MedicalProcedure", "name": "MedicalProcedure"}
        assert existing.generation_method == "template"
        assert existing.is_valid is True
        added = session.add.call_args.args[0]
        assert (added.page_id, added.schema_type) == ("page-0", "FAQPage")
        assert session.add.call_count == 1
        assert page.schema_status == SchemaStatus.VALIDATED
        assert page.schema_errors is None
        assert page.recommended_schema == result.graph
        assert page.schema_generated_at is not None

    def test_failure_without_graph_keeps_cached_schema(self):
        page = make_pages("/botox", recommended_schema={"@graph": []})[0]
        session = MagicMock()
        errors = [{"type": "exception", "message": "boom"}]

        save_generation(session, page, GenerationResult("PROCEDURE", SchemaStatus.NEEDS_REVIEW, errors=errors))

        assert page.schema_status == SchemaStatus.NEEDS_REVIEW
        assert page.schema_errors == errors
        assert page.recommended_schema == {"@graph": []}
        session.query.assert_not_called()
