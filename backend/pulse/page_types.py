"""Page type, schema tier and status vocabularies shared across the pipeline."""

from enum import Enum


class PageType(str, Enum):
    """Content category assigned to a crawled page."""

    HOMEPAGE = "HOMEPAGE"
    PROCEDURE = "PROCEDURE"
    SERVICE_INDEX = "SERVICE_INDEX"
    BODY_AREA = "BODY_AREA"
    CONDITION = "CONDITION"
    RESOURCE = "RESOURCE"
    RESOURCE_INDEX = "RESOURCE_INDEX"
    TEAM_MEMBER = "TEAM_MEMBER"
    ABOUT = "ABOUT"
    GALLERY = "GALLERY"
    CONTACT = "CONTACT"
    LOCATION = "LOCATION"
    PRODUCT = "PRODUCT"
    PRODUCT_COLLECTION = "PRODUCT_COLLECTION"
    UTILITY = "UTILITY"
    MEMBERSHIP = "MEMBERSHIP"
    GENERIC = "GENERIC"

    @classmethod
    def parse(cls, value: str | None) -> "PageType | None":
        """Parse a free-form value (e.g. LLM output) into a page type."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


VALID_PAGE_TYPES = [t.value for t in PageType]


class SchemaTier(str, Enum):
    """Priority bucket controlling whether schema generation runs."""

    HIGH = "HIGH"  # Generated automatically
    MEDIUM = "MEDIUM"  # Generated on request (include_medium)
    LOW = "LOW"  # Never generated


class SchemaStatus:
    """Values of page_index.schema_status."""

    PENDING = "pending"
    VALIDATED = "validated"
    NEEDS_REVIEW = "needs_review"
    SKIPPED = "skipped"
    PREFLIGHT_FAILED = "preflight_failed"

    ALL = [PENDING, VALIDATED, NEEDS_REVIEW, SKIPPED, PREFLIGHT_FAILED]


class CrawlStatus:
    """Values of site_index.crawl_status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    CLASSIFYING = "classifying"
    COMPLETE = "complete"
    ERROR = "error"

    ACTIVE = (PENDING, IN_PROGRESS, CLASSIFYING)
