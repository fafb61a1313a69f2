from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_LISTED_LINKS = 10


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"


class PageLinkReport(CamelModel):
    overall: Verdict
    external_links: int = 0
    internal_links: int = 0
    total_links: int = 0
    broken_links: list[str] = Field(default_factory=list)
    broken_count: int = 0
    broken_external_links: list[str] = Field(default_factory=list)
    broken_external_count: int = 0
    broken_internal_links: list[str] = Field(default_factory=list)
    broken_internal_count: int = 0
    missing_noopener: int = 0
    links_without_noopener: list[str] = Field(default_factory=list)
    security_issue: bool = False
    issue: str | None = None
    missing_new_tab: int = 0

    @classmethod
    def page_error(cls, message: str) -> "PageLinkReport":
        return cls(overall=Verdict.ERROR, issue=f"Error checking page: {message}")


class PageCheckResult(CamelModel):
    url: str
    page_name: str | None = None
    link_checks: PageLinkReport


class PageTarget(CamelModel):
    url: str | None = None
    page_name: str | None = None


class CheckLinksRequest(BaseModel):
    pages: list[PageTarget] | None = None
    concurrency: int | str | None = None


class CheckLinksMetadata(CamelModel):
    total_pages: int
    duration: str
    timestamp: datetime


class CheckLinksResponse(BaseModel):
    success: bool = True
    results: list[PageCheckResult]
    metadata: CheckLinksMetadata
