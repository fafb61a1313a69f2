from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FetchPageRequest(BaseModel):
    url: Any = None


class FetchPageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    html: str
    status_code: int = Field(alias="statusCode")
    headers: dict[str, str]


class ScreenshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Any = None
    viewport: str = "desktop"
    full_page: bool = Field(default=True, alias="fullPage")
    quality: int = 70


class CheckContentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Any = None
    expected_content: str | None = Field(default=None, alias="expectedContent")
    content_doc_link: str | None = Field(default=None, alias="contentDocLink")


class CheckContentOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    url: str
    content_check: dict[str, Any] = Field(alias="contentCheck")
