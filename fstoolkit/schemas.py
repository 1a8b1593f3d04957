from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SearchOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    regex: Optional[str] = None
    extension: Optional[Union[str, list[str]]] = None
    content: Optional[str] = None
    content_regex: Optional[str] = Field(default=None, alias='contentRegex')

    @field_validator('extension')
    @classmethod
    def _normalize_extension(cls, value):
        if value is None:
            return None
        values = [value] if isinstance(value, str) else value
        cleaned = [v.strip().lstrip('.').lower() for v in values if v and v.strip()]
        return cleaned or None

    @property
    def has_content_filter(self) -> bool:
        return bool(self.content or self.content_regex)


class SortOptions(BaseModel):
    by: str = Field(default='name', pattern='^(name|date|size)$')
    order: str = Field(default='asc', pattern='^(asc|desc)$')


class QueryOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    detail: bool = False
    show_empty_folders: bool = Field(default=False, alias='showEmptyFolders')
    search: SearchOptions = Field(default_factory=SearchOptions)
    sort: SortOptions = Field(default_factory=SortOptions)


class FileSystemEntry(BaseModel):
    name: str
    path: str
    size: int
    last_modified: int
    is_directory: bool
    readable_size: str
    readable_last_modified: str


class ArchiveEntry(BaseModel):
    relative_name: str
    is_directory: bool = False


class PathRequest(BaseModel):
    path: str


class TransferRequest(BaseModel):
    source: Union[str, list[str]]
    destination: str


class ZipRequest(BaseModel):
    source: str
    archive_path: Optional[str] = None


class UnzipRequest(BaseModel):
    archive_path: str
    destination: Optional[str] = None


class ApiResponse(BaseModel):
    ok: bool
    message: str
    data: Optional[Any] = None
