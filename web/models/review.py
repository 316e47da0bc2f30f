"""Pydantic models for the deletion review API"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts either spelling on input"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaItemInfoModel(_CamelModel):
    """One item waiting for deletion"""
    name: str = ""
    item_id: str = ""
    path: Optional[str] = None
    date_created: datetime
    date_modified: datetime
    date_last_saved: datetime


class LibraryDeletionInfoModel(_CamelModel):
    """A library's 'To Delete' collection and its members"""
    library_id: str = ""
    library_name: str = ""
    collection_id: str = ""
    items: List[MediaItemInfoModel] = Field(default_factory=list)


class PendingDeletionsResponseModel(_CamelModel):
    """All libraries with items staged for manual deletion"""
    libraries: List[LibraryDeletionInfoModel] = Field(default_factory=list)


class DeleteItemsRequestModel(_CamelModel):
    """Items the reviewer confirmed for deletion"""
    item_ids: Optional[List[str]] = None


class DeleteItemsResponseModel(_CamelModel):
    """Outcome of a manual deletion request"""
    deleted: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
