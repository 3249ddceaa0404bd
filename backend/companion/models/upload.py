"""
Multipart upload data models
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class MultipartUpload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    upload_id: str = Field(alias="uploadId")


class PartSignature(BaseModel):
    url: str
    expires: int


class UploadedPart(BaseModel):
    """A part as recorded by the object store"""

    model_config = ConfigDict(populate_by_name=True)

    part_number: int = Field(alias="PartNumber")
    etag: str = Field(alias="ETag")
    size: Optional[int] = Field(default=None, alias="Size")
    last_modified: Optional[datetime] = Field(default=None, alias="LastModified")


class CompletedPart(BaseModel):
    """A part reference sent back to the store when completing"""

    model_config = ConfigDict(populate_by_name=True)

    part_number: int = Field(alias="PartNumber")
    etag: str = Field(alias="ETag")


class CompletedUpload(BaseModel):
    location: Optional[str] = None
