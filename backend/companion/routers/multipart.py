"""
S3 multipart routes used by chunked upload clients
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Request

from companion.models.upload import (
    CompletedUpload,
    MultipartUpload,
    PartSignature,
    UploadedPart,
)
from companion.services.multipart_service import MultipartUploadService

router = APIRouter(prefix="/s3/multipart")


def get_upload_service(request: Request) -> MultipartUploadService:
    """Shared coordinator attached to the app at startup"""
    service = getattr(request.app.state, "upload_service", None)
    if service is None:
        raise RuntimeError("Upload service is not initialized")
    return service


@router.post("", response_model=MultipartUpload)
async def create_multipart_upload(
    body: Optional[Dict[str, Any]] = Body(default=None),
    service: MultipartUploadService = Depends(get_upload_service),
):
    """Start a multipart upload and return its key and upload id"""
    body = body or {}
    return await service.create_upload(
        filename=body.get("filename"),
        content_type=body.get("type"),
        metadata=body.get("metadata"),
    )


@router.get("/{upload_id}/{part_number}", response_model=PartSignature)
async def sign_part(
    upload_id: str,
    part_number: str,
    key: Optional[str] = None,
    service: MultipartUploadService = Depends(get_upload_service),
):
    """Return a short-lived URL for uploading one part directly to storage"""
    return await service.sign_part(upload_id, key, part_number)


@router.get(
    "/{upload_id}",
    response_model=List[UploadedPart],
    response_model_exclude_none=True,
)
async def list_parts(
    upload_id: str,
    key: Optional[str] = None,
    service: MultipartUploadService = Depends(get_upload_service),
):
    """List every part uploaded so far"""
    return await service.list_parts(upload_id, key)


@router.post("/{upload_id}/complete", response_model=CompletedUpload)
async def complete_multipart_upload(
    upload_id: str,
    key: Optional[str] = None,
    body: Optional[Dict[str, Any]] = Body(default=None),
    service: MultipartUploadService = Depends(get_upload_service),
):
    """Assemble the uploaded parts into the final object"""
    body = body or {}
    return await service.complete_upload(upload_id, key, body.get("parts"))


@router.delete("/{upload_id}")
async def abort_multipart_upload(
    upload_id: str,
    key: Optional[str] = None,
    service: MultipartUploadService = Depends(get_upload_service),
):
    """Cancel the upload and discard its parts"""
    await service.abort_upload(upload_id, key)
    return {}
