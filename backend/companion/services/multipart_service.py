"""
Multipart upload coordinator

Validates client input, delegates each step of the multipart protocol to the
object store and reshapes the store's answers into the client contract. The
store is the only source of truth for sessions and parts; nothing is cached
here.
"""

import base64
import json
import re
import uuid
from typing import Any, List, Mapping, Optional

from companion.config.base import settings
from companion.exceptions import InvalidArgumentError, UpstreamError
from companion.models.upload import (
    CompletedPart,
    CompletedUpload,
    MultipartUpload,
    PartSignature,
    UploadedPart,
)
from companion.services.s3_service import BaseObjectStore
from companion.utils.logger import get_logger

logger = get_logger(__name__)

MIN_PART_NUMBER = 1
MAX_PART_NUMBER = 10000

FILENAME_ERROR = "s3: content filename must be a string"
CONTENT_TYPE_ERROR = "s3: content type must be a string"
METADATA_ERROR = "s3: content metadata must be an object"
PART_NUMBER_ERROR = "s3: the part number must be an integer between 1 and 10000."
KEY_ERROR = 's3: the object key must be passed as a query parameter. For example: "?key=abc.jpg"'
PARTS_ERROR = "s3: `parts` must be an array of {ETag, PartNumber} objects."

# Leading zeros, then at most five significant digits
_DIGITS = re.compile(r"0*[0-9]{1,5}")


def encode_header_value(value: Any) -> str:
    """
    Make a metadata value safe for an HTTP header

    ASCII text passes through unchanged. Anything else becomes a single
    RFC 2047 encoded-word carrying the UTF-8 bytes in base64.
    """
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    if text.isascii():
        return text
    payload = base64.b64encode(text.encode("utf-8", errors="replace")).decode("ascii")
    return f"=?UTF-8?B?{payload}?="


def encode_metadata(metadata: Optional[Mapping[str, Any]]) -> dict:
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise InvalidArgumentError(METADATA_ERROR)
    return {encode_header_value(k): encode_header_value(v) for k, v in metadata.items()}


def generate_object_key(filename: str) -> str:
    return f"{uuid.uuid4()}-{filename}"


def parse_part_number(value: Any) -> Optional[int]:
    """Return the part number as an int, or None if it is not a valid one"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and _DIGITS.fullmatch(value):
        number = int(value)
    else:
        return None
    if MIN_PART_NUMBER <= number <= MAX_PART_NUMBER:
        return number
    return None


def validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise InvalidArgumentError(KEY_ERROR)
    return key


def validate_parts(parts: Any) -> List[CompletedPart]:
    """Check every part before anything is sent to the store"""
    if not isinstance(parts, list):
        raise InvalidArgumentError(PARTS_ERROR)

    validated = []
    for part in parts:
        if not isinstance(part, Mapping):
            raise InvalidArgumentError(PARTS_ERROR)
        part_number = parse_part_number(part.get("PartNumber"))
        etag = part.get("ETag")
        if part_number is None or not isinstance(etag, str):
            raise InvalidArgumentError(PARTS_ERROR)
        validated.append(CompletedPart(part_number=part_number, etag=etag))
    return validated


class MultipartUploadService:
    """Coordinates client-driven multipart uploads against an object store"""

    def __init__(
        self,
        store: BaseObjectStore,
        expires_in: int = settings.PRESIGN_EXPIRES_IN,
        max_pages: int = settings.LIST_PARTS_MAX_PAGES,
    ):
        self.store = store
        self.expires_in = expires_in
        self.max_pages = max_pages

    async def create_upload(
        self, filename: Any, content_type: Any, metadata: Any = None
    ) -> MultipartUpload:
        """
        Open a multipart session for a new object

        Args:
            filename: Original filename, appended to a random object key
            content_type: MIME type stored with the object
            metadata: Optional string mapping stored as object metadata

        Returns:
            MultipartUpload with the generated key and the store's upload id
        """
        if not isinstance(filename, str):
            raise InvalidArgumentError(FILENAME_ERROR)
        if not isinstance(content_type, str):
            raise InvalidArgumentError(CONTENT_TYPE_ERROR)
        encoded_metadata = encode_metadata(metadata)

        key = generate_object_key(filename)
        upload = await self.store.create_multipart_upload(key, content_type, encoded_metadata)

        logger.info(f"Multipart upload created: {upload.key} ({upload.upload_id})")
        return upload

    async def sign_part(self, upload_id: str, key: Any, part_number: Any) -> PartSignature:
        """Authorize a direct upload of one part, valid for expires_in seconds"""
        number = parse_part_number(part_number)
        if number is None:
            raise InvalidArgumentError(PART_NUMBER_ERROR)
        key = validate_key(key)

        url = await self.store.presign_upload_part(key, upload_id, number, self.expires_in)

        logger.info(f"Signed part {number} of {upload_id} (expires in {self.expires_in}s)")
        return PartSignature(url=url, expires=self.expires_in)

    async def list_parts(self, upload_id: str, key: Any) -> List[UploadedPart]:
        """
        Collect every part the store has recorded for an upload

        Pages are fetched one after another, each using the marker of the
        previous one. Any failing page fails the whole listing.
        """
        key = validate_key(key)

        parts: List[UploadedPart] = []
        marker = None
        for page in range(1, self.max_pages + 1):
            result = await self.store.list_parts_page(key, upload_id, marker)
            parts.extend(result["parts"])

            if not result["is_truncated"]:
                logger.info(f"Listed {len(parts)} parts of {upload_id} in {page} page(s)")
                return parts

            marker = result["next_marker"]
            if marker is None:
                logger.error(f"Store returned a truncated page without a marker for {upload_id}")
                raise UpstreamError("list parts")

        logger.error(f"Listing parts of {upload_id} exceeded {self.max_pages} pages")
        raise UpstreamError("list parts")

    async def complete_upload(self, upload_id: str, key: Any, parts: Any) -> CompletedUpload:
        """Assemble the uploaded parts, in the order given, into the final object"""
        key = validate_key(key)
        completed_parts = validate_parts(parts)

        location = await self.store.complete_multipart_upload(key, upload_id, completed_parts)

        logger.info(f"Multipart upload completed: {key} ({len(completed_parts)} parts)")
        return CompletedUpload(location=location)

    async def abort_upload(self, upload_id: str, key: Any) -> None:
        key = validate_key(key)
        await self.store.abort_multipart_upload(key, upload_id)
        logger.info(f"Multipart upload aborted: {key} ({upload_id})")
