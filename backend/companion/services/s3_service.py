"""
Object store adapter for S3 multipart uploads
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Mapping, Optional

import aioboto3
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from companion.config.base import Settings, settings
from companion.exceptions import UpstreamError, describe_client_error
from companion.models.upload import CompletedPart, MultipartUpload, UploadedPart
from companion.utils.logger import get_logger, log_store_call

logger = get_logger(__name__)


class BaseObjectStore(ABC):
    """Multipart API of the object store, as seen by the coordinator"""

    async def start(self) -> None:
        """Acquire long-lived resources"""

    async def close(self) -> None:
        """Release resources acquired by start()"""

    @abstractmethod
    async def create_multipart_upload(
        self, key: str, content_type: str, metadata: Mapping[str, str]
    ) -> MultipartUpload:
        pass

    @abstractmethod
    async def presign_upload_part(
        self, key: str, upload_id: str, part_number: int, expires_in: int
    ) -> str:
        pass

    @abstractmethod
    async def list_parts_page(
        self, key: str, upload_id: str, part_number_marker: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Fetch one page of the parts recorded for an upload

        Returns:
            Dict with "parts" (list of UploadedPart), "is_truncated" (bool)
            and "next_marker" (marker for the following page, or None)
        """
        pass

    @abstractmethod
    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: List[CompletedPart]
    ) -> Optional[str]:
        """Assemble the parts and return the final object location"""
        pass

    @abstractmethod
    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        pass


class S3ObjectStore(BaseObjectStore):
    """BaseObjectStore backed by AWS S3 or an S3-compatible endpoint"""

    def __init__(self, config: Settings = settings, client=None, presigner=None):
        if not config.COMPANION_AWS_BUCKET:
            raise RuntimeError("COMPANION_AWS_BUCKET is not configured")

        self.bucket = config.COMPANION_AWS_BUCKET
        self.region = config.COMPANION_AWS_REGION

        self._client_kwargs: Dict[str, Any] = {"region_name": self.region}
        if config.COMPANION_AWS_ENDPOINT:
            self._client_kwargs["endpoint_url"] = config.COMPANION_AWS_ENDPOINT
        if config.has_static_credentials:
            self._client_kwargs["aws_access_key_id"] = config.COMPANION_AWS_KEY
            self._client_kwargs["aws_secret_access_key"] = config.COMPANION_AWS_SECRET
        else:
            logger.warning("No static S3 credentials configured - using the default AWS credential chain")

        self._session = aioboto3.Session()
        self._exit_stack = AsyncExitStack()
        self._client = client

        self.presigner = presigner

        logger.info(f"S3 store configured for bucket: {self.bucket} ({self.region})")

    def _build_presigner(self):
        # Creating the client resolves the credential chain, which may hit IMDS or STS
        return boto3.client(
            's3',
            config=Config(signature_version="s3v4"),
            **self._client_kwargs
        )

    async def start(self) -> None:
        if self.presigner is None:
            self.presigner = await asyncio.to_thread(self._build_presigner)
            logger.info("S3 presigner ready")
        if self._client is None:
            self._client = await self._exit_stack.enter_async_context(
                self._session.client('s3', **self._client_kwargs)
            )
            logger.info("S3 client opened")

    async def close(self) -> None:
        await self._exit_stack.aclose()
        self._client = None
        logger.info("S3 client closed")

    @property
    def client(self):
        if self._client is None:
            raise RuntimeError("S3 store used before start()")
        return self._client

    async def _send(self, operation: str, method: str, **params) -> Dict[str, Any]:
        try:
            return await getattr(self.client, method)(Bucket=self.bucket, **params)
        except (ClientError, BotoCoreError) as e:
            code = describe_client_error(e)
            logger.error(f"S3 {operation} failed for key {params.get('Key')} (code={code})")
            raise UpstreamError(operation, code) from e

    @log_store_call
    async def create_multipart_upload(
        self, key: str, content_type: str, metadata: Mapping[str, str]
    ) -> MultipartUpload:
        response = await self._send(
            "create multipart upload",
            "create_multipart_upload",
            Key=key,
            ContentType=content_type,
            Metadata=dict(metadata),
        )
        return MultipartUpload(key=response.get("Key", key), upload_id=response["UploadId"])

    @log_store_call
    async def presign_upload_part(
        self, key: str, upload_id: str, part_number: int, expires_in: int
    ) -> str:
        if self.presigner is None:
            raise RuntimeError("S3 store used before start()")
        try:
            # Refreshing temporary credentials is blocking I/O
            return await asyncio.to_thread(
                self.presigner.generate_presigned_url,
                'upload_part',
                Params={
                    'Bucket': self.bucket,
                    'Key': key,
                    'UploadId': upload_id,
                    'PartNumber': part_number,
                },
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            code = describe_client_error(e)
            logger.error(f"S3 presign upload part failed for key {key} (code={code})")
            raise UpstreamError("presign upload part", code) from e

    @log_store_call
    async def list_parts_page(
        self, key: str, upload_id: str, part_number_marker: Optional[int] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"Key": key, "UploadId": upload_id}
        if part_number_marker is not None:
            params["PartNumberMarker"] = part_number_marker

        response = await self._send("list parts", "list_parts", **params)
        return {
            "parts": [UploadedPart.model_validate(part) for part in response.get("Parts") or []],
            "is_truncated": bool(response.get("IsTruncated")),
            "next_marker": response.get("NextPartNumberMarker"),
        }

    @log_store_call
    async def complete_multipart_upload(
        self, key: str, upload_id: str, parts: List[CompletedPart]
    ) -> Optional[str]:
        response = await self._send(
            "complete multipart upload",
            "complete_multipart_upload",
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": [part.model_dump(by_alias=True) for part in parts]},
        )
        return response.get("Location")

    @log_store_call
    async def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        await self._send(
            "abort multipart upload",
            "abort_multipart_upload",
            Key=key,
            UploadId=upload_id,
        )
