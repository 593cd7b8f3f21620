"""
S3 object store gateway.

Implements the ObjectStore and Provider protocols on top of a boto3 S3
client. Works against AWS S3 and S3-compatible stores (MinIO, R2, ...) via
the endpoint override and path-style addressing settings.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Dict, List, Mapping, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..models import Descriptor
from ..settings import Settings
from .base import CompletedPart, ObjectState
from .errors import ObjectNotFound, StoreError
from .reader import RemoteReaderAt

__all__ = ["S3Gateway", "is_not_found", "create_s3_client"]

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def is_not_found(error: BaseException) -> bool:
    """Check whether a botocore error reports a missing object."""
    if not isinstance(error, ClientError):
        return False
    code = str(error.response.get("Error", {}).get("Code", ""))
    if code in NOT_FOUND_CODES:
        return True
    # HEAD responses carry no error body, only the status code
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return status == 404 and not code


def create_s3_client(settings: Settings):
    """
    Create a boto3 S3 client for the given settings.

    Static credentials are applied only when both key id and secret are set;
    otherwise the default credential chain (environment, profile, instance
    role) is used. Path-style addressing only applies with a custom endpoint.
    """
    kwargs: Dict[str, object] = {"region_name": settings.region}

    if settings.has_static_credentials:
        logger.debug("S3 client using static credentials")
        kwargs["aws_access_key_id"] = settings.access_key_id
        kwargs["aws_secret_access_key"] = settings.secret_access_key
        if settings.session_token:
            kwargs["aws_session_token"] = settings.session_token
    else:
        logger.debug("S3 client using default credential chain")

    if settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
        if settings.use_path_style:
            kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})
        logger.debug(f"S3 client using custom endpoint {settings.endpoint_url} (path style: {settings.use_path_style})")

    return boto3.client("s3", **kwargs)


class S3Gateway:
    """
    Object store gateway for one bucket and key layout.

    Holds a handle to the boto3 client plus the bucket/prefix configuration;
    stateless otherwise and safe to share across worker threads (boto3
    clients are thread-safe).
    """

    def __init__(self, settings: Settings, client=None) -> None:
        """
        Initialize gateway with settings.

        Args:
            settings: Validated settings
            client: Optional pre-built boto3 S3 client (tests, custom sessions)
        """
        self._settings = settings
        self._client = client if client is not None else create_s3_client(settings)
        self.bucket = settings.bucket
        self.prefix = settings.prefix
        self.blobs_prefix = settings.blobs_prefix
        self.manifests_prefix = settings.manifests_prefix

    # Key layout

    def blob_key(self, digest: str) -> str:
        return self.prefix + self.blobs_prefix + digest

    def manifest_key(self, name: str) -> str:
        return self.prefix + self.manifests_prefix + name

    # Object operations

    def head(self, key: str) -> ObjectState:
        try:
            response = self._client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            if is_not_found(e):
                return ObjectState(exists=False)
            raise self._wrap("head", key, e) from e
        return ObjectState(
            exists=True,
            last_modified=response.get("LastModified"),
            size=response.get("ContentLength"),
        )

    def get(self, key: str, offset: int = 0) -> BinaryIO:
        params = {"Bucket": self.bucket, "Key": key}
        if offset > 0:
            params["Range"] = f"bytes={offset}-"
        try:
            response = self._client.get_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("get", key, e) from e
        return _ResponseBody(self, key, response["Body"])

    def put(self, key: str, body: BinaryIO) -> None:
        logger.debug(f"Uploading s3://{self.bucket}/{key}")
        try:
            self._client.upload_fileobj(body, self.bucket, key)
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise self._wrap("put", key, e) from e

    def copy_in_place(self, key: str, metadata: Mapping[str, str]) -> None:
        logger.debug(f"Copying s3://{self.bucket}/{key} onto itself")
        try:
            self._client.copy_object(
                Bucket=self.bucket,
                Key=key,
                CopySource={"Bucket": self.bucket, "Key": key},
                Metadata=dict(metadata),
                MetadataDirective="REPLACE",
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("copy", key, e) from e

    def create_multipart_upload(self, key: str) -> str:
        try:
            response = self._client.create_multipart_upload(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("create multipart upload", key, e) from e
        return response["UploadId"]

    def upload_part_copy(self, key: str, upload_id: str, part_number: int, copy_range: str) -> str:
        logger.debug(f"Copying part {part_number} ({copy_range}) of s3://{self.bucket}/{key}")
        try:
            response = self._client.upload_part_copy(
                Bucket=self.bucket,
                Key=key,
                CopySource={"Bucket": self.bucket, "Key": key},
                CopySourceRange=copy_range,
                PartNumber=part_number,
                UploadId=upload_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap(f"copy part {part_number}", key, e) from e
        return response["CopyPartResult"]["ETag"]

    def complete_multipart_upload(self, key: str, upload_id: str, parts: List[CompletedPart]) -> None:
        try:
            self._client.complete_multipart_upload(
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={
                    "Parts": [{"ETag": p.etag, "PartNumber": p.part_number} for p in parts]
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("complete multipart upload", key, e) from e

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        try:
            self._client.abort_multipart_upload(Bucket=self.bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("abort multipart upload", key, e) from e

    # Provider

    def reader_at(self, descriptor: Descriptor) -> RemoteReaderAt:
        """Lazy random-access reader for a blob, keyed by digest only."""
        key = self.blob_key(descriptor.digest)
        return RemoteReaderAt(lambda offset: self.get(key, offset), descriptor.size)

    def _wrap(self, operation: str, key: str, error: Exception) -> StoreError:
        location = f"s3://{self.bucket}/{key}"
        if is_not_found(error):
            return ObjectNotFound(f"{operation} {location}: not found", operation=operation, key=key)
        return StoreError(f"{operation} {location} failed: {error}", operation=operation, key=key)


class _ResponseBody:
    """
    GET response body whose streaming errors map onto StoreError.

    The SDK body raises botocore exceptions while it is read (timeouts,
    truncated responses), long after ``get_object`` itself returned.
    """

    def __init__(self, gateway: S3Gateway, key: str, body) -> None:
        self._gateway = gateway
        self._key = key
        self._body = body

    def read(self, amt: Optional[int] = None) -> bytes:
        try:
            return self._body.read(amt)
        except (ClientError, BotoCoreError) as e:
            raise self._gateway._wrap("read", self._key, e) from e

    def close(self) -> None:
        self._body.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
