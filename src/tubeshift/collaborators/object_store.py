"""S3-compatible object storage via boto3."""

import logging
import mimetypes
from pathlib import Path

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from tubeshift.config import Settings, get_settings
from tubeshift.models.errors import ConfigurationError, ResourceError
from tubeshift.models.results import Err, ErrorKind, Ok, OperationResult

logger = logging.getLogger(__name__)

_FORBIDDEN_CODES = ("403", "AccessDenied", "Forbidden", "InvalidAccessKeyId", "SignatureDoesNotMatch")


def classify_client_error(exc: ClientError) -> ErrorKind:
    error = exc.response.get("Error", {})
    code = str(error.get("Code", ""))
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    if code in ("404", "NoSuchBucket", "NotFound") or status == 404:
        return ErrorKind.NOT_FOUND
    if code in _FORBIDDEN_CODES or status == 403:
        return ErrorKind.FORBIDDEN
    if code in ("SlowDown", "Throttling", "RequestLimitExceeded") or status in (429, 503):
        return ErrorKind.RATE_LIMITED
    if code in ("RequestTimeout",):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


def _classify_upload_failure(message: str) -> ErrorKind:
    # upload_file wraps the underlying ClientError into a plain message.
    if "NoSuchBucket" in message or "(404)" in message:
        return ErrorKind.NOT_FOUND
    if any(code in message for code in _FORBIDDEN_CODES[1:]) or "(403)" in message:
        return ErrorKind.FORBIDDEN
    if "SlowDown" in message:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.UNKNOWN


class S3ObjectStore:
    """Uploads files to one bucket."""

    def __init__(self, settings: Settings | None = None, client=None):
        self.settings = settings or get_settings()
        self.bucket = self.settings.s3_bucket
        self._client = client

    @property
    def client(self):
        if self._client is None:
            timeout = self.settings.upload_timeout_seconds
            self._client = boto3.client(
                "s3",
                region_name=self.settings.s3_region,
                endpoint_url=self.settings.s3_endpoint_url,
                config=Config(
                    connect_timeout=min(timeout, 60),
                    read_timeout=timeout,
                    retries={"max_attempts": 0},
                ),
            )
        return self._client

    def check_connectivity(self) -> None:
        if not self.bucket:
            raise ConfigurationError(
                "No storage bucket configured", details={"setting": "TUBESHIFT_S3_BUCKET"}
            )
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError as e:
            kind = classify_client_error(e)
            raise ResourceError(
                f"Cannot access bucket '{self.bucket}': {kind}",
                component="object_store",
                details={"bucket": self.bucket, "kind": str(kind), "error": str(e)},
            )
        except BotoCoreError as e:
            raise ResourceError(
                f"Cannot reach storage backend: {e}",
                component="object_store",
                details={"bucket": self.bucket, "endpoint": self.settings.s3_endpoint_url},
            )
        logger.info(f"Storage bucket '{self.bucket}' is reachable")

    def put(self, path: Path, key: str, metadata: dict[str, str] | None = None) -> OperationResult:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        extra_args = {"ContentType": content_type, "Metadata": dict(metadata or {})}
        try:
            self.client.upload_file(str(path), self.bucket, key, ExtraArgs=extra_args)
        except ClientError as e:
            return Err(kind=classify_client_error(e), detail=str(e))
        except S3UploadFailedError as e:
            return Err(kind=_classify_upload_failure(str(e)), detail=str(e))
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            return Err(kind=ErrorKind.TIMEOUT, detail=str(e))
        except EndpointConnectionError as e:
            return Err(kind=ErrorKind.NETWORK_ERROR, detail=str(e))
        except NoCredentialsError as e:
            return Err(kind=ErrorKind.FORBIDDEN, detail=str(e))
        except BotoCoreError as e:
            return Err(kind=ErrorKind.NETWORK_ERROR, detail=str(e))
        logger.info(f"Uploaded {path.name} to s3://{self.bucket}/{key}")
        return Ok(data={"bucket": self.bucket, "storage_key": key, "content_type": content_type})
