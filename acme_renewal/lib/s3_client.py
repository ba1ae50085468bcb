"""S3 client for certbot state sync, configuration and certificate backups."""

import logging
from datetime import UTC, datetime
from pathlib import Path

import boto3
from botocore.exceptions import ClientError
from mypy_boto3_s3 import S3Client as S3ClientType

from .errors import NotFoundError
from .models import CertificatePaths

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "certificates"
_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def normalize_prefix(prefix: str) -> str:
    """Return prefix with exactly one trailing slash (empty stays empty)."""
    stripped = prefix.strip("/")
    return f"{stripped}/" if stripped else ""


def backup_timestamp(now: datetime) -> str:
    """ISO-8601 UTC timestamp usable as a key segment.

    ``2026-10-18T09:30:00.123Z`` -> ``2026-10-18T09-30-00-123Z``
    """
    iso = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return iso.replace(":", "-").replace(".", "-")


class S3Client:
    """S3 operations for one bucket."""

    def __init__(self, bucket_name: str, region: str = "us-east-1") -> None:
        """Initialize S3 client.

        Args:
            bucket_name: Bucket holding state, configuration and backups
            region: AWS region for S3 client
        """
        self.bucket_name = bucket_name
        self.client: S3ClientType = boto3.client("s3", region_name=region)

    def fetch_text(self, key: str) -> str:
        """Download an object as UTF-8 text.

        Raises:
            NotFoundError: If the key does not exist
            ClientError: For any other S3 failure
        """
        logger.info("Downloading s3://%s/%s", self.bucket_name, key)
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code", "") in _NOT_FOUND_CODES:
                raise NotFoundError(f"s3://{self.bucket_name}/{key} does not exist") from e
            raise
        return response["Body"].read().decode("utf-8")

    def put_bytes(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        logger.info("Uploading s3://%s/%s", self.bucket_name, key)
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    def put_text(self, key: str, content: str, content_type: str = "application/json") -> None:
        self.put_bytes(key, content.encode("utf-8"), content_type=content_type)

    def list_keys(self, prefix: str) -> list[str]:
        """List every key under prefix, following pagination."""
        keys: list[str] = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix):
            for obj in page.get("Contents", []):
                keys.append(obj["Key"])
        return keys

    def pull(self, remote_prefix: str, local_dir: Path) -> int:
        """Download every object under remote_prefix into local_dir.

        Relative key paths are preserved. Existing local files are overwritten.

        Args:
            remote_prefix: Key prefix to mirror
            local_dir: Destination directory (created if absent)

        Returns:
            Number of files written
        """
        prefix = normalize_prefix(remote_prefix)
        local_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Syncing s3://%s/%s to %s", self.bucket_name, prefix, local_dir)

        keys = self.list_keys(prefix)
        if not keys:
            logger.info("No files found at s3://%s/%s", self.bucket_name, prefix)
            return 0

        written = 0
        for key in keys:
            relative = key[len(prefix) :].lstrip("/")
            # Skip the prefix itself and folder placeholder objects
            if not relative or key.endswith("/"):
                continue
            local_path = local_dir.joinpath(*relative.split("/"))
            local_path.parent.mkdir(parents=True, exist_ok=True)
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
            local_path.write_bytes(response["Body"].read())
            written += 1

        logger.info("Downloaded %d files from s3://%s/%s", written, self.bucket_name, prefix)
        return written

    def push(self, local_dir: Path, remote_prefix: str) -> int:
        """Upload every file under local_dir to remote_prefix.

        A missing local_dir is skipped (first run before anything was written).

        Returns:
            Number of files uploaded
        """
        if not local_dir.exists():
            logger.info("Local directory %s does not exist, skipping sync", local_dir)
            return 0

        prefix = normalize_prefix(remote_prefix)
        logger.info("Syncing %s to s3://%s/%s", local_dir, self.bucket_name, prefix)

        uploaded = 0
        for file_path in sorted(p for p in local_dir.rglob("*") if p.is_file()):
            key = prefix + file_path.relative_to(local_dir).as_posix()
            self.put_bytes(key, file_path.read_bytes())
            uploaded += 1

        logger.info("Uploaded %d files to s3://%s/%s", uploaded, self.bucket_name, prefix)
        return uploaded

    def backup_certificate(
        self, certificate_id: str, paths: CertificatePaths, now: datetime | None = None
    ) -> str:
        """Copy the lineage PEM files to a timestamped backup prefix.

        Returns:
            Backup key prefix (``certificates/<id>/<timestamp>``)
        """
        backup_prefix = (
            f"{BACKUP_PREFIX}/{certificate_id}/{backup_timestamp(now or datetime.now(UTC))}"
        )
        logger.info("Backing up certificate to s3://%s/%s", self.bucket_name, backup_prefix)
        for file_name, file_path in paths.files().items():
            self.put_bytes(
                f"{backup_prefix}/{file_name}",
                file_path.read_bytes(),
                content_type="application/x-pem-file",
            )
        return backup_prefix
