"""Tests for S3 client module."""

from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from acme_renewal.lib.errors import NotFoundError
from acme_renewal.lib.models import CertificatePaths
from acme_renewal.lib.s3_client import S3Client, backup_timestamp, normalize_prefix
from acme_renewal.tests.helpers import (
    TEST_BUCKET,
    FakeS3Client,
    make_certificate_pem,
    write_lineage,
)


class TestHelpers:
    """Tests for module helpers."""

    @pytest.mark.parametrize(
        ("prefix", "expected"),
        [
            ("certbot/config", "certbot/config/"),
            ("certbot/config/", "certbot/config/"),
            ("/certbot/config//", "certbot/config/"),
            ("", ""),
        ],
    )
    def test_normalize_prefix(self, prefix: str, expected: str) -> None:
        """Should leave exactly one trailing slash."""
        assert normalize_prefix(prefix) == expected

    def test_backup_timestamp_is_key_safe(self) -> None:
        """Should replace colons and dots in the ISO timestamp."""
        now = datetime(2026, 10, 18, 9, 30, 0, 123456, tzinfo=UTC)

        assert backup_timestamp(now) == "2026-10-18T09-30-00-123Z"


class TestFetchText:
    """Tests for object reads."""

    @pytest.fixture
    def mock_boto3(self) -> Generator[MagicMock]:
        """Mock boto3 for S3."""
        with patch("acme_renewal.lib.s3_client.boto3") as mock:
            yield mock

    def test_returns_decoded_body(self, mock_boto3: MagicMock) -> None:
        """Should return object body as text."""
        mock_s3 = MagicMock()
        mock_body = MagicMock()
        mock_body.read.return_value = b'{"version": "1.0"}'
        mock_s3.get_object.return_value = {"Body": mock_body}
        mock_boto3.client.return_value = mock_s3

        client = S3Client(TEST_BUCKET)
        result = client.fetch_text("config/domains.json")

        assert result == '{"version": "1.0"}'
        mock_s3.get_object.assert_called_once_with(Bucket=TEST_BUCKET, Key="config/domains.json")

    def test_missing_key_raises_not_found(self, s3_client: S3Client) -> None:
        """Should raise NotFoundError for a missing key."""
        with pytest.raises(NotFoundError):
            s3_client.fetch_text("config/domains.json")

    def test_other_errors_propagate(self, mock_boto3: MagicMock) -> None:
        """Should re-raise ClientError that is not a missing key."""
        mock_s3 = MagicMock()
        mock_s3.get_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "GetObject"
        )
        mock_boto3.client.return_value = mock_s3

        client = S3Client(TEST_BUCKET)

        with pytest.raises(ClientError):
            client.fetch_text("config/domains.json")


class TestSync:
    """Tests for pull and push of the certbot tree."""

    def test_push_then_pull_is_byte_identical(
        self, s3_client: S3Client, fake_s3: FakeS3Client, tmp_path: Path
    ) -> None:
        """Should reproduce the same tree after a round trip."""
        source = tmp_path / "source"
        files = {
            "accounts/acme.example/directory/abc/regr.json": b'{"body": {}}',
            "accounts/acme.example/directory/abc/private_key.json": b"\x00\x01secret",
            "live/example.com/cert.pem": b"cert",
            "renewal/example.com.conf": b"version = 2.9\n",
            "renewal-hooks/deploy/.keep": b"",
        }
        for relative, data in files.items():
            path = source / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        uploaded = s3_client.push(source, "certbot/config")
        target = tmp_path / "target"
        downloaded = s3_client.pull("certbot/config/", target)

        assert uploaded == len(files)
        assert downloaded == len(files)
        assert sorted(fake_s3.objects) == sorted(f"certbot/config/{k}" for k in files)
        for relative, data in files.items():
            assert (target / relative).read_bytes() == data

    def test_pull_empty_prefix_is_noop(self, s3_client: S3Client, tmp_path: Path) -> None:
        """Should create the directory and write nothing."""
        local_dir = tmp_path / "config"

        assert s3_client.pull("certbot/config", local_dir) == 0
        assert local_dir.is_dir()
        assert list(local_dir.iterdir()) == []

    def test_pull_skips_folder_placeholders(
        self, s3_client: S3Client, fake_s3: FakeS3Client, tmp_path: Path
    ) -> None:
        """Should not create files for keys ending in a slash."""
        fake_s3.objects["certbot/config/"] = b""
        fake_s3.objects["certbot/config/live/"] = b""
        fake_s3.objects["certbot/config/live/README"] = b"readme"

        written = s3_client.pull("certbot/config", tmp_path)

        assert written == 1
        assert (tmp_path / "live" / "README").read_bytes() == b"readme"

    def test_pull_overwrites_existing_files(
        self, s3_client: S3Client, fake_s3: FakeS3Client, tmp_path: Path
    ) -> None:
        """Should replace stale local content."""
        (tmp_path / "renewal").mkdir()
        (tmp_path / "renewal" / "a.conf").write_bytes(b"stale")
        fake_s3.objects["certbot/config/renewal/a.conf"] = b"fresh"

        s3_client.pull("certbot/config", tmp_path)

        assert (tmp_path / "renewal" / "a.conf").read_bytes() == b"fresh"

    def test_push_missing_dir_is_skipped(self, s3_client: S3Client, tmp_path: Path) -> None:
        """Should upload nothing when the local tree was never created."""
        assert s3_client.push(tmp_path / "missing", "certbot/config") == 0


class TestBackupCertificate:
    """Tests for certificate backups."""

    def test_writes_four_files_under_timestamped_prefix(
        self, s3_client: S3Client, fake_s3: FakeS3Client, tmp_path: Path
    ) -> None:
        """Should copy each PEM file with the PEM content type."""
        lineage_dir = tmp_path / "live" / "example.com"
        write_lineage(lineage_dir, make_certificate_pem(["example.com"]))
        paths = CertificatePaths.from_lineage_dir(lineage_dir)
        now = datetime(2026, 10, 18, 9, 30, 0, tzinfo=UTC)

        prefix = s3_client.backup_certificate("example-com", paths, now=now)

        assert prefix == "certificates/example-com/2026-10-18T09-30-00-000Z"
        assert sorted(fake_s3.objects) == [
            f"{prefix}/cert.pem",
            f"{prefix}/chain.pem",
            f"{prefix}/fullchain.pem",
            f"{prefix}/privkey.pem",
        ]
        assert fake_s3.objects[f"{prefix}/cert.pem"] == paths.cert_path.read_bytes()
        assert fake_s3.content_types[f"{prefix}/privkey.pem"] == "application/x-pem-file"
