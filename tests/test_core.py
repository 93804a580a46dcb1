from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from gcs_cp.core import get_gcs_client, list_objects, normalize_prefix
from gcs_cp.errors import EmptyResultError, ListingError

from conftest import FakeStorageClient


@pytest.mark.parametrize(
    "prefix, expected",
    [
        ("", ""),
        ("mydir", "mydir/"),
        ("mydir/", "mydir/"),
        ("a/b/c", "a/b/c/"),
        ("mydir/file.txt", "mydir/file.txt"),
        ("dir.v1/sub", "dir.v1/sub/"),
        ("logs/2024-01-01.", "logs/2024-01-01."),
    ],
)
def test_normalize_prefix(prefix, expected):
    assert normalize_prefix(prefix) == expected


class TestListObjects:
    def test_directory_prefix_excludes_siblings(self):
        client = FakeStorageClient({"mydir/a.txt": b"a", "mydir2/b.txt": b"b"})
        assert list_objects(client, "bkt", "mydir") == ["mydir/a.txt"]
        assert client.list_calls == [("bkt", "mydir/")]

    def test_keeps_enumeration_order_across_pages(self, client):
        keys = list_objects(client, "bkt", "", uri="gs://bkt")
        assert keys == ["mydir/a.txt", "mydir/sub/b.txt", "mydir2/c.txt", "other/d.bin"]

    def test_explicit_file_key(self, client):
        assert list_objects(client, "bkt", "mydir/a.txt") == ["mydir/a.txt"]

    def test_zero_matches_is_an_error(self, client):
        with pytest.raises(EmptyResultError, match="gs://bkt/nothing"):
            list_objects(client, "bkt", "nothing", uri="gs://bkt/nothing")

    def test_backend_error(self):
        err = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListObjectsV2")
        client = FakeStorageClient({}, list_error=err)
        with pytest.raises(ListingError, match="AccessDenied") as exc:
            list_objects(client, "bkt", "x")
        assert exc.value.__cause__ is err

    def test_connection_error(self, unreachable):
        client = FakeStorageClient({}, list_error=unreachable)
        with pytest.raises(ListingError):
            list_objects(client, "bkt")

    def test_timeout(self, client):
        with pytest.raises(ListingError, match="exceeded") as exc:
            list_objects(client, "bkt", "mydir", timeout=0)
        assert isinstance(exc.value.__cause__, TimeoutError)


def test_get_gcs_client_targets_gcs_without_retries():
    s3 = get_gcs_client(aws_access_key_id="GOOGTEST", aws_secret_access_key="secret")
    assert s3.meta.endpoint_url == "https://storage.googleapis.com"
    assert s3.meta.config.retries["total_max_attempts"] == 1
    assert s3.meta.config.read_timeout == 60
