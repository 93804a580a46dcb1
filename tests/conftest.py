from __future__ import annotations

import io
import threading
from typing import Dict, Iterable, List, Optional

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from botocore.response import StreamingBody


def _not_found(key: str) -> ClientError:
    return ClientError({"Error": {"Code": "NoSuchKey", "Message": f"{key} not found"}}, "GetObject")


class BrokenStream(io.RawIOBase):
    """Yields `head` and then fails like a dropped connection."""

    def __init__(self, head: bytes, exc: Optional[BaseException] = None):
        self._head = head
        self._exc = exc or ConnectionResetError("connection reset by peer")

    def readable(self) -> bool:
        return True

    def read(self, amt=-1):
        if self._head:
            out, self._head = self._head, b""
            return out
        raise self._exc


class FakePaginator:
    def __init__(self, client: "FakeStorageClient"):
        self._client = client

    def paginate(self, Bucket: str, Prefix: str = ""):
        self._client.list_calls.append((Bucket, Prefix))
        if self._client.list_error is not None:
            raise self._client.list_error
        keys = [k for k in self._client.objects if k.startswith(Prefix)]
        size = self._client.page_size
        if not keys:
            yield {"KeyCount": 0}
            return
        for i in range(0, len(keys), size):
            yield {"Contents": [{"Key": k} for k in keys[i : i + size]]}


class FakeStorageClient:
    """Just enough of a boto3 S3 client to list and stream objects."""

    def __init__(
        self,
        objects: Dict[str, bytes],
        fail_open: Iterable[str] = (),
        fail_copy: Iterable[str] = (),
        page_size: int = 2,
        list_error: Optional[Exception] = None,
        copy_error: Optional[BaseException] = None,
    ):
        self.objects = dict(objects)
        self.fail_open = set(fail_open)
        self.fail_copy = set(fail_copy)
        self.page_size = page_size
        self.list_error = list_error
        self.copy_error = copy_error
        self.list_calls: List[tuple] = []
        self.opened: List[str] = []
        self._lock = threading.Lock()

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def get_object(self, Bucket: str, Key: str):
        with self._lock:
            self.opened.append(Key)
        if Key in self.fail_open or Key not in self.objects:
            raise _not_found(Key)
        data = self.objects[Key]
        if Key in self.fail_copy:
            return {"Body": StreamingBody(BrokenStream(data[:1], self.copy_error), len(data))}
        return {"Body": StreamingBody(io.BytesIO(data), len(data))}


@pytest.fixture
def objects() -> Dict[str, bytes]:
    return {
        "mydir/a.txt": b"alpha",
        "mydir/sub/b.txt": b"bravo",
        "mydir2/c.txt": b"charlie",
        "other/d.bin": b"\x00\x01\x02",
    }


@pytest.fixture
def client(objects) -> FakeStorageClient:
    return FakeStorageClient(objects)


@pytest.fixture
def unreachable() -> EndpointConnectionError:
    return EndpointConnectionError(endpoint_url="https://storage.googleapis.com")
