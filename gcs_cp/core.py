from __future__ import annotations
from typing import Optional, List
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ListingError, EmptyResultError, get_logger
from .utils import Deadline

GCS_ENDPOINT = "https://storage.googleapis.com"
LIST_TIMEOUT = 30

log = get_logger(__name__)


def get_gcs_client(
    aws_profile: Optional[str] = None,
    aws_access_key_id: Optional[str] = None,
    aws_secret_access_key: Optional[str] = None,
    region_name: Optional[str] = "auto",
    endpoint_url: Optional[str] = GCS_ENDPOINT,
    connect_timeout: int = 10,
    read_timeout: int = 60,
):
    """
    Create a boto3 client against the Cloud Storage XML (interoperability) API.
    Credentials are resolved by boto3 itself (env, shared files, profile); no retries.
    """
    cfg = Config(
        retries={"total_max_attempts": 1, "mode": "standard"},
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
    )
    if aws_profile:
        session = boto3.Session(profile_name=aws_profile, region_name=region_name)
    else:
        session = boto3.Session(
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region_name,
        )
    return session.client("s3", endpoint_url=endpoint_url, config=cfg)


def normalize_prefix(prefix: str) -> str:
    """
    Turn a directory-like prefix ("mydir") into "mydir/" so it only matches children,
    leaving explicit file keys ("mydir/file.txt") untouched.
    """
    if not prefix or prefix.endswith("/"):
        return prefix
    last = prefix.rsplit("/", 1)[-1]
    if "." in last:
        return prefix
    return prefix + "/"


def list_objects(
    s3_client,
    bucket: str,
    prefix: str = "",
    uri: Optional[str] = None,
    timeout: float = LIST_TIMEOUT,
) -> List[str]:
    """
    Return every key under the normalized prefix, in enumeration order.
    An empty result is an error, not an empty list.

    The `timeout` budget is checked between pages; a single stalled page
    request is bounded by the client's own read_timeout instead.
    """
    query = normalize_prefix(prefix)
    deadline = Deadline(timeout)
    keys: List[str] = []
    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=query):
            deadline.check(f"listing gs://{bucket}/{query}")
            for obj in page.get("Contents", []) or []:
                key = obj.get("Key")
                if key:
                    keys.append(key)
    except (ClientError, BotoCoreError, TimeoutError) as e:
        raise ListingError(f"listing gs://{bucket}/{query} failed: {e}") from e

    log.debug("Listed %d objects under gs://%s/%s", len(keys), bucket, query)
    if not keys:
        raise EmptyResultError(f"no URLs matched: {uri or f'gs://{bucket}/{prefix}'}")
    return keys
