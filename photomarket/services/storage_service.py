import secrets
from urllib.parse import urlsplit

import boto3
import httpx
from botocore.config import Config as BotoConfig
from flask import current_app


def _get_client():
    # A session per call: boto3's default session is not thread-safe and
    # uploads run from the processing thread pool.
    timeout = current_app.config["PHOTO_CALL_TIMEOUT"]
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=current_app.config["S3_ENDPOINT_URL"] or None,
        aws_access_key_id=current_app.config["S3_ACCESS_KEY"],
        aws_secret_access_key=current_app.config["S3_SECRET_KEY"],
        region_name=current_app.config["S3_REGION"],
        config=BotoConfig(
            signature_version="s3v4",
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": 2},
        ),
    )


def random_key(prefix=""):
    """128-bit random object key, optionally under a prefix."""
    return f"{prefix}{secrets.token_hex(16)}.jpg"


def upload(storage_key, data, content_type="image/jpeg", private=True):
    """Upload bytes to S3."""
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    acl = "private" if private else "public-read"

    client.put_object(
        Bucket=bucket,
        Key=storage_key,
        Body=data,
        ContentType=content_type,
        ACL=acl,
    )


def put_image(data, prefix=""):
    """Store a derived JPEG under a fresh random key. Returns its public URL."""
    storage_key = random_key(prefix)
    upload(storage_key, data, content_type="image/jpeg", private=False)
    return get_public_url(storage_key)


def fetch(url, timeout=None):
    """Download a blob by URL.

    Raises:
        httpx.HTTPStatusError on a non-success response
        httpx.TimeoutException when the call exceeds `timeout`
    """
    if timeout is None:
        timeout = current_app.config["PHOTO_CALL_TIMEOUT"]
    resp = httpx.get(url, timeout=timeout, follow_redirects=True)
    resp.raise_for_status()
    return resp.content


def get_public_url(storage_key):
    """Return the public CDN URL for a storage key."""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    return f"{base}/{storage_key}"


def key_from_url(url):
    """Reverse get_public_url(); also accepts path-style bucket URLs."""
    base = current_app.config["S3_PUBLIC_URL"].rstrip("/")
    if base and url.startswith(base + "/"):
        return url[len(base) + 1:]

    path = urlsplit(url).path.lstrip("/")
    bucket = current_app.config["S3_BUCKET_NAME"]
    if path.startswith(bucket + "/"):
        path = path[len(bucket) + 1:]
    if not path:
        raise ValueError(f"Cannot derive storage key from URL: {url}")
    return path


def delete(storage_key):
    """Delete an object from S3."""
    client = _get_client()
    bucket = current_app.config["S3_BUCKET_NAME"]
    client.delete_object(Bucket=bucket, Key=storage_key)


def delete_url(url):
    """Delete the object behind a public URL. Raises on failure."""
    delete(key_from_url(url))
