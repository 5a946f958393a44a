"""Object storage access for transcript videos (S3-compatible API, GCS interoperability by default)"""
import logging
from typing import Tuple
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from transcript_annotator.config import settings

logger = logging.getLogger(__name__)

PUBLIC_HOSTS = ("storage.googleapis.com", "storage.cloud.google.com")


def get_storage_client():
    """Create and return an S3-compatible client"""
    return boto3.client(
        's3',
        endpoint_url=settings.STORAGE_ENDPOINT_URL or None,
        aws_access_key_id=settings.STORAGE_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY or None,
        region_name=settings.STORAGE_REGION,
        config=Config(signature_version='s3v4'),
    )


def parse_storage_path(path: str) -> Tuple[str, str]:
    """
    Split a stored video path into bucket and key.

    Accepts gs://bucket/key, s3://bucket/key,
    https://storage.googleapis.com/bucket/key, and a bare key when
    STORAGE_BUCKET is configured.

    Raises:
        ValueError: for any other format or a missing bucket/key.
    """
    if not path or not path.strip():
        raise ValueError("Storage path is required.")

    trimmed = path.strip()
    for scheme in ('gs://', 's3://'):
        if trimmed.startswith(scheme):
            bucket, _, key = trimmed[len(scheme):].partition('/')
            if not bucket or not key:
                raise ValueError(f"Invalid storage URI: {path}")
            return bucket, key

    if trimmed.startswith('https://'):
        parsed = urlparse(trimmed)
        if parsed.hostname in PUBLIC_HOSTS:
            bucket, _, key = parsed.path.lstrip('/').partition('/')
            if bucket and key:
                return bucket, key
            raise ValueError(f"Invalid storage URL: {path}")

    # Bare object key inside the configured bucket
    if settings.STORAGE_BUCKET and '://' not in trimmed and trimmed.lstrip('/'):
        return settings.STORAGE_BUCKET, trimmed.lstrip('/')

    raise ValueError(f"Unsupported storage path format: {path}")


def build_public_url(bucket: str, key: str) -> str:
    return f"https://storage.googleapis.com/{bucket}/{key}"


def generate_signed_url(bucket: str, key: str, expiration: int = 3600) -> str:
    """
    Generate a presigned GET URL for temporary access to an object

    Args:
        bucket: Bucket name
        key: Object key (path)
        expiration: URL expiration time in seconds (default: 1 hour)
    """
    client = get_storage_client()
    return client.generate_presigned_url(
        'get_object',
        Params={'Bucket': bucket, 'Key': key},
        ExpiresIn=expiration,
    )


def resolve_video_url(path: str) -> str:
    """Signed URL for a stored video, falling back to the public URL when signing fails."""
    bucket, key = parse_storage_path(path)
    try:
        return generate_signed_url(bucket, key, settings.VIDEO_URL_EXPIRATION_SECONDS)
    except (ClientError, BotoCoreError) as e:
        logger.warning("Failed to generate signed video URL for %s: %s", path, e)
        return build_public_url(bucket, key)
