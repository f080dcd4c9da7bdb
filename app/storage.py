"""Cloudflare R2 object storage for medical documents and profile pictures"""

import logging
import uuid

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)

# Presigned URL expiration time (1 hour)
PRESIGNED_URL_EXPIRATION = 3600

StorageError = (BotoCoreError, ClientError)


def is_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def build_object_key(prefix: str, owner_id: int, extension: str) -> str:
    """Random object key, e.g. medical-documents/12/<uuid>.pdf"""
    return f"{prefix}/{owner_id}/{uuid.uuid4()}{extension}"


def upload_bytes(key: str, contents: bytes, content_type: str, inline: bool = False) -> str:
    """Store an object privately and return its key"""
    params = {
        "Bucket": R2_BUCKET_NAME,
        "Key": key,
        "Body": contents,
        "ContentType": content_type,
    }
    if inline:
        params["ContentDisposition"] = "inline"

    try:
        get_r2_client().put_object(**params)
    except StorageError as e:
        logger.error(f"❌ Upload failed for key {key}: {e}")
        raise

    logger.info(f"✅ Uploaded {len(contents)} bytes to {key}")
    return key


def generate_presigned_url(
    key: str, expiration: int = PRESIGNED_URL_EXPIRATION, download_name: str = None
) -> str:
    """Generate a presigned URL for accessing a private object in R2."""
    params = {"Bucket": R2_BUCKET_NAME, "Key": key}
    if download_name:
        params["ResponseContentDisposition"] = f'attachment; filename="{download_name}"'

    try:
        url = get_r2_client().generate_presigned_url(
            "get_object",
            Params=params,
            ExpiresIn=expiration,
        )
    except StorageError as e:
        logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
        raise

    logger.info(f"✅ Generated presigned URL for key: {key}")
    return url


def delete_object(key: str) -> None:
    try:
        get_r2_client().delete_object(Bucket=R2_BUCKET_NAME, Key=key)
    except StorageError as e:
        logger.error(f"❌ Failed to delete object {key}: {e}")
        raise
    logger.info(f"🗑️ Deleted object {key}")
