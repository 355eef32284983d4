"""
Event image uploads to S3.

Images arrive from the client as base64 data URLs.
"""
import base64
import binascii
import logging
import re
import time
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import config
from .errors import UploadFailed

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)
_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}


class ImageStorage:

    def __init__(self, bucket: str = config.IMAGE_BUCKET, region: str = config.AWS_REGION, s3=None):
        self.bucket = bucket
        self.region = region
        self.s3 = s3 or boto3.client("s3", region_name=region)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def upload_data_url(self, data_url: str, filename: Optional[str] = None) -> str:
        """Store the image and return its URL. Raises ``UploadFailed``."""
        match = _DATA_URL.match(data_url or "")
        if not match or match.group("mime") not in _EXTENSIONS:
            raise UploadFailed("Unsupported image format")
        try:
            body = base64.b64decode(match.group("data"), validate=True)
        except (binascii.Error, ValueError):
            raise UploadFailed("Image data is not valid base64")

        mime = match.group("mime")
        stem = re.sub(r"[^a-zA-Z0-9_.-]", "_", filename or "image").rsplit(".", 1)[0]
        key = f"events/{int(time.time() * 1000)}_{stem}{_EXTENSIONS[mime]}"
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=mime)
        except (ClientError, BotoCoreError) as e:
            logger.warning("Image upload to s3://%s/%s failed: %s", self.bucket, key, e)
            raise UploadFailed()
        logger.info("Uploaded image s3://%s/%s", self.bucket, key)
        return self.public_url(key)
