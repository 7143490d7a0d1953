import hashlib
import logging
import mimetypes
import posixpath
import secrets
import time
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

import boto3
import requests
from django.conf import settings

from apps.content.constants import DEFAULT_IMAGE_EXTENSION, IMAGE_DOWNLOAD_TIMEOUT, S3_KEY_PREFIX
from apps.content.exceptions import ConfigurationError, NetworkError

logger = logging.getLogger(__name__)


class ImageStore:
    """
    Copies question images into the S3 bucket.

    Build it explicitly and close it when done, usually with::

        with ImageStore.from_settings() as store:
            store.upload_image(url)
    """

    def __init__(self, client: Any, bucket_name: str | None, region: str | None, acl: str | None = None) -> None:
        if not bucket_name:
            raise ConfigurationError("S3 bucket is not configured. Please set S3_BUCKET_NAME in your .env file")
        self.client = client
        self.bucket_name = bucket_name
        self.region = region
        self.acl = acl

    @classmethod
    def from_settings(cls) -> 'ImageStore':
        client = boto3.client(
            's3',
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        )
        return cls(client, settings.S3_BUCKET_NAME, settings.AWS_REGION, acl=settings.S3_OBJECT_ACL)

    def __enter__(self) -> 'ImageStore':
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    @property
    def base_url(self) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/"

    def public_url(self, key: str) -> str:
        return f"{self.base_url}{key}"

    def is_stored_url(self, url: str) -> bool:
        return url.startswith(self.base_url)

    @staticmethod
    def extract_key(s3_url: str) -> str:
        return urlparse(s3_url).path.lstrip('/')

    @staticmethod
    def generate_image_key(image_url: str) -> str:
        """Random, collision-free key; the same URL uploaded twice gets two keys."""
        salt = f"{time.time_ns()}-{secrets.token_hex(8)}"
        digest = hashlib.sha256(f"{image_url}-{salt}".encode('utf-8')).hexdigest()

        extension = posixpath.splitext(urlparse(image_url).path)[1].lstrip('.').lower()
        return f"{S3_KEY_PREFIX}{digest}.{extension or DEFAULT_IMAGE_EXTENSION}"

    def download_image(self, image_url: str) -> tuple[bytes, str]:
        try:
            response = requests.get(image_url, timeout=IMAGE_DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"Failed to download image from {image_url}: {exc}") from exc

        content_type = response.headers.get('Content-Type', '').split(';')[0].strip()
        if not content_type.startswith('image/'):
            content_type = mimetypes.guess_type(urlparse(image_url).path)[0] or 'image/jpeg'
        return response.content, content_type

    def upload_image(self, image_url: str) -> str:
        if not image_url:
            raise ValueError('No image URL provided')

        logger.info("Downloading image from %s", image_url)
        body, content_type = self.download_image(image_url)

        key = self.generate_image_key(image_url)
        params = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': body,
            'ContentType': content_type,
        }
        if self.acl:
            params['ACL'] = self.acl

        self.client.put_object(**params)
        s3_url = self.public_url(key)
        logger.info("Image uploaded to %s", s3_url)
        return s3_url

    def delete_image(self, key: str) -> None:
        if not key:
            return
        logger.info("Deleting image %s from S3", key)
        self.client.delete_object(Bucket=self.bucket_name, Key=key)
