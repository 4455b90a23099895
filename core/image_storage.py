# core/image_storage.py
"""
Image storage on the Supabase Storage REST API

Equipment photos and kanban card images are uploaded to public buckets; the
public URL is what gets persisted on the entity. Deletion is best effort:
a failed delete is logged and never blocks deleting the owning entity.
"""

import logging
import time
from typing import Optional
from urllib.parse import urlparse, unquote

import requests
from flask import current_app
from werkzeug.utils import secure_filename

from core.errors import ApiError

logger = logging.getLogger(__name__)


class ImageStorage:
    """Supabase Storage client for a set of public buckets"""

    def __init__(self, base_url: str, service_key: str, timeout: float = 30, http=None):
        self.base_url = base_url.rstrip('/')
        self.service_key = service_key
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config) -> 'ImageStorage':
        base_url = config.get('SUPABASE_URL')
        service_key = config.get('SUPABASE_SERVICE_KEY')
        if not base_url or not service_key:
            raise ApiError('Image storage is not configured')
        return cls(base_url, service_key, timeout=config.get('HTTP_TIMEOUT', 30))

    def _headers(self, **extra) -> dict:
        headers = {
            'Authorization': f"Bearer {self.service_key}",
            'apikey': self.service_key,
        }
        headers.update(extra)
        return headers

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    def extract_path(self, bucket: str, url: Optional[str]) -> Optional[str]:
        """
        Object path inside `bucket` for one of our public URLs, else None

        Public URLs look like <base>/storage/v1/object/public/<bucket>/<path>.
        """
        if not url:
            return None
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        parts = parsed.path.split('/')
        if 'public' not in parts:
            return None
        index = parts.index('public')
        if index >= len(parts) - 2 or parts[index + 1] != bucket:
            return None
        return unquote('/'.join(parts[index + 2:])) or None

    def upload(self, bucket: str, name: str, data: bytes, content_type: str = 'image/jpeg',
               upsert: bool = False) -> str:
        """Upload bytes and return the public URL"""
        path = name
        try:
            response = self.http.post(
                f"{self.base_url}/storage/v1/object/{bucket}/{path}",
                data=data,
                headers=self._headers(**{
                    'Content-Type': content_type,
                    'x-upsert': 'true' if upsert else 'false',
                }),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Image upload to {bucket} failed: {e}")
            raise ApiError('Failed to upload image') from e

        if not response.ok:
            logger.error(f"Image upload to {bucket} rejected ({response.status_code}): {response.text}")
            raise ApiError('Failed to upload image')

        logger.debug(f"Uploaded image {bucket}/{path}")
        return self.public_url(bucket, path)

    def delete(self, bucket: str, url: Optional[str]) -> bool:
        """Delete the object behind a public URL; foreign URLs are skipped"""
        path = self.extract_path(bucket, url)
        if not path:
            logger.debug(f"Image URL is not in bucket {bucket}, skipping deletion")
            return False
        try:
            response = self.http.delete(
                f"{self.base_url}/storage/v1/object/{bucket}",
                json={'prefixes': [path]},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error deleting image {bucket}/{path}: {e}")
            return False

        if not response.ok:
            logger.error(f"Failed to delete image {bucket}/{path} ({response.status_code}): {response.text}")
            return False

        logger.debug(f"Deleted image {bucket}/{path}")
        return True


def object_name(prefix: str, filename: Optional[str] = None, extension: str = 'jpg') -> str:
    """<prefix>-<epoch ms>-<filename> naming used for uploaded images"""
    stamp = int(time.time() * 1000)
    safe_name = secure_filename(filename or '')
    if safe_name:
        return f"{prefix}-{stamp}-{safe_name}"
    return f"{prefix}-{stamp}.{extension}"


def get_image_storage() -> ImageStorage:
    """Storage client for the current app; tests may inject one in app.extensions"""
    injected = current_app.extensions.get('image_storage')
    if injected is not None:
        return injected
    return ImageStorage.from_config(current_app.config)


def delete_stored_image(bucket: str, url: Optional[str]) -> bool:
    """Best-effort delete used when the owning entity goes away"""
    try:
        storage = get_image_storage()
    except ApiError as e:
        logger.warning(f"Cannot delete image {url}: {e.message}")
        return False
    return storage.delete(bucket, url)
