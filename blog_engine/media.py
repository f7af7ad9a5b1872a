"""
Image storage collaborator for django-blog-engine.

Posts only keep the URL and public id returned by a backend. The default
backend writes to Django's ``default_storage``; projects using a hosted
media service point ``BLOG_ENGINE['MEDIA_BACKEND']`` at their own
subclass of ``BaseMediaBackend``.
"""
import hashlib
import io
import logging
import os
from urllib.parse import urlparse

import requests
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils.module_loading import import_string
from PIL import Image, UnidentifiedImageError

from .conf import blog_settings
from .exceptions import MediaServiceError, ValidationFailed

logger = logging.getLogger(__name__)

FETCH_CHUNK_SIZE = 64 * 1024


class BaseMediaBackend:
    """
    Interface for image storage.

    ``upload`` and ``upload_from_url`` return a dict with
    ``url, publicId, width, height, format, size``.
    """

    def upload(self, file_obj, field="image"):
        raise NotImplementedError

    def upload_from_url(self, url, field="imageUrl"):
        raise NotImplementedError

    def delete(self, public_id):
        """Remove the stored object. Returns True if something was deleted."""
        raise NotImplementedError


class StorageMediaBackend(BaseMediaBackend):
    """Store images through a Django storage under ``MEDIA_FOLDER``."""

    def __init__(self, storage=None):
        self.storage = storage or default_storage

    def upload(self, file_obj, field="image"):
        content_type = getattr(file_obj, "content_type", "") or ""
        if content_type and content_type not in blog_settings.ALLOWED_IMAGE_TYPES:
            raise ValidationFailed([{"field": field, "message": "Only image files are allowed"}])

        data = file_obj.read()
        return self._store(data, getattr(file_obj, "name", "") or "image", field)

    def upload_from_url(self, url, field="imageUrl"):
        try:
            response = requests.get(url, timeout=blog_settings.MEDIA_FETCH_TIMEOUT, stream=True)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to fetch image from %s: %s", url, exc)
            raise MediaServiceError("Failed to fetch image") from exc

        try:
            content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
            if content_type and content_type not in blog_settings.ALLOWED_IMAGE_TYPES:
                raise ValidationFailed([{"field": field, "message": "URL does not point to a supported image"}])

            declared = response.headers.get("Content-Length", "")
            if declared.isdigit() and int(declared) > blog_settings.MEDIA_MAX_SIZE_BYTES:
                raise size_error(field)
            data = self._read_capped(response, url, field)
        finally:
            response.close()

        filename = os.path.basename(urlparse(url).path) or "image"
        return self._store(data, filename, field)

    def delete(self, public_id):
        if not is_managed(public_id) or not self.storage.exists(public_id):
            return False
        self.storage.delete(public_id)
        return True

    def _read_capped(self, response, url, field):
        """Read the body in chunks, giving up once it passes the size limit."""
        limit = blog_settings.MEDIA_MAX_SIZE_BYTES
        chunks = []
        received = 0
        try:
            for chunk in response.iter_content(chunk_size=FETCH_CHUNK_SIZE):
                received += len(chunk)
                if received > limit:
                    raise size_error(field)
                chunks.append(chunk)
        except requests.RequestException as exc:
            logger.error("Failed to read image from %s: %s", url, exc)
            raise MediaServiceError("Failed to fetch image") from exc
        return b"".join(chunks)

    def _store(self, data, filename, field):
        if not data:
            raise ValidationFailed([{"field": field, "message": "Image file is empty"}])
        if len(data) > blog_settings.MEDIA_MAX_SIZE_BYTES:
            raise size_error(field)

        width, height, image_format = inspect_image(data, field)
        digest = hashlib.sha256(data).hexdigest()
        extension = image_format.lower()
        name = f"{blog_settings.MEDIA_FOLDER}/{digest[:32]}.{extension}"

        if not self.storage.exists(name):
            name = self.storage.save(name, ContentFile(data))
        logger.debug("Stored image %s as %s", filename, name)

        return {
            "url": self.storage.url(name),
            "publicId": name,
            "width": width,
            "height": height,
            "format": extension,
            "size": len(data),
        }


def inspect_image(data, field="image"):
    """Return (width, height, format) or raise if ``data`` is not an image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            width, height = img.size
            image_format = img.format or ""
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationFailed([{"field": field, "message": "File is not a valid image"}]) from None
    if image_format.upper() not in {"JPEG", "PNG", "GIF", "WEBP"}:
        raise ValidationFailed([{"field": field, "message": "Unsupported image format"}])
    return width, height, image_format


def get_media_backend():
    """Instantiate the backend named by ``MEDIA_BACKEND``."""
    return import_string(blog_settings.MEDIA_BACKEND)()


def is_managed(public_id):
    """True if ``public_id`` names a file inside ``MEDIA_FOLDER``."""
    return public_id.startswith(f"{blog_settings.MEDIA_FOLDER}/") and ".." not in public_id


def size_error(field):
    return ValidationFailed([{
        "field": field,
        "message": f"Image exceeds {blog_settings.MEDIA_MAX_SIZE_MB}MB limit",
    }])
