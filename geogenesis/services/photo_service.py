"""Photo storage, payload decoding and EXIF GPS extraction."""

import base64
import binascii
import io
import logging
import uuid
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS

logger = logging.getLogger(__name__)

PHOTO_URL_PREFIX = "/api/photos/"

_MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "HEIF": "image/heic",
    "GIF": "image/gif",
}
_EXT_BY_MIME = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/heic": ".heic",
    "image/gif": ".gif",
}


def decode_image_payload(payload: str | bytes) -> bytes:
    """Raw bytes from either bytes, base64 text or a data URL ("data:image/jpeg;base64,...")."""
    if isinstance(payload, bytes):
        return payload
    data = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError("Image payload is not valid base64") from e


def detect_mime_type(image_bytes: bytes) -> str:
    """MIME type from image contents. Unknown formats fall back to JPEG."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            return _MIME_BY_FORMAT.get(img.format or "", "image/jpeg")
    except (UnidentifiedImageError, OSError):
        return "image/jpeg"


def extract_gps_from_exif(image_bytes: bytes) -> tuple[float | None, float | None]:
    """Extract GPS lat/lon from image EXIF data."""
    try:
        img = Image.open(io.BytesIO(image_bytes))
        exif = img.getexif()
    except (UnidentifiedImageError, OSError):
        return None, None
    if not exif:
        return None, None

    gps_ifd = exif.get_ifd(0x8825)  # GPSInfo
    gps_info = {GPSTAGS.get(tag_id, tag_id): value for tag_id, value in gps_ifd.items()}
    if "GPSLatitude" not in gps_info or "GPSLongitude" not in gps_info:
        return None, None

    def to_degrees(value):
        d, m, s = value
        return float(d) + float(m) / 60 + float(s) / 3600

    try:
        lat = to_degrees(gps_info["GPSLatitude"])
        lon = to_degrees(gps_info["GPSLongitude"])
    except (TypeError, ValueError, ZeroDivisionError):
        logger.debug("Unreadable GPS EXIF values: %s", gps_info)
        return None, None

    if gps_info.get("GPSLatitudeRef", "N") == "S":
        lat = -lat
    if gps_info.get("GPSLongitudeRef", "E") == "W":
        lon = -lon
    return lat, lon


class PhotoStore:
    """Photos on disk under one directory, referenced as /api/photos/<name>."""

    def __init__(self, storage_path: str | Path):
        self.root = Path(storage_path)

    def save(self, image_bytes: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        ext = _EXT_BY_MIME.get(detect_mime_type(image_bytes), ".jpg")
        name = f"{uuid.uuid4().hex}{ext}"
        (self.root / name).write_bytes(image_bytes)
        return PHOTO_URL_PREFIX + name

    def path_for(self, name: str) -> Path | None:
        # reject anything that is not a plain file name in our directory
        if not name or Path(name).name != name:
            return None
        path = self.root / name
        return path if path.is_file() else None

    def delete(self, image_url: str) -> bool:
        if not image_url.startswith(PHOTO_URL_PREFIX):
            return False
        path = self.path_for(image_url[len(PHOTO_URL_PREFIX):])
        if path is None:
            return False
        path.unlink()
        return True
