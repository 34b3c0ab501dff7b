"""
Video — static constants and enum types.
"""
import enum


class AspectClass(str, enum.Enum):
    """Orientation bucket; the value doubles as the storage key prefix."""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


# Inclusive ratio bands. Wide enough to absorb encoder rounding around
# 16:9 (1.777...) and 9:16 (0.5625).
LANDSCAPE_RATIO_RANGE: tuple[float, float] = (1.70, 1.80)
PORTRAIT_RATIO_RANGE: tuple[float, float] = (0.55, 0.58)

VIDEO_CONTENT_TYPE = "video/mp4"
VIDEO_FORM_FIELD = "video"
VIDEO_KEY_EXTENSION = ".mp4"

# Bytes of randomness in a storage key (43 chars of unpadded URL-safe base64)
STORAGE_KEY_RANDOM_BYTES = 32

# Locator persisted on the record: "<bucket>,<key>"
LOCATOR_SEPARATOR = ","

# Signed GET URL lifetime
VIDEO_URL_EXPIRY_SECONDS = 3600

THUMBNAIL_FORM_FIELD = "thumbnail"
THUMBNAIL_EXTENSIONS: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
}

# Allowance on top of the file ceiling for multipart boundaries and part headers
MULTIPART_ENVELOPE_BYTES = 64 * 1024
