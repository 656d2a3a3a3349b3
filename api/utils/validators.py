"""
Input normalization and media type policy
"""
from pathlib import PurePosixPath
from typing import Any, Optional
from urllib.parse import urlparse

from api.utils.error_handlers import MediaTypeError, ValidationError


# Allowed image types, mapped to the extension the staged file is written with
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
}

ALLOWED_IMAGE_EXTENSIONS = {
    ".jpg": ".jpg",
    ".jpeg": ".jpg",
    ".png": ".png",
}

ALLOWED_URL_SCHEMES = {"http", "https"}


def parse_int(value: Any) -> Optional[int]:
    """Lenient integer parsing: "12", "12.7" and 12.0 all give 12; junk gives None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number)


def clamp_int(value: Any, default: int, lower: int, upper: int) -> int:
    """Coerce value into [lower, upper]; unparseable input falls back to default."""
    number = parse_int(value)
    if number is None:
        number = default
    return min(max(number, lower), upper)


def normalize_dimension(value: Any, default: int, lower: int, upper: int) -> int:
    """Clamp a pixel dimension and round it down to an even number."""
    number = clamp_int(value, default, lower, upper)
    if number % 2:
        number = number - 1 if number - 1 >= lower else number + 1
    return number


def media_type(content_type: Optional[str]) -> str:
    """Strip parameters from a Content-Type header value."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def extension_from_content_type(content_type: Optional[str]) -> Optional[str]:
    return ALLOWED_CONTENT_TYPES.get(media_type(content_type))


def extension_from_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return ALLOWED_IMAGE_EXTENSIONS.get(PurePosixPath(path).suffix.lower())


def extension_from_url(url: str) -> Optional[str]:
    try:
        return extension_from_path(urlparse(url).path)
    except ValueError:
        return None


def resolve_image_extension(content_type: Optional[str], url: str) -> str:
    """
    Decide whether a remote source is an allowed image, and its extension.

    A recognized JPEG/PNG content type wins. Any other image/* type is
    disallowed regardless of the URL. A missing or non-image content type
    defers to the URL path extension.
    """
    declared = media_type(content_type)
    by_type = ALLOWED_CONTENT_TYPES.get(declared)
    if by_type:
        return by_type

    if declared.startswith("image/"):
        raise MediaTypeError(
            f'Disallowed media type: only PNG or JPG images are allowed (got content-type="{declared}")',
            field="url",
        )

    by_ext = extension_from_url(url)
    if by_ext:
        return by_ext

    raise MediaTypeError(
        "Disallowed media type: only PNG or JPG URLs are allowed "
        f'(got content-type="{declared or "unknown"}")',
        field="url",
    )


def validate_upload_filename(filename: Optional[str], field: str = "file") -> str:
    """Uploads are checked by declared filename extension only."""
    ext = extension_from_path(filename or "")
    if not ext:
        raise MediaTypeError("Disallowed media type: only PNG or JPG files are allowed.", field=field)
    return ext


def validate_source_url(url: str, field: str = "url") -> str:
    url = (url or "").strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise ValidationError(f"Invalid URL: {url!r}", field=field)
    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES or not parsed.netloc:
        raise ValidationError("Source URL must be an absolute http(s) URL", field=field)
    return url
