from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Tuple

from werkzeug.utils import secure_filename

from server.errors import ValidationError
from server.models.thesis import Manuscript

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
PDF_SIGNATURE = b"%PDF"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


def encode_manuscript(
    filename: Optional[str],
    content: bytes,
    content_type: Optional[str] = None,
    *,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> Manuscript:
    """Validate an uploaded PDF and embed it as a base64 data URI."""
    if not content:
        raise ValidationError("The manuscript file is empty")
    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type != PDF_MIME and not content.startswith(PDF_SIGNATURE):
        raise ValidationError("Manuscripts must be submitted in PDF format")
    if len(content) > max_bytes:
        raise ValidationError(
            f"Manuscript must be under {max_bytes // (1024 * 1024)}MB",
            details={"size_bytes": len(content), "max_bytes": max_bytes},
        )
    safe_name = secure_filename(filename or "") or "manuscript.pdf"
    encoded = base64.b64encode(content).decode("ascii")
    logger.debug("Encoded manuscript %s (%s bytes)", safe_name, len(content))
    return Manuscript(file_url=f"data:{PDF_MIME};base64,{encoded}", file_name=safe_name)


def is_data_uri(file_url: Optional[str]) -> bool:
    return bool(file_url) and file_url.startswith("data:")


def is_external(file_url: Optional[str]) -> bool:
    return bool(file_url) and file_url.lower().startswith(("http://", "https://"))


def decode_manuscript(file_url: str) -> Tuple[str, bytes]:
    """Return ``(mime_type, content)`` for a base64 data URI."""
    if not is_data_uri(file_url):
        raise ValidationError("Manuscript reference is not an embedded file")
    header, sep, data = file_url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise ValidationError("Embedded manuscript is not base64 encoded")
    mime_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Embedded manuscript is corrupt") from exc
