"""
core.capture.image_capture

Turns a user-selected screenshot into what the rest of the system needs:

  - `payload`: base64 of the raw file bytes (no data-URL header), sent to
    the analysis collaborator
  - `preview`: a `data:<mime>;base64,...` URL kept on the transcript
    message so a presentation layer can render the upload

No analysis logic lives here.
"""

from __future__ import annotations

import base64
import binascii
import io
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from exceptions.exceptions import UnreadableFileError


DEFAULT_MIME = "image/png"

# Leading bytes of the formats screenshots usually come in.
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


@dataclass(frozen=True)
class CapturedImage:
    payload: str
    mime_type: str
    preview: str
    filename: Optional[str] = None


def capture_image(path: Union[str, Path]) -> CapturedImage:
    """Read an image file from disk and encode it for transport."""
    path = Path(path)
    if not path.is_file():
        raise UnreadableFileError(str(path), "File not found.")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise UnreadableFileError(str(path), str(exc)) from exc
    return capture_bytes(data, filename=path.name)


def capture_bytes(data: bytes, filename: Optional[str] = None) -> CapturedImage:
    """Validate raw image bytes and encode them for transport.

    If a filename is given, its guessed MIME type must be an image type.
    The content itself must be decodable by Pillow; the MIME type reported
    is the one detected from the content.
    """
    source = filename or "<upload>"

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed is not None and not guessed.startswith("image/"):
            raise UnreadableFileError(source, f"Not an image file (detected type {guessed}).")

    if not data:
        raise UnreadableFileError(source, "File is empty.")

    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise UnreadableFileError(source, f"Pillow could not decode the image: {exc}") from exc

    mime_type = Image.MIME.get(fmt or "", DEFAULT_MIME)
    payload = base64.b64encode(data).decode("ascii")
    return CapturedImage(
        payload=payload,
        mime_type=mime_type,
        preview=f"data:{mime_type};base64,{payload}",
        filename=filename,
    )


def capture_base64(payload: str, filename: Optional[str] = None) -> CapturedImage:
    """Validate an already-encoded payload (e.g. from an HTTP body)."""
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UnreadableFileError(filename or "<upload>", f"Invalid base64 payload: {exc}") from exc
    return capture_bytes(data, filename=filename)


def sniff_image_mime(payload: str) -> str:
    """Return the MIME type of a base64 image payload from its magic bytes."""
    try:
        head = base64.b64decode(payload[:32] + "=" * (-len(payload[:32]) % 4))
    except (binascii.Error, ValueError):
        return DEFAULT_MIME
    for signature, mime in _SIGNATURES:
        if head.startswith(signature):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MIME
