"""
Photo pipeline for quote pictures.

The browser either captures a frame from the camera or falls back to a file picker;
both arrive here as an upload or a data URL. The pipeline:

1. decodes the image and applies its EXIF orientation,
2. rotates by a multiple of 90 degrees,
3. crops to a rectangle given as fractions of the image (0..1),
4. downscales so the longest edge fits `max_edge`,
5. re-encodes as JPEG and returns a data URL.

Attachments (PDFs, spreadsheets...) are not processed, only base64-encoded with
their name and MIME type.
"""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ValidationError

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class CropBox:
    """Crop rectangle as fractions of width/height."""

    left: float = 0.0
    top: float = 0.0
    right: float = 1.0
    bottom: float = 1.0

    @classmethod
    def parse(cls, left=None, top=None, right=None, bottom=None) -> Optional["CropBox"]:
        """Build from form strings. Returns None when no crop was requested."""
        raw = (left, top, right, bottom)
        if all(v in (None, "") for v in raw):
            return None
        try:
            values = [float(v) if v not in (None, "") else d for v, d in zip(raw, (0.0, 0.0, 1.0, 1.0))]
        except (TypeError, ValueError) as exc:
            raise ValidationError("Recorte inválido.") from exc
        box = cls(*values)
        box.validate()
        return box

    def validate(self) -> None:
        for value in (self.left, self.top, self.right, self.bottom):
            if not 0.0 <= value <= 1.0:
                raise ValidationError("Recorte fora da imagem.")
        if self.right <= self.left or self.bottom <= self.top:
            raise ValidationError("Recorte vazio.")

    def to_pixels(self, width: int, height: int) -> tuple[int, int, int, int]:
        box = (
            int(round(self.left * width)),
            int(round(self.top * height)),
            int(round(self.right * width)),
            int(round(self.bottom * height)),
        )
        # at least one pixel
        return box[0], box[1], max(box[2], box[0] + 1), max(box[3], box[1] + 1)


@dataclass(frozen=True)
class EncodedFile:
    name: str
    data: str  # base64
    mime_type: str


def decode_data_url(data_url: str) -> tuple[str, bytes]:
    """Return (mime type, raw bytes) of a base64 data URL."""
    match = _DATA_URL_RE.match((data_url or "").strip())
    if not match or not match.group("b64"):
        raise ValidationError("Imagem inválida.")
    try:
        raw = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Imagem inválida.") from exc
    return match.group("mime") or "application/octet-stream", raw


def to_data_url(mime_type: str, raw: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"


def normalize_rotation(rotation) -> int:
    """Clockwise rotation in degrees, snapped to 0/90/180/270."""
    try:
        degrees = int(float(rotation or 0))
    except (TypeError, ValueError) as exc:
        raise ValidationError("Rotação inválida.") from exc
    if degrees % 90:
        raise ValidationError("A rotação deve ser múltipla de 90 graus.")
    return degrees % 360


def process_photo(
    raw: bytes,
    *,
    rotation=0,
    crop: Optional[CropBox] = None,
    max_edge: int = 1280,
    quality: int = 80,
) -> str:
    """Run the pipeline on raw image bytes and return a JPEG data URL."""
    if not raw:
        raise ValidationError("Imagem vazia.")

    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Arquivo de imagem não reconhecido.") from exc

    image = ImageOps.exif_transpose(image)

    degrees = normalize_rotation(rotation)
    if degrees:
        # PIL rotates counter-clockwise
        image = image.rotate(-degrees, expand=True)

    if crop is not None:
        image = image.crop(crop.to_pixels(*image.size))

    if max_edge and max(image.size) > max_edge:
        image.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)

    if image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality, optimize=True)
    return to_data_url("image/jpeg", buffer.getvalue())


def process_photo_data_url(data_url: str, **kwargs) -> str:
    _, raw = decode_data_url(data_url)
    return process_photo(raw, **kwargs)


def encode_attachment(name: str, raw: bytes, mime_type: Optional[str], max_bytes: int) -> EncodedFile:
    if not raw:
        raise ValidationError(f"Anexo vazio: {name}.")
    if max_bytes and len(raw) > max_bytes:
        raise ValidationError(f"Anexo muito grande: {name}.")
    return EncodedFile(
        name=name or "anexo",
        data=base64.b64encode(raw).decode("ascii"),
        mime_type=mime_type or "application/octet-stream",
    )
