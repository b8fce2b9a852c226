"""
Resize function — fit an image inside a box and re-encode it.

Uses Pillow. Pure: bytes in, bytes out, no I/O. Aspect ratio is preserved
and images already inside the box are re-encoded at their own size
(never up-scaled).
"""
from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from thumbnailer.exceptions import DecodeError

# Output formats that cannot carry an alpha channel
_OPAQUE_FORMATS = {"JPEG", "BMP"}


def resize_image(
    data: bytes,
    max_width: int,
    max_height: int,
    output_format: str = "JPEG",
    quality: int = 80,
) -> bytes:
    """Return ``data`` scaled to fit within ``max_width`` x ``max_height``."""
    fmt = output_format.upper()
    image = _open(data)
    image = ImageOps.exif_transpose(image)
    image = _prepare_mode(image, fmt)

    # thumbnail() only ever shrinks and keeps the aspect ratio
    image.thumbnail((max_width, max_height), Image.LANCZOS)

    buf = io.BytesIO()
    save_kwargs: dict = {"format": fmt}
    if fmt in ("JPEG", "WEBP"):
        save_kwargs["quality"] = quality
    if fmt == "JPEG":
        save_kwargs["optimize"] = True
    image.save(buf, **save_kwargs)
    return buf.getvalue()


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except UnidentifiedImageError as exc:
        raise DecodeError("unrecognised image format") from exc
    except Image.DecompressionBombError as exc:
        raise DecodeError(str(exc)) from exc
    except (OSError, SyntaxError, ValueError) as exc:
        # truncated or corrupt data surfaces from load()
        raise DecodeError(str(exc) or type(exc).__name__) from exc
    return image


def _prepare_mode(image: Image.Image, output_format: str) -> Image.Image:
    if output_format in _OPAQUE_FORMATS:
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            # Composite onto white background
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
        return image
    if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
        return image.convert("RGBA" if "A" in image.mode else "RGB")
    if output_format == "WEBP" and image.mode == "P":
        return image.convert("RGBA")
    return image
