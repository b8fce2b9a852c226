"""
Object-key rules shared by the upload filter and the worker.

Keys are opaque strings; "/" only matters for finding the file name.

  Relevance:   photos/cat.jpg                    → candidate
               derivatives/photos/cat_thumb.jpg  → skipped (reserved prefix)
               report.pdf                        → skipped (extension)

  Derivative:  photos/cat.jpg  → derivatives/photos/cat_thumb.jpg
               photos/cat.PNG  → derivatives/photos/cat_thumb.PNG

Prefix and marker matching is literal and case-sensitive; only the extension
check ignores case.

A derivative key keeps the extension of its source, so the extension names
the source type, not the encoding: with JPEG output, photos/cat.PNG is stored
as derivatives/photos/cat_thumb.PNG holding JPEG bytes. The Content-Type
written with the object is the authority on the encoding.
"""
from __future__ import annotations

from dataclasses import dataclass

# Pillow format name → Content-Type of the encoded derivative
FORMAT_CONTENT_TYPES: dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


@dataclass(frozen=True)
class KeyRules:
    derivative_prefix: str = "derivatives/"
    derivative_suffix: str = "_thumb"
    image_extensions: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")


def split_extension(key: str) -> tuple[str, str]:
    """Split ``key`` into (stem, extension) on the last dot of the file name.

    The extension keeps its dot and original case. A dot inside a directory
    name is never treated as an extension separator.
    """
    slash = key.rfind("/")
    dot = key.rfind(".")
    if dot <= slash:
        return key, ""
    return key[:dot], key[dot:]


def skip_reason(key: str, rules: KeyRules) -> str | None:
    """Return why ``key`` must not be processed, or None if it is a candidate."""
    if key.startswith(rules.derivative_prefix):
        return f"key is under the reserved prefix {rules.derivative_prefix!r}"
    if rules.derivative_suffix in key:
        return f"key contains the derivative marker {rules.derivative_suffix!r}"
    _, ext = split_extension(key)
    if ext.lower() not in rules.image_extensions:
        return f"extension {ext or '(none)'!r} is not an allowed image type"
    return None


def is_candidate(key: str, rules: KeyRules) -> bool:
    return skip_reason(key, rules) is None


def derivative_key(key: str, rules: KeyRules) -> str:
    """Map a source key to its derivative key.

    The source extension is kept verbatim so that ``a.jpg`` and ``a.png``
    never share a derivative. The result always starts with the reserved
    prefix, so it is never itself a candidate.
    """
    stem, ext = split_extension(key)
    return f"{rules.derivative_prefix}{stem}{rules.derivative_suffix}{ext}"


def content_type_for(image_format: str) -> str:
    return FORMAT_CONTENT_TYPES.get(image_format.upper(), "application/octet-stream")
