from __future__ import annotations

import io

from PIL import Image

# Per-format save options tuned for small payloads.
_SAVE_OPTIONS: dict[str, dict] = {
    "PNG": {"optimize": True},
    "JPEG": {"quality": 80, "optimize": True, "progressive": True},
    "WEBP": {"quality": 80, "method": 6},
    "GIF": {"optimize": True},
}


def pillow_downscale(data: bytes, max_dimension: int) -> bytes:
    """
    Downscale so neither side exceeds max_dimension (aspect kept) and re-encode
    in the source format. Raises on undecodable input; callers fall back to
    the raw bytes.
    """
    if max_dimension < 1:
        raise ValueError("max_dimension must be >= 1")

    with Image.open(io.BytesIO(data)) as im:
        fmt = (im.format or "PNG").upper()
        im.load()
        img = im.copy()

    img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

    if fmt == "JPEG" and img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    out = io.BytesIO()
    img.save(out, format=fmt, **_SAVE_OPTIONS.get(fmt, {}))
    return out.getvalue()
