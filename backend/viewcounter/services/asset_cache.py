# backend/viewcounter/services/asset_cache.py
from __future__ import annotations

import base64
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import quote

from ..config import Settings
from .imaging import pillow_downscale
from .runtime_metrics import METRICS

log = logging.getLogger("viewcounter.assets")

Loader = Callable[[Path], bytes]
Transform = Callable[[bytes, int], bytes]

DEFAULT_MIME = "image/png"
ASSETS_URL_PREFIX = "/assets"


@dataclass(frozen=True)
class EncodedAsset:
    source: str
    mime_type: str
    data_uri: str
    embedded: bool = True


def guess_mime(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    if mime and mime.startswith("image/"):
        return mime
    return DEFAULT_MIME


def _read_bytes(p: Path) -> bytes:
    return p.read_bytes()


class AssetCache:
    """
    Memoized data-URI encodings of glyph images, keyed by source path.

    A miss loads the bytes, optionally shrinks them through `transform`
    (bounded to max_dimension), base64-encodes and stores the result for the
    life of the process. Concurrent misses for one path may both do the load;
    the result is deterministic so the last write wins harmlessly.

    Load failures are not memoized and yield a non-embedded asset pointing at
    the static /assets URL.
    """

    def __init__(
        self,
        assets_dir: str | os.PathLike[str],
        *,
        max_dimension: int = 256,
        transform: Optional[Transform] = None,
        loader: Optional[Loader] = None,
    ) -> None:
        self.assets_dir = Path(assets_dir)
        self.max_dimension = int(max_dimension)
        self.transform = transform
        self.loader: Loader = loader or _read_bytes
        self._memo: dict[str, EncodedAsset] = {}

    def __len__(self) -> int:
        return len(self._memo)

    def __contains__(self, path: object) -> bool:
        return path in self._memo

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.assets_dir / p

    def _shrink(self, path: str, raw: bytes) -> bytes:
        if self.transform is None:
            return raw
        try:
            out = self.transform(raw, self.max_dimension)
        except Exception as e:  # any decoder/encoder failure
            METRICS.inc("asset_transform_fallbacks")
            log.info("asset transform failed, using raw bytes: %s", e, extra={"asset_path": path})
            return raw
        if not out or len(out) > len(raw):
            return raw
        return out

    def get_encoded(self, path: str) -> EncodedAsset:
        hit = self._memo.get(path)
        if hit is not None:
            METRICS.inc("asset_cache_hits")
            return hit

        METRICS.inc("asset_cache_misses")
        try:
            raw = self.loader(self._resolve(path))
        except OSError as e:
            METRICS.inc("asset_load_errors")
            log.warning("asset load failed: %s", e, extra={"asset_path": path})
            return EncodedAsset(
                source=path,
                mime_type=guess_mime(path),
                data_uri=f"{ASSETS_URL_PREFIX}/{quote(Path(path).name)}",
                embedded=False,
            )

        payload = self._shrink(path, raw)
        mime = guess_mime(path)
        b64 = base64.b64encode(payload).decode("ascii")
        entry = EncodedAsset(source=path, mime_type=mime, data_uri=f"data:{mime};base64,{b64}")
        self._memo[path] = entry
        return entry

    def warm(self, paths: Iterable[str]) -> int:
        """Pre-load paths; returns how many ended up embedded."""
        n = 0
        for p in dict.fromkeys(paths):
            if self.get_encoded(p).embedded:
                n += 1
        log.info("asset cache warmed: %d/%d", n, len(self._memo))
        return n

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._memo),
            "bytes": sum(len(e.data_uri) for e in self._memo.values()),
        }


def build_asset_cache(cfg: Settings) -> AssetCache:
    return AssetCache(
        cfg.assets_dir,
        max_dimension=cfg.asset_max_dimension,
        transform=pillow_downscale if cfg.asset_transform_enabled else None,
    )
