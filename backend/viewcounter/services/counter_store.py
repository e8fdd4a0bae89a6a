# backend/viewcounter/services/counter_store.py
from __future__ import annotations

import json
import logging
import math
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from ..clients.kv_rest import KvRestClient, KvRestError
from ..config import Settings
from .runtime_metrics import METRICS

log = logging.getLogger("viewcounter.store")

Snapshot = dict[str, int]

# Env flags set by serverless platforms whose deploy filesystem is read-only.
_READ_ONLY_PLATFORM_ENV = ("VERCEL", "AWS_LAMBDA_FUNCTION_NAME")


class StoreError(RuntimeError):
    pass


class CounterBackend(Protocol):
    name: str

    def open(self) -> None: ...

    def close(self) -> None: ...

    def read_snapshot(self) -> dict[str, Any]: ...

    def write_snapshot(self, snapshot: Snapshot) -> None: ...


def coerce_count(v: Any) -> int:
    """
    Stored values are trusted only if they are real, finite, non-negative numbers.
    Anything else (missing, bool, string, NaN, inf, negative) counts as 0.
    """
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return 0
    if isinstance(v, float) and not math.isfinite(v):
        return 0
    n = int(v)
    return n if n > 0 else 0


def _decode_snapshot(raw: str | bytes | None) -> dict[str, Any]:
    if raw is None:
        return {}
    data = json.loads(raw)
    return data if isinstance(data, dict) else {}


class FileCounterBackend:
    """Whole-store JSON document on local disk."""

    name = "file"

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def open(self) -> None:
        return None

    def close(self) -> None:
        return None

    def read_snapshot(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreError(f"cannot read {self.path}: {e}") from e

        try:
            return _decode_snapshot(raw)
        except ValueError as e:
            raise StoreError(f"malformed counter document {self.path}: {e}") from e

    def write_snapshot(self, snapshot: Snapshot) -> None:
        blob = json.dumps(snapshot, separators=(",", ":"))
        tmp: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # one temp file per writer: concurrent writers must never share it
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name + ".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(blob)
            os.replace(tmp, self.path)
            tmp = None
        except OSError as e:
            raise StoreError(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp is not None:
                try:
                    os.unlink(tmp)
                except OSError:
                    pass


class RemoteCounterBackend:
    """Whole-store JSON blob under one key of a REST key-value service."""

    name = "remote"

    def __init__(self, client: KvRestClient, *, key: str = "counters") -> None:
        self.client = client
        self.key = key

    def open(self) -> None:
        self.client.open()

    def close(self) -> None:
        self.client.close()

    def read_snapshot(self) -> dict[str, Any]:
        try:
            return _decode_snapshot(self.client.get(self.key))
        except (KvRestError, ValueError) as e:
            raise StoreError(f"cannot read kv key {self.key!r}: {e}") from e

    def write_snapshot(self, snapshot: Snapshot) -> None:
        try:
            self.client.set(self.key, json.dumps(snapshot, separators=(",", ":")))
        except KvRestError as e:
            raise StoreError(f"cannot write kv key {self.key!r}: {e}") from e


class CounterStore:
    """
    Named integer counters over a whole-snapshot backend.

    increment_and_get is read-modify-write without any lock: two concurrent
    calls for the same name can both read N and both write N+1. Neither
    peek nor increment_and_get ever raises; backend failures degrade to an
    empty store on read and to an unpersisted (but returned) value on write.
    """

    def __init__(self, backend: CounterBackend) -> None:
        self.backend = backend

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def open(self) -> "CounterStore":
        self.backend.open()
        return self

    def close(self) -> None:
        self.backend.close()

    def __enter__(self) -> "CounterStore":
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _read(self) -> dict[str, Any]:
        try:
            return self.backend.read_snapshot()
        except StoreError as e:
            METRICS.inc("store_read_errors")
            log.warning("counter store read failed; treating as empty: %s", e, extra={"backend": self.backend.name})
            return {}

    def peek(self, name: str) -> int:
        return coerce_count(self._read().get(name))

    def increment_and_get(self, name: str) -> int:
        snapshot = self._read()
        value = coerce_count(snapshot.get(name)) + 1
        snapshot[name] = value

        try:
            self.backend.write_snapshot(snapshot)
        except StoreError as e:
            METRICS.inc("store_write_errors")
            log.warning(
                "counter store write failed; value not persisted: %s",
                e,
                extra={"backend": self.backend.name, "counter_name": name},
            )

        METRICS.inc("counter_increments")
        return value


def _read_only_platform() -> bool:
    return any(os.getenv(k) for k in _READ_ONLY_PLATFORM_ENV)


def resolve_counter_path(configured: str | os.PathLike[str]) -> Path:
    """
    Keep the configured path when its directory is writable; otherwise (or on a
    read-only serverless platform) relocate the file under the temp dir.
    """
    path = Path(configured)

    # parent may not exist yet (created on first write): probe nearest existing ancestor
    anc = path.parent
    while not anc.exists() and anc != anc.parent:
        anc = anc.parent
    writable = anc.is_dir() and os.access(anc, os.W_OK)

    if writable and not _read_only_platform():
        return path
    return Path(tempfile.gettempdir()) / path.name


def select_backend(cfg: Settings, *, kv_client: Optional[KvRestClient] = None) -> CounterBackend:
    """
    Capability probe, run once at startup:
      - remote KV credentials present -> RemoteCounterBackend
      - else -> FileCounterBackend (relocated if the deploy FS is read-only)
    """
    if cfg.remote_store_configured():
        client = kv_client or KvRestClient(
            base_url=str(cfg.kv_rest_api_url),
            token=str(cfg.kv_rest_api_token),
            timeout=cfg.kv_timeout_seconds,
        )
        log.info("counter store backend: remote kv", extra={"backend": "remote"})
        return RemoteCounterBackend(client, key=cfg.kv_store_key)

    path = resolve_counter_path(cfg.counter_file_path)
    log.info("counter store backend: file %s", path, extra={"backend": "file"})
    return FileCounterBackend(path)


def build_counter_store(cfg: Settings) -> CounterStore:
    return CounterStore(select_backend(cfg))
