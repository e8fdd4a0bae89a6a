from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx


class KvRestError(RuntimeError):
    pass


class KvRestClient:
    """
    Redis-over-REST client (Upstash / Vercel KV wire shape).

      GET  {base}/get/{key}   -> {"result": "<string>" | null}
      POST {base}/set/{key}   body = raw string value -> {"result": "OK"}

    Only string get/set is needed: the counter store keeps its whole mapping
    as one serialized blob under a single key.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.token = token
        self.timeout = float(timeout)
        self._transport = transport
        self._client: httpx.Client | None = None

    def enabled(self) -> bool:
        return bool(self.base and self.token)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self.open()
        assert self._client is not None
        return self._client

    def _result(self, r: httpx.Response) -> Any:
        try:
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise KvRestError(f"kv request failed: {e}") from e

        if not isinstance(data, dict):
            raise KvRestError(f"unexpected kv response shape: {type(data).__name__}")
        if data.get("error"):
            raise KvRestError(f"kv error: {data['error']}")
        return data.get("result")

    def get(self, key: str) -> Optional[str]:
        try:
            r = self._http().get(f"/get/{quote(key, safe='')}")
        except httpx.HTTPError as e:
            raise KvRestError(f"kv get failed: {e}") from e

        result = self._result(r)
        if result is None:
            return None
        return result if isinstance(result, str) else str(result)

    def set(self, key: str, value: str) -> None:
        try:
            r = self._http().post(f"/set/{quote(key, safe='')}", content=value.encode("utf-8"))
        except httpx.HTTPError as e:
            raise KvRestError(f"kv set failed: {e}") from e

        self._result(r)
