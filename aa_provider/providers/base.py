from abc import ABC, abstractmethod
import itertools
from typing import Any, Dict, Optional

import httpx


class RpcError(Exception):
    """JSON-RPC endpoint returned an error payload."""

    def __init__(self, message: str, *, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: float = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class JsonRpcProvider(Provider):
    """Provider backed by a JSON-RPC 2.0 endpoint over HTTP."""

    error_class: type = RpcError

    def __init__(
        self,
        rpc_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self.rpc_url = rpc_url
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._client = client
        self._ids = itertools.count(1)

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": f"{self.name} endpoint not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": result}
        except (httpx.HTTPError, RpcError) as exc:
            return {"status": "error", "reason": str(exc)}

    async def chain_id(self) -> int:
        return int(await self._rpc_call("eth_chainId", []), 16)

    async def send(self, method: str, params: list[Any]) -> Any:
        """Raw JSON-RPC passthrough."""
        return await self._rpc_call(method, params)

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not await self.ready():
            raise self.error_class(f"{self.name} provider is not configured")

        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)

        response = await self._client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            error = payload["error"]
            if isinstance(error, dict):
                raise self.error_class(
                    str(error.get("message") or f"{method} failed"),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise self.error_class(str(error))
        return payload.get("result")
