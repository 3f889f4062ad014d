"""
ServiceClient - per-upstream call surface over the shared RequestExecutor.

Each named service gets a thin client with its base URL pre-filled. All
clients built by one factory share a single executor, and with it the
transport and the result-cache defaults.
"""

import asyncio
from typing import Any, Mapping

from loguru import logger

from zap_http.services.cache_control import CacheDefaults
from zap_http.services.cancellation import CancelToken
from zap_http.services.errors import ServiceError
from zap_http.services.executor import RequestExecutor
from zap_http.services.models import RequestSpec, ResponseTransformer
from zap_http.services.transport import Transport
from zap_http.settings import HttpConfig, global_settings


class ServiceClient:
    """
    HTTP surface for one upstream service.

    Usage:
        clients = create_service_clients(HttpConfig.from_settings(global_settings))
        summary = await clients["analytics_engine"].get(
            "/portfolio/summary", params={"user_id": user_id}
        )
    """

    def __init__(self, service_id: str, base_url: str, executor: RequestExecutor):
        self.service_id = service_id
        self.base_url = base_url.rstrip("/")
        self._executor = executor

    def _url(self, endpoint: str) -> str:
        if not endpoint:
            return self.base_url
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def _call(
        self,
        method: str,
        url: str,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        signal: CancelToken | None = None,
        transformer: ResponseTransformer[Any] | None = None,
    ) -> Any:
        spec = RequestSpec(
            method=method,
            url=url,
            headers=dict(headers or {}),
            body=body,
            params=params,
            timeout=timeout,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            signal=signal,
        )
        try:
            return await self._executor.execute(spec, transformer)
        except ServiceError as e:
            if e.service_id is None:
                e.service_id = self.service_id
            raise

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self._call("GET", self._url(endpoint), **kwargs)

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self._call("POST", self._url(endpoint), body=body, **kwargs)

    async def put(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self._call("PUT", self._url(endpoint), body=body, **kwargs)

    async def patch(self, endpoint: str, body: Any = None, **kwargs: Any) -> Any:
        return await self._call("PATCH", self._url(endpoint), body=body, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Any:
        return await self._call("DELETE", self._url(endpoint), **kwargs)

    async def request(self, url: str, method: str = "GET", **kwargs: Any) -> Any:
        """Call an absolute URL (RPC nodes, third-party APIs)."""
        return await self._call(method, url, **kwargs)

    async def query(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        transformer: ResponseTransformer[Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """GET through the shared result cache (stale-while-revalidate)."""
        cache = self._executor.cache
        key = cache.generate_key(self._url(endpoint), dict(params) if params else None)
        return await cache.fetch(
            key,
            lambda: self.get(endpoint, params=params, transformer=transformer, **kwargs),
        )


class ServiceClients(dict[str, ServiceClient]):
    """Named clients sharing one executor."""

    def __init__(self, executor: RequestExecutor, clients: Mapping[str, ServiceClient]):
        super().__init__(clients)
        self.executor = executor

    async def close(self) -> None:
        close = getattr(self.executor.transport, "close", None)
        if close is not None:
            await close()
        logger.debug("Service clients closed")


def create_service_clients(
    config: HttpConfig,
    transport: Transport | None = None,
    cache_defaults: CacheDefaults | None = None,
) -> ServiceClients:
    """Build one ServiceClient per configured upstream."""
    executor = RequestExecutor(config, transport=transport, cache_defaults=cache_defaults)
    clients = {}
    for name, base_url in config.services.items():
        if not base_url:
            logger.warning(f"Service '{name}' has no base URL configured")
        clients[name] = ServiceClient(name, base_url, executor)
    return ServiceClients(executor, clients)


async def check_all_services_health(
    clients: Mapping[str, ServiceClient],
    endpoint: str = "/health",
) -> dict[str, dict[str, Any]]:
    """Probe every service concurrently; failures are reported, not raised."""

    async def probe(client: ServiceClient) -> dict[str, Any]:
        try:
            result = await client.get(endpoint, max_attempts=1)
        except ServiceError as e:
            return {"status": "error", "error": str(e)}
        status = result.get("status", "ok") if isinstance(result, dict) else "ok"
        return {"status": status}

    names = list(clients)
    results = await asyncio.gather(*(probe(clients[name]) for name in names))
    return dict(zip(names, results))


# Global clients instance
_global_clients: ServiceClients | None = None


def get_service_clients() -> ServiceClients:
    """Get the process-wide service clients."""
    global _global_clients
    if _global_clients is None:
        _global_clients = create_service_clients(HttpConfig.from_settings(global_settings))
    return _global_clients


async def close_service_clients() -> None:
    """Close the process-wide service clients."""
    global _global_clients
    if _global_clients is not None:
        await _global_clients.close()
        _global_clients = None
