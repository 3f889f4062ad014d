"""
Unit tests for ServiceClient and the client factory.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from zap_http.services import client as client_module
from zap_http.services.client import (
    ServiceClient,
    check_all_services_health,
    close_service_clients,
    create_service_clients,
    get_service_clients,
)
from zap_http.services.errors import RemoteRejectedError
from zap_http.services.executor import RequestExecutor

from tests.helpers import mock_transport


class Recorder:
    """httpx.MockTransport handler that records requests and echoes them."""

    def __init__(self, status: int = 200):
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/health":
            return httpx.Response(self.status, json={"status": "healthy"})
        return httpx.Response(
            self.status,
            json={
                "method": request.method,
                "url": str(request.url),
                "body": json.loads(request.content) if request.content else None,
            },
        )


class TestServiceClient:
    @pytest.fixture
    def recorder(self):
        return Recorder()

    @pytest.fixture
    def clients(self, http_config, cache_defaults, recorder):
        return create_service_clients(
            http_config, transport=mock_transport(recorder), cache_defaults=cache_defaults
        )

    def test_one_client_per_service(self, clients):
        assert set(clients) == {"backend_api", "debank"}
        assert clients["debank"].base_url == "http://debank.test"
        assert clients["backend_api"]._executor is clients["debank"]._executor

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["get", "delete"])
    async def test_methods_without_body(self, clients, method):
        result = await getattr(clients["backend_api"], method)("/notifications/settings/u1")

        assert result["method"] == method.upper()
        assert result["url"] == "http://backend.test/notifications/settings/u1"
        assert result["body"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["post", "put", "patch"])
    async def test_methods_with_body(self, clients, method):
        result = await getattr(clients["backend_api"], method)("reports", {"type": "daily"})

        assert result["method"] == method.upper()
        assert result["url"] == "http://backend.test/reports"
        assert result["body"] == {"type": "daily"}

    @pytest.mark.asyncio
    async def test_request_absolute_url(self, clients):
        result = await clients["debank"].request("http://rpc.test/node", method="POST", body=[1])

        assert result["url"] == "http://rpc.test/node"
        assert result["body"] == [1]

    @pytest.mark.asyncio
    async def test_per_call_overrides_reach_executor(self, clients):
        client = clients["backend_api"]
        with patch.object(
            client._executor, "execute", new_callable=AsyncMock, return_value="ok"
        ) as execute:
            await client.get("/x", timeout=3.0, max_attempts=5, retry_delay=0.1)

        spec = execute.await_args.args[0]
        assert (spec.timeout, spec.max_attempts, spec.retry_delay) == (3.0, 5, 0.1)

    @pytest.mark.asyncio
    async def test_errors_tagged_with_service(self, http_config, cache_defaults):
        clients = create_service_clients(
            http_config,
            transport=mock_transport(lambda request: httpx.Response(404, json={})),
            cache_defaults=cache_defaults,
        )

        with pytest.raises(RemoteRejectedError) as exc_info:
            await clients["debank"].get("/user")

        assert exc_info.value.service_id == "debank"

    @pytest.mark.asyncio
    async def test_query_uses_result_cache(self, clients, recorder):
        first = await clients["backend_api"].query("/stats/usage", params={"timeframe": "7d"})
        second = await clients["backend_api"].query("/stats/usage", params={"timeframe": "7d"})

        assert first == second
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_close_closes_owned_transport_only(self, clients, recorder):
        await clients.close()

        # injected httpx client is owned by the caller
        assert await clients["backend_api"].get("/still-open")


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_reports_each_service(self, http_config, cache_defaults):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "debank.test":
                return httpx.Response(500, json={"message": "down"})
            return httpx.Response(200, json={"status": "healthy"})

        clients = create_service_clients(
            http_config, transport=mock_transport(handler), cache_defaults=cache_defaults
        )

        results = await check_all_services_health(clients)

        assert results["backend_api"] == {"status": "healthy"}
        assert results["debank"]["status"] == "error"
        assert results["debank"]["error"] == "down"


class TestGlobalClients:
    @pytest.mark.asyncio
    async def test_lazy_singleton(self):
        try:
            clients = get_service_clients()
            assert get_service_clients() is clients
            assert isinstance(clients["backend_api"], ServiceClient)
            assert isinstance(clients.executor, RequestExecutor)
        finally:
            await close_service_clients()

        assert client_module._global_clients is None
