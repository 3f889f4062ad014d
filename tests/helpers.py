"""
Test doubles for the transport layer.
"""

import httpx

from zap_http.services.transport import HttpxTransport


class ScriptedTransport:
    """Transport stub that replays a fixed list of responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def send(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def mock_transport(handler) -> HttpxTransport:
    """HttpxTransport over an httpx.MockTransport handler."""
    return HttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
