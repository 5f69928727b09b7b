"""Tests for the game-server status lookup."""

import asyncio

import aiohttp
import pytest

from status import STATUS_TIMEOUT, ServerStatusClient, summarize_response


class StatusResponse:
    def __init__(self, status=200, reason="OK", payload=None, error=None):
        self.status = status
        self.reason = reason
        self.payload = payload
        self.error = error

    async def json(self, content_type="application/json"):
        if self.error is not None:
            raise self.error
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class StatusSession:
    """Stands in for aiohttp.ClientSession.get."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, timeout=None):
        self.requests.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def client_for(session):
    return ServerStatusClient(session, "203.0.113.10", 28960)


async def test_fetch_returns_server_payload():
    payload = {"serverinfo": {"sv_hostname": "Base"}, "playerinfo": []}
    session = StatusSession(StatusResponse(payload=payload))

    assert await client_for(session).fetch() == payload

    ((url, timeout),) = session.requests
    assert url == "https://api.cod.pm/getstatus/203.0.113.10/28960"
    assert timeout.total == STATUS_TIMEOUT


@pytest.mark.parametrize(
    "session, summary",
    [
        (StatusSession(StatusResponse(503, "Service Unavailable ")), "503 Service Unavailable"),
        (StatusSession(StatusResponse(404, None)), "404"),
        (StatusSession(error=aiohttp.ClientConnectionError("refused")), "NETWORK ERROR"),
        (StatusSession(error=asyncio.TimeoutError()), "TIMEOUT"),
        (StatusSession(StatusResponse(error=ValueError("not json"))), "BAD RESPONSE"),
        (StatusSession(StatusResponse(payload=["not", "a", "dict"])), "BAD RESPONSE"),
    ],
)
async def test_failures_come_back_as_error_summary(session, summary):
    assert await client_for(session).fetch() == {"error": summary}


def test_address():
    client = client_for(StatusSession())
    assert client.address == "203.0.113.10:28960"


def test_summarize_response():
    assert summarize_response(500, "Internal Server Error") == "500 Internal Server Error"
    assert summarize_response(502, "") == "502"
