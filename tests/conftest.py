import json

import httpx
import pytest

from app.config import Settings
from app.services.crm.client import CrmApiClient


def make_settings(**overrides) -> Settings:
    values = {
        "GHL_API_KEY": "test-key",
        "GHL_LOCATION_ID": "loc-123",
        "GHL_API_GENERATION": "v2",
        "AGENCY_NAME": "Acme Agency",
        "CLIENT_NAME": "Bright Dental",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeCrmApi:
    """Serves queued JSON responses and records every request it receives."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)

    def params(self, index: int) -> dict:
        return dict(self.requests[index].url.params)


@pytest.fixture
def settings_v2():
    return make_settings()


@pytest.fixture
def settings_v1():
    return make_settings(GHL_API_GENERATION="v1")


@pytest.fixture
def make_client():
    def _make(fake_api: FakeCrmApi, config: Settings | None = None) -> CrmApiClient:
        return CrmApiClient(config or make_settings(), transport=httpx.MockTransport(fake_api))

    return _make


@pytest.fixture
def fake_api():
    return FakeCrmApi()


@pytest.fixture
def settings_factory():
    return make_settings
