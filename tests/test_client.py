"""Tests for the top level registry client."""

import httpx
import pytest

from iot_registry_client import Application, AuthError, ClientConfig, Device, RegistryClient
from iot_registry_client.auth import OpenIDTokenProvider, StaticTokenProvider
from iot_registry_client.telemetry import NoopTelemetry, OpenTelemetryHook
from iot_registry_client.testing import FakeRegistry

BASE_URL = "https://api.example.com"
ISSUER = "https://sso.example.com/realms/iot"


class Cloud:
    """An issuer and a registry behind one transport."""

    def __init__(self):
        self.registry = FakeRegistry(valid_tokens=set())
        self.issued = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "sso.example.com":
            if request.url.path.endswith("/.well-known/openid-configuration"):
                return httpx.Response(200, json={"token_endpoint": f"{ISSUER}/token"})
            self.issued += 1
            token = f"access-{self.issued}"
            self.registry.valid_tokens.add(token)
            return httpx.Response(200, json={"access_token": token, "expires_in": 300})
        return self.registry.handle(request)

    def revoke_all(self):
        self.registry.valid_tokens.clear()


@pytest.fixture
def cloud():
    return Cloud()


@pytest.fixture
async def openid_client(cloud):
    config = ClientConfig(registry_url=BASE_URL, issuer_url=ISSUER, client_id="svc", client_secret="secret")
    async with httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(cloud)) as http:
        yield RegistryClient(config, http_client=http)


class TestWiring:
    @pytest.mark.unit
    async def test_static_token_from_config(self):
        client = RegistryClient(ClientConfig(registry_url=BASE_URL, access_token="api-token"))

        assert isinstance(client.token_cache._provider, StaticTokenProvider)
        assert isinstance(client.executor.telemetry, NoopTelemetry)
        await client.aclose()

    @pytest.mark.unit
    async def test_openid_from_config(self):
        config = ClientConfig(registry_url=BASE_URL, issuer_url=ISSUER, client_id="svc", scopes=("openid",))
        client = RegistryClient(config)

        provider = client.token_cache._provider
        assert isinstance(provider, OpenIDTokenProvider)
        assert provider.scopes == ("openid",)
        await client.aclose()

    @pytest.mark.unit
    async def test_unauthenticated_without_credentials(self, caplog):
        client = RegistryClient(ClientConfig(registry_url=BASE_URL))

        assert client.token_cache is None
        assert "unauthenticated" in caplog.text
        await client.aclose()

    @pytest.mark.unit
    async def test_telemetry_enabled(self):
        client = RegistryClient(ClientConfig(registry_url=BASE_URL, access_token="t", telemetry_enabled=True))

        assert isinstance(client.executor.telemetry, OpenTelemetryHook)
        await client.aclose()

    @pytest.mark.unit
    async def test_retry_settings_from_config(self):
        config = ClientConfig(registry_url=BASE_URL, access_token="t", max_retries=7, backoff_factor=0.1, timeout=5)
        client = RegistryClient(config)

        assert client.executor.retry_policy.max_retries == 7
        assert client.executor.retry_policy.backoff_factor == 0.1
        assert client.executor.timeout == 5
        await client.aclose()

    @pytest.mark.unit
    async def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_URL", BASE_URL)
        monkeypatch.setenv("REGISTRY_ACCESS_TOKEN", "api-token")

        async with RegistryClient.from_env(load_dotenv=False, max_retries=1) as client:
            assert client.config.registry_url == BASE_URL
            assert client.config.max_retries == 1

    @pytest.mark.unit
    async def test_closes_owned_http_client_only(self, registry):
        shared = httpx.AsyncClient(base_url=BASE_URL, transport=registry.transport())

        async with RegistryClient(ClientConfig(registry_url=BASE_URL, access_token="t"), http_client=shared):
            pass

        assert not shared.is_closed
        await shared.aclose()

    @pytest.mark.unit
    async def test_static_token_is_sent(self, registry):
        registry.valid_tokens = {"api-token"}
        http = httpx.AsyncClient(base_url=BASE_URL, transport=registry.transport())
        config = ClientConfig(registry_url=BASE_URL, access_token="api-token")

        async with RegistryClient(config, http_client=http) as client:
            await client.applications.create(Application.new("app1"))

        assert registry.requests[0].headers["Authorization"] == "Bearer api-token"
        await http.aclose()

    @pytest.mark.unit
    async def test_user_token_is_sent_as_basic_credentials(self, registry):
        http = httpx.AsyncClient(base_url=BASE_URL, transport=registry.transport())
        config = ClientConfig(registry_url=BASE_URL, access_token="api-key", username="alice")

        async with RegistryClient(config, http_client=http) as client:
            await client.applications.create(Application.new("app1"))

        assert registry.requests[0].headers["Authorization"] == "Basic YWxpY2U6YXBpLWtleQ=="
        await http.aclose()

    @pytest.mark.unit
    async def test_owned_http_client_uses_config_timeout(self):
        async with RegistryClient(ClientConfig(registry_url=BASE_URL, access_token="t", timeout=12)) as client:
            assert client._http.timeout == httpx.Timeout(12)


class TestOpenIDFlow:
    @pytest.mark.unit
    async def test_token_is_obtained_on_first_call(self, openid_client, cloud):
        app = await openid_client.applications.create(Application.new("app1"))

        assert app.name == "app1"
        assert cloud.issued == 1

    @pytest.mark.unit
    async def test_revoked_token_is_refreshed_transparently(self, openid_client, cloud):
        await openid_client.applications.create(Application.new("app1"))
        cloud.revoke_all()

        device = await openid_client.devices.create(Device.new("app1", "dev1"))

        assert device.name == "dev1"
        assert cloud.issued == 2

    @pytest.mark.unit
    async def test_token_rejected_after_refresh(self, openid_client, cloud):
        await openid_client.applications.create(Application.new("app1"))
        cloud.registry.fail_next(401, 401)

        with pytest.raises(AuthError):
            await openid_client.applications.get("app1")

        assert cloud.issued == 2

    @pytest.mark.unit
    async def test_per_call_token(self, openid_client, cloud):
        cloud.registry.valid_tokens = {"caller-token"}

        await openid_client.applications.create(Application.new("app1"), token="caller-token")

        assert cloud.issued == 0
