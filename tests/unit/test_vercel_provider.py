"""Tests for the Vercel Sandbox HTTP provider."""

import base64
import json

import httpx
import pytest

from gitscout.sandbox.errors import SandboxAPIError, SandboxUnavailableError
from gitscout.sandbox.provider import GitSource, SandboxConfig
from gitscout.sandbox.vercel import (
    VercelSandboxProvider,
    decode_oidc_claims,
    parse_log_stream,
)
from gitscout.utils.retry import RetryConfig

BASE_URL = "https://sandbox.test"
REPO_URL = "https://github.com/octo/hello.git"


def _jwt(claims: dict) -> str:
    def _segment(data: dict) -> str:
        raw = base64.urlsafe_b64encode(json.dumps(data).encode()).decode()
        return raw.rstrip("=")

    return f"{_segment({'alg': 'none'})}.{_segment(claims)}.signature"


def _config(**credentials) -> SandboxConfig:
    return SandboxConfig(source=GitSource(url=REPO_URL), **credentials)


class FakeSandboxAPI:
    """Minimal stand-in for the sandbox REST API."""

    def __init__(self):
        self.requests = []
        self.exit_code = 0
        self.logs = [
            {"stream": "stdout", "data": "hello\n"},
            {"stream": "stderr", "data": "warn\n"},
            {"stream": "stdout", "data": "world\n"},
        ]
        self.status_overrides = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.status_overrides:
            queue = self.status_overrides[key]
            status = queue.pop(0) if isinstance(queue, list) else queue
            if status is not None:
                return httpx.Response(status, json={"error": {"message": "sandbox_stopped"}})

        path = request.url.path
        if request.method == "POST" and path == "/v1/sandboxes":
            return httpx.Response(200, json={"sandbox": {"id": "sbx_abc"}})
        if request.method == "POST" and path.endswith("/cmd"):
            return httpx.Response(200, json={"command": {"id": "cmd_1"}})
        if request.method == "GET" and path.endswith("/cmd/cmd_1"):
            return httpx.Response(200, json={"command": {"id": "cmd_1", "exitCode": self.exit_code}})
        if request.method == "GET" and path.endswith("/logs"):
            body = "\n".join(json.dumps(line) for line in self.logs)
            return httpx.Response(200, text=body)
        if request.method == "POST" and path.endswith("/stop"):
            return httpx.Response(200, json={})
        return httpx.Response(500)


@pytest.fixture
def api():
    return FakeSandboxAPI()


@pytest.fixture
def provider(api):
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(api))
    return VercelSandboxProvider(
        base_url=BASE_URL,
        oidc_token=_jwt({"owner_id": "team_oidc", "project_id": "prj_oidc"}),
        client=client,
        retry_config=RetryConfig(max_retries=2, initial_delay=0, jitter=False),
    )


class TestHelpers:
    """Test module helpers."""

    def test_parse_log_stream(self):
        """NDJSON log lines are split by stream."""
        body = "\n".join(
            [
                json.dumps({"stream": "stdout", "data": "a"}),
                "not json",
                json.dumps({"stream": "stderr", "data": "b"}),
                "",
                json.dumps({"stream": "stdout", "data": "c"}),
            ]
        )
        assert parse_log_stream(body) == ("ac", "b")

    def test_decode_oidc_claims(self):
        """Claims are read from the JWT payload."""
        claims = decode_oidc_claims(_jwt({"owner_id": "t", "project_id": "p"}))
        assert claims == {"owner_id": "t", "project_id": "p"}

    def test_decode_oidc_claims_invalid(self):
        """Malformed tokens raise SandboxAPIError."""
        with pytest.raises(SandboxAPIError):
            decode_oidc_claims("not-a-jwt")


class TestCreate:
    """Test sandbox creation."""

    @pytest.mark.asyncio
    async def test_create_with_credentials(self, provider, api):
        """The credential triple is used for auth, team and project."""
        handle = await provider.create(
            _config(team_id="team_1", project_id="prj_1", token="tok_1")
        )

        assert handle.sandbox_id == "sbx_abc"
        request = api.requests[0]
        assert request.headers["Authorization"] == "Bearer tok_1"
        assert request.url.params["teamId"] == "team_1"
        body = json.loads(request.content)
        assert body["projectId"] == "prj_1"
        assert body["source"] == {"type": "git", "url": REPO_URL}
        assert body["resources"] == {"vcpus": 4}
        assert body["runtime"] == "node22"
        assert body["ports"] == []
        assert body["timeout"] == 30 * 60 * 1000
        assert "token" not in body

    @pytest.mark.asyncio
    async def test_create_with_oidc_token(self, provider, api):
        """Without credentials the OIDC token and its claims are used."""
        await provider.create(_config())

        request = api.requests[0]
        assert request.headers["Authorization"].startswith("Bearer ")
        assert request.url.params["teamId"] == "team_oidc"
        assert json.loads(request.content)["projectId"] == "prj_oidc"

    @pytest.mark.asyncio
    async def test_create_without_any_credentials(self, api):
        """No credentials and no OIDC token is an API error."""
        client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(api))
        provider = VercelSandboxProvider(base_url=BASE_URL, client=client)

        with pytest.raises(SandboxAPIError, match="No sandbox credentials"):
            await provider.create(_config())
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_create_error_is_not_unavailable(self, provider, api):
        """A 400 on creation is an API error, not a dead sandbox."""
        api.status_overrides[("POST", "/v1/sandboxes")] = 400

        with pytest.raises(SandboxAPIError) as exc_info:
            await provider.create(_config())

        assert not isinstance(exc_info.value, SandboxUnavailableError)
        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "Status code 400 is not ok: sandbox_stopped"


class TestRunCommand:
    """Test command execution through the API."""

    @pytest.mark.asyncio
    async def test_run_command(self, provider, api):
        """A command is started, awaited and its logs collected."""
        handle = await provider.create(_config())
        api.exit_code = 3

        result = await handle.run_command("ls", ["-la"], sudo=True)

        assert result.stdout == "hello\nworld\n"
        assert result.stderr == "warn\n"
        assert result.exit_code == 3

        start = api.requests[1]
        assert start.url.path == "/v1/sandboxes/sbx_abc/cmd"
        assert json.loads(start.content) == {
            "command": "ls",
            "args": ["-la"],
            "env": {},
            "sudo": True,
        }
        wait = api.requests[2]
        assert wait.url.params["wait"] == "true"
        assert wait.url.params["teamId"] == "team_oidc"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 410])
    async def test_dead_sandbox_statuses(self, provider, api, status):
        """Sandbox-scoped 400/404/410 responses mean the sandbox is gone."""
        handle = await provider.create(_config())
        api.status_overrides[("POST", "/v1/sandboxes/sbx_abc/cmd")] = status

        with pytest.raises(SandboxUnavailableError) as exc_info:
            await handle.run_command("ls")

        assert exc_info.value.sandbox_id == "sbx_abc"
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_other_status_is_api_error(self, provider, api):
        """Other failures on sandbox routes are plain API errors."""
        handle = await provider.create(_config())
        api.status_overrides[("POST", "/v1/sandboxes/sbx_abc/cmd")] = 403

        with pytest.raises(SandboxAPIError) as exc_info:
            await handle.run_command("ls")

        assert not isinstance(exc_info.value, SandboxUnavailableError)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_wait_retried_on_5xx(self, provider, api):
        """Transient 5xx responses while waiting are retried."""
        handle = await provider.create(_config())
        api.status_overrides[("GET", "/v1/sandboxes/sbx_abc/cmd/cmd_1")] = [503, None]

        result = await handle.run_command("ls")

        assert result.exit_code == 0
        waits = [r for r in api.requests if r.url.path.endswith("/cmd/cmd_1")]
        assert len(waits) == 2

    @pytest.mark.asyncio
    async def test_start_not_retried(self, provider, api):
        """Starting a command is never retried."""
        handle = await provider.create(_config())
        api.status_overrides[("POST", "/v1/sandboxes/sbx_abc/cmd")] = 503

        with pytest.raises(SandboxAPIError):
            await handle.run_command("ls")

        starts = [r for r in api.requests if r.url.path.endswith("/cmd")]
        assert len(starts) == 1

    @pytest.mark.asyncio
    async def test_stop(self, provider, api):
        """Stopping posts to the stop route."""
        handle = await provider.create(_config())
        await handle.stop()
        assert api.requests[-1].url.path == "/v1/sandboxes/sbx_abc/stop"
