"""HTTP provider for the hosted Vercel Sandbox API."""

import base64
import json
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from gitscout.utils.logger import get_logger
from gitscout.utils.retry import RetryConfig, retry_async

from .errors import SandboxAPIError, SandboxUnavailableError
from .provider import CommandResult, SandboxConfig, SandboxHandle, SandboxProvider

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.vercel.com"

# Statuses on a sandbox-scoped route that mean the sandbox is gone
DEAD_SANDBOX_STATUS_CODES = frozenset({400, 404, 410})


def decode_oidc_claims(token: str) -> Dict[str, Any]:
    """Read the claims of an OIDC JWT without verifying its signature.

    The token is only used to pick the team and project the platform issued
    it for; the API verifies it on every request.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise SandboxAPIError("VERCEL_OIDC_TOKEN is not a valid JWT")
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload.encode("ascii")))
    except (ValueError, UnicodeDecodeError) as e:
        raise SandboxAPIError(f"VERCEL_OIDC_TOKEN claims could not be decoded: {e}") from e
    if not isinstance(claims, dict):
        raise SandboxAPIError("VERCEL_OIDC_TOKEN claims are not an object")
    return claims


def parse_log_stream(body: str) -> Tuple[str, str]:
    """Split an NDJSON command log into stdout and stderr text."""
    stdout_parts = []
    stderr_parts = []
    for raw_line in body.splitlines():
        if not raw_line.strip():
            continue
        try:
            entry = json.loads(raw_line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed log line: {raw_line[:80]}")
            continue
        data = entry.get("data", "")
        if entry.get("stream") == "stderr":
            stderr_parts.append(data)
        elif entry.get("stream") == "stdout":
            stdout_parts.append(data)
    return "".join(stdout_parts), "".join(stderr_parts)


class VercelSandbox(SandboxHandle):
    """Handle to one running Vercel sandbox."""

    def __init__(
        self,
        provider: "VercelSandboxProvider",
        sandbox_id: str,
        token: str,
        team_id: Optional[str],
    ):
        self._provider = provider
        self.sandbox_id = sandbox_id
        self._token = token
        self._team_id = team_id

    async def run_command(
        self, cmd: str, args: Optional[Sequence[str]] = None, sudo: bool = False
    ) -> CommandResult:
        base_path = f"/v1/sandboxes/{self.sandbox_id}/cmd"
        started = await self._provider.request(
            "POST",
            base_path,
            token=self._token,
            team_id=self._team_id,
            sandbox_id=self.sandbox_id,
            json={"command": cmd, "args": list(args or []), "env": {}, "sudo": sudo},
        )
        command_id = (started.json().get("command") or {}).get("id")
        if not command_id:
            raise SandboxAPIError("Command start response did not include a command id")

        logger.debug(f"Started command {command_id} in sandbox {self.sandbox_id}: {cmd}")

        finished = await retry_async(
            self._provider.request,
            self._provider.retry_config,
            f"wait for command {command_id}",
            "GET",
            f"{base_path}/{command_id}",
            token=self._token,
            team_id=self._team_id,
            sandbox_id=self.sandbox_id,
            params={"wait": "true"},
            # Long builds keep the wait request open; only the connect phase is bounded
            timeout=httpx.Timeout(self._provider.request_timeout, read=None),
        )
        exit_code = (finished.json().get("command") or {}).get("exitCode")
        if exit_code is None:
            raise SandboxAPIError(f"Command {command_id} finished without an exit code")

        logs = await retry_async(
            self._provider.request,
            self._provider.retry_config,
            f"fetch logs for command {command_id}",
            "GET",
            f"{base_path}/{command_id}/logs",
            token=self._token,
            team_id=self._team_id,
            sandbox_id=self.sandbox_id,
        )
        stdout, stderr = parse_log_stream(logs.text)
        return CommandResult(stdout=stdout, stderr=stderr, exit_code=int(exit_code))

    async def stop(self) -> None:
        await self._provider.request(
            "POST",
            f"/v1/sandboxes/{self.sandbox_id}/stop",
            token=self._token,
            team_id=self._team_id,
            sandbox_id=self.sandbox_id,
        )
        logger.info(f"Stopped sandbox {self.sandbox_id}")

    def __repr__(self) -> str:
        return f"VercelSandbox(sandbox_id={self.sandbox_id!r})"


class VercelSandboxProvider(SandboxProvider):
    """Creates sandboxes through the Vercel Sandbox REST API.

    Authenticates with the credential triple from the SandboxConfig when it is
    present, otherwise with the platform-issued OIDC token.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        oidc_token: Optional[str] = None,
        request_timeout: float = 60.0,
        ssl_verify: bool = True,
        client: Optional[httpx.AsyncClient] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.oidc_token = oidc_token
        self.request_timeout = request_timeout
        self.retry_config = retry_config or RetryConfig()
        self._client = client
        self._owns_client = client is None
        self._ssl_verify = ssl_verify

    @classmethod
    def from_settings(cls, settings) -> "VercelSandboxProvider":
        return cls(
            base_url=settings.sandbox_api_url,
            oidc_token=settings.vercel_oidc_token,
            request_timeout=settings.sandbox_request_timeout,
            ssl_verify=settings.ssl_verify,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.request_timeout,
                verify=self._ssl_verify,
            )
        return self._client

    def _resolve_auth(self, config: SandboxConfig) -> Tuple[str, str, str]:
        """Return (token, team_id, project_id) for a creation request."""
        if config.has_credentials:
            return config.token, config.team_id, config.project_id  # type: ignore[return-value]

        if not self.oidc_token:
            raise SandboxAPIError(
                "No sandbox credentials available: set VERCEL_TEAM_ID, "
                "VERCEL_PROJECT_ID and VERCEL_TOKEN, or run where VERCEL_OIDC_TOKEN is provided"
            )
        claims = decode_oidc_claims(self.oidc_token)
        team_id = claims.get("owner_id")
        project_id = claims.get("project_id")
        if not team_id or not project_id:
            raise SandboxAPIError("VERCEL_OIDC_TOKEN is missing owner_id or project_id claims")
        return self.oidc_token, team_id, project_id

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: str,
        team_id: Optional[str] = None,
        sandbox_id: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> httpx.Response:
        """Send one API request and translate error statuses into sandbox errors."""
        query: Dict[str, str] = dict(params or {})
        if team_id:
            query["teamId"] = team_id

        response = await self._get_client().request(
            method,
            path,
            params=query,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )
        if response.status_code < 400:
            return response

        message = f"Status code {response.status_code} is not ok"
        detail = _error_detail(response)
        if detail:
            message = f"{message}: {detail}"

        if sandbox_id is not None and response.status_code in DEAD_SANDBOX_STATUS_CODES:
            raise SandboxUnavailableError(
                f"Sandbox {sandbox_id} is unavailable ({message})",
                sandbox_id=sandbox_id,
                status_code=response.status_code,
            )
        raise SandboxAPIError(message, status_code=response.status_code)

    async def create(self, config: SandboxConfig) -> SandboxHandle:
        token, team_id, project_id = self._resolve_auth(config)
        payload = config.to_payload()
        payload["projectId"] = project_id

        response = await self.request(
            "POST", "/v1/sandboxes", token=token, team_id=team_id, json=payload
        )
        sandbox_id = (response.json().get("sandbox") or {}).get("id")
        if not sandbox_id:
            raise SandboxAPIError("Sandbox creation response did not include a sandbox id")
        return VercelSandbox(self, sandbox_id, token, team_id)

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or "")
        if error:
            return str(error)
    return ""
