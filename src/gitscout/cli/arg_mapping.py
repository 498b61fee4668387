"""CLI argument to environment variable mappings."""

from dataclasses import dataclass
from typing import Any, List, Optional

from gitscout.config.settings import SENSITIVE_ENV_VAR_NAMES, SUPPORTED_RUNTIMES


@dataclass
class ArgMapping:
    """Mapping between CLI argument and environment variable."""

    cli_arg: str  # CLI argument name (e.g., "--vcpus")
    env_var: str  # Environment variable name (e.g., "SANDBOX_VCPUS")
    arg_type: type = str
    choices: Optional[List[str]] = None
    help_text: str = ""
    short_arg: Optional[str] = None
    default: Any = None


# Shared by every subcommand that provisions a sandbox
SANDBOX_ARG_MAPPINGS: List[ArgMapping] = [
    ArgMapping(
        cli_arg="--log-level",
        env_var="LOG_LEVEL",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help_text="Logging level",
        default="INFO",
    ),
    ArgMapping(
        cli_arg="--vcpus",
        env_var="SANDBOX_VCPUS",
        arg_type=int,
        help_text="vCPUs allocated to the sandbox (1-8)",
    ),
    ArgMapping(
        cli_arg="--sandbox-timeout",
        env_var="SANDBOX_TIMEOUT_MINUTES",
        arg_type=int,
        help_text="Sandbox session timeout in minutes",
    ),
    ArgMapping(
        cli_arg="--runtime",
        env_var="SANDBOX_RUNTIME",
        choices=list(SUPPORTED_RUNTIMES),
        help_text="Sandbox runtime image",
    ),
    ArgMapping(
        cli_arg="--api-url",
        env_var="SANDBOX_API_URL",
        help_text="Base URL of the sandbox API",
    ),
]

# Credentials are never accepted as CLI arguments; use a .env file or the environment
SENSITIVE_ENV_VARS: frozenset = SENSITIVE_ENV_VAR_NAMES

