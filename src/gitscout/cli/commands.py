"""CLI command implementations."""

import asyncio
import json
import sys
from argparse import Namespace
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from gitscout.cli.arg_mapping import SENSITIVE_ENV_VARS
from gitscout.cli.env_loader import (
    apply_cli_args_to_env,
    get_effective_config,
    load_env_file,
    mask_sensitive_value,
)
from gitscout.config.settings import CREDENTIAL_ENV_VAR_NAMES, Settings, load_settings
from gitscout.sandbox.errors import SandboxError
from gitscout.sandbox.manager import SandboxManager
from gitscout.sandbox.provisioner import resolve_credentials
from gitscout.tools.sandbox_tools import create_sandbox_registry
from gitscout.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

SandboxOperation = Callable[[SandboxManager], Awaitable[Any]]


def get_version() -> str:
    """Get the package version."""
    try:
        from importlib.metadata import version

        return version("gitscout")
    except Exception:
        # Fallback to reading pyproject.toml
        try:
            import tomllib
            from pathlib import Path

            pyproject = Path(__file__).parent.parent.parent.parent / "pyproject.toml"
            if pyproject.exists():
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f)
                return data.get("project", {}).get("version", "unknown")
        except Exception:  # nosec B110 - intentional fallback to "unknown"
            pass
    return "unknown"


def cmd_version(args: Namespace) -> int:
    """Handle the 'version' command."""
    print(f"gitscout version {get_version()}")
    return 0


def _load_env_file_arg(args: Namespace, quiet: bool = False) -> bool:
    """Load ``--env-file`` when given. Returns False if the file is missing."""
    env_file = getattr(args, "env_file", None)
    if not env_file:
        return True
    try:
        load_env_file(env_file)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False
    if not quiet:
        print(f"Loaded environment from: {env_file}\n")
    return True


def cmd_config_show(args: Namespace) -> int:
    """Handle the 'config show' command."""
    if not _load_env_file_arg(args):
        return 1

    config = get_effective_config()

    print("Current Configuration:")
    print("=" * 50)

    print("\n[Sandbox]")
    for var in (
        "SANDBOX_API_URL",
        "SANDBOX_RUNTIME",
        "SANDBOX_VCPUS",
        "SANDBOX_TIMEOUT_MINUTES",
        "SANDBOX_REQUEST_TIMEOUT",
    ):
        print(f"  {var}: {config.get(var) or '(not set)'}")

    print("\n[Credentials]")
    for var in (*CREDENTIAL_ENV_VAR_NAMES, "VERCEL_OIDC_TOKEN"):
        value = config.get(var)
        if var in SENSITIVE_ENV_VARS:
            print(f"  {var}: {mask_sensitive_value(value)}")
        else:
            print(f"  {var}: {value or '(not set)'}")

    print("\n[Logging]")
    print(f"  LOG_LEVEL: {config.get('LOG_LEVEL') or '(not set)'}")
    print(f"  JSON_LOGS: {config.get('JSON_LOGS') or '(not set)'}")

    print("\nNote: Sensitive values (tokens) are masked with ****.")

    return 0


def cmd_validate(args: Namespace) -> int:
    """Handle the 'validate' command - pre-flight configuration checks."""
    if not _load_env_file_arg(args):
        return 1

    print("Configuration Validation")
    print("=" * 50)

    errors: list = []
    warnings: list = []

    print("\n[Settings]")
    try:
        settings = load_settings()
    except ValidationError as e:
        for err in e.errors():
            field = ".".join(str(loc) for loc in err.get("loc", ()))
            errors.append(f"{field}: {err.get('msg')}")
            print(f"  {field}: invalid ✗")
        settings = None
    else:
        print(f"  SANDBOX_RUNTIME: {settings.sandbox_runtime} ✓")
        print(f"  SANDBOX_VCPUS: {settings.sandbox_vcpus} ✓")
        print(f"  SANDBOX_TIMEOUT_MINUTES: {settings.sandbox_timeout_minutes} ✓")

    print("\n[Credentials]")
    if settings is not None:
        try:
            credentials = resolve_credentials(settings)
        except SandboxError as e:
            errors.append(str(e))
            print("  Credential triple: incomplete ✗")
        else:
            if credentials is not None:
                print("  Credential triple: configured ✓")
                print(f"  VERCEL_TOKEN: {mask_sensitive_value(settings.vercel_token)} ✓")
            elif settings.vercel_oidc_token:
                print("  Credential triple: (not set) ~")
                print(
                    f"  VERCEL_OIDC_TOKEN: {mask_sensitive_value(settings.vercel_oidc_token)} ✓"
                )
                warnings.append("Using the platform OIDC token (default sandbox tier)")
            else:
                errors.append(
                    "No sandbox credentials: set VERCEL_TEAM_ID, VERCEL_PROJECT_ID and "
                    "VERCEL_TOKEN, or run where VERCEL_OIDC_TOKEN is provided"
                )
                print("  Credentials: (not set) ✗")

    print("\n" + "=" * 50)
    if errors:
        print(f"\n✗ Validation FAILED with {len(errors)} error(s):")
        for err in errors:
            print(f"  - {err}")
        if warnings:
            print(f"\n~ {len(warnings)} warning(s):")
            for warn in warnings:
                print(f"  - {warn}")
        return 1
    elif warnings:
        print(f"\n✓ Validation PASSED with {len(warnings)} warning(s):")
        for warn in warnings:
            print(f"  - {warn}")
        return 0
    else:
        print("\n✓ Validation PASSED - configuration is valid")
        return 0


def cmd_tools(args: Namespace) -> int:
    """Handle the 'tools' command: print the sandbox tool definitions."""
    setup_logging(level="WARNING")
    registry = create_sandbox_registry()
    print(json.dumps(registry.get_tools(), indent=2))
    return 0


def _prepare_settings(args: Namespace) -> Optional[Settings]:
    """Load env file and CLI overrides, then settings and logging."""
    if not _load_env_file_arg(args, quiet=True):
        return None

    apply_cli_args_to_env(vars(args))

    try:
        settings = load_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return None

    setup_logging(level=settings.log_level, json_logs=settings.json_logs)
    return settings


def _run_sandbox_operation(args: Namespace, operation: SandboxOperation) -> int:
    """Run one operation against a fresh manager and print its JSON result."""
    settings = _prepare_settings(args)
    if settings is None:
        return 1

    async def _run() -> Any:
        async with SandboxManager.from_settings(settings) as manager:
            return await operation(manager)

    try:
        result = asyncio.run(_run())
    except SandboxError as e:
        logger.debug(f"{args.command} failed: {type(e).__name__}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_exec(args: Namespace) -> int:
    """Handle the 'exec' command."""
    return _run_sandbox_operation(
        args,
        lambda manager: manager.run_command(
            args.program,
            args.program_args,
            chat_id=args.chat_id,
            repository_url=args.repo,
            sudo=args.sudo,
            working_directory=args.cwd,
            max_output_lines=args.max_lines,
        ),
    )


def cmd_ls(args: Namespace) -> int:
    """Handle the 'ls' command."""
    return _run_sandbox_operation(
        args,
        lambda manager: manager.list_files(
            chat_id=args.chat_id,
            repository_url=args.repo,
            path=args.path,
            recursive=args.recursive,
        ),
    )


def cmd_cat(args: Namespace) -> int:
    """Handle the 'cat' command."""
    return _run_sandbox_operation(
        args,
        lambda manager: manager.read_file(
            args.file_path, chat_id=args.chat_id, repository_url=args.repo
        ),
    )


def cmd_grep(args: Namespace) -> int:
    """Handle the 'grep' command."""
    return _run_sandbox_operation(
        args,
        lambda manager: manager.search_files(
            args.pattern,
            chat_id=args.chat_id,
            repository_url=args.repo,
            path=args.path,
            case_sensitive=not args.ignore_case,
            include_line_numbers=not args.no_line_numbers,
            file_pattern=args.include,
        ),
    )
