#!/usr/bin/env python3
"""Main CLI entry point for gitscout."""

import argparse
import sys
from typing import Any, Dict, List, Optional

from gitscout.cli.arg_mapping import SANDBOX_ARG_MAPPINGS
from gitscout.cli.commands import (
    cmd_cat,
    cmd_config_show,
    cmd_exec,
    cmd_grep,
    cmd_ls,
    cmd_tools,
    cmd_validate,
    cmd_version,
    get_version,
)
from gitscout.sandbox.manager import DEFAULT_CHAT_ID
from gitscout.sandbox.summarizer import DEFAULT_MAX_LINES


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="gitscout",
        description="gitscout - explore GitHub repositories in disposable sandboxes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gitscout exec --repo https://github.com/owner/repo.git -- git log --oneline -5
  gitscout ls --repo https://github.com/owner/repo.git src --recursive
  gitscout grep --repo https://github.com/owner/repo.git "def main" --include "*.py"
  gitscout config show --env-file .env
  gitscout tools
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
        metavar="COMMAND",
    )

    exec_parser = subparsers.add_parser(
        "exec",
        help="Run a command in a repository sandbox",
        description="Clone the repository into a sandbox and run one command",
    )
    _add_sandbox_arguments(exec_parser)
    exec_parser.add_argument("--sudo", action="store_true", help="Run with elevated privileges")
    exec_parser.add_argument(
        "--cwd", metavar="DIR", help="Working directory for the command"
    )
    exec_parser.add_argument(
        "--max-lines",
        type=_non_negative_int,
        default=DEFAULT_MAX_LINES,
        help=f"Maximum output lines to show (default: {DEFAULT_MAX_LINES})",
    )
    exec_parser.add_argument("program", metavar="PROGRAM", help="Program to run")
    exec_parser.add_argument(
        "program_args",
        metavar="ARG",
        nargs=argparse.REMAINDER,
        help="Arguments for the program",
    )

    ls_parser = subparsers.add_parser(
        "ls",
        help="List files in a repository sandbox",
        description="List a directory of the cloned repository",
    )
    _add_sandbox_arguments(ls_parser)
    ls_parser.add_argument("path", nargs="?", default=".", help="Directory to list")
    ls_parser.add_argument(
        "--recursive", "-R", action="store_true", help="List every file and directory"
    )

    cat_parser = subparsers.add_parser(
        "cat",
        help="Print a file from a repository sandbox",
        description="Read one file of the cloned repository",
    )
    _add_sandbox_arguments(cat_parser)
    cat_parser.add_argument("file_path", metavar="FILE", help="File to read")

    grep_parser = subparsers.add_parser(
        "grep",
        help="Search file contents in a repository sandbox",
        description="Search the cloned repository with grep",
    )
    _add_sandbox_arguments(grep_parser)
    grep_parser.add_argument("pattern", help="Pattern to search for")
    grep_parser.add_argument("path", nargs="?", default=".", help="Directory to search")
    grep_parser.add_argument(
        "--ignore-case", "-i", action="store_true", help="Case-insensitive search"
    )
    grep_parser.add_argument(
        "--no-line-numbers", action="store_true", help="Omit line numbers"
    )
    grep_parser.add_argument(
        "--include", metavar="GLOB", help="Only search files matching GLOB (e.g. '*.py')"
    )

    subparsers.add_parser(
        "tools",
        help="Print the sandbox tool definitions",
        description="Print the JSON tool definitions exposed to the agent",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="View sandbox configuration",
    )
    config_subparsers = config_parser.add_subparsers(
        dest="config_command",
        title="config commands",
        metavar="SUBCOMMAND",
    )
    config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show current configuration",
        description="Display the effective sandbox configuration",
    )
    _add_env_file_argument(config_show_parser)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate configuration",
        description="Perform pre-flight checks on sandbox configuration",
    )
    _add_env_file_argument(validate_parser)

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the gitscout version",
    )

    return parser


def _add_env_file_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env-file",
        "-e",
        metavar="FILE",
        help="Load environment from a .env file (CLI args override)",
    )


def _add_sandbox_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by the sandbox subcommands."""
    _add_env_file_argument(parser)
    parser.add_argument(
        "--repo",
        "-r",
        required=True,
        metavar="URL",
        help="Git URL of the repository to clone",
    )
    parser.add_argument(
        "--chat-id",
        default=DEFAULT_CHAT_ID,
        help=f"Conversation identifier (default: {DEFAULT_CHAT_ID})",
    )

    for mapping in SANDBOX_ARG_MAPPINGS:
        kwargs: Dict[str, Any] = {
            "help": mapping.help_text or f"Set {mapping.env_var}",
            "dest": mapping.cli_arg.lstrip("-").replace("-", "_"),
            # Unset options leave the environment/settings value in place
            "default": None,
        }
        if mapping.choices:
            kwargs["choices"] = mapping.choices
            kwargs["metavar"] = mapping.cli_arg.lstrip("-").upper().replace("-", "_")
        if mapping.arg_type is int:
            kwargs["type"] = int

        flags = [mapping.cli_arg]
        if mapping.short_arg:
            flags.insert(0, mapping.short_arg)
        parser.add_argument(*flags, **kwargs)

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (sets LOG_LEVEL=DEBUG)",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    handlers = {
        "exec": cmd_exec,
        "ls": cmd_ls,
        "cat": cmd_cat,
        "grep": cmd_grep,
        "tools": cmd_tools,
        "validate": cmd_validate,
        "version": cmd_version,
    }

    if args.command == "config":
        if args.config_command == "show":
            return cmd_config_show(args)
        parser.parse_args(["config", "--help"])
        return 0

    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
