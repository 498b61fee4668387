"""File listing, reading and pattern search inside a sandbox.

Each operation is a small command builder on top of CommandExecutor.execute,
so a dead sandbox is replaced and the whole operation retried once.
"""

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from gitscout.utils.logger import get_logger

from .errors import FileListFailedError, FileReadFailedError, FileSearchFailedError
from .executor import CommandExecutor
from .provider import SandboxHandle

logger = get_logger(__name__)

# grep exit codes: 0 = matches, 1 = no matches, anything else = error
GREP_NO_MATCH = 1
ALL_FILES_GLOB = "*"

_RECURSIVE_NUMBERED_LINE = re.compile(r"^([^:]+):(\d+):(.*)$")
_NUMBERED_LINE = re.compile(r"^(\d+):(.*)$")


@dataclass
class FileListing:
    path: str
    recursive: bool
    output: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "path": self.path,
            "recursive": self.recursive,
            "output": self.output,
        }


@dataclass
class FileContent:
    file_path: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "file_path": self.file_path, "content": self.content}


@dataclass(frozen=True)
class FileMatch:
    file: str
    line: str
    line_number: Optional[int] = None


@dataclass
class FileSearchResult:
    pattern: str
    path: str
    matches: List[FileMatch] = field(default_factory=list)
    file_pattern: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": True,
            "pattern": self.pattern,
            "path": self.path,
            "matches": [
                {k: v for k, v in asdict(m).items() if v is not None} for m in self.matches
            ],
            "match_count": len(self.matches),
        }
        if self.file_pattern:
            result["file_pattern"] = self.file_pattern
        if self.message:
            result["message"] = self.message
        return result


def parse_grep_output(
    output: str, default_file: str, include_line_numbers: bool, per_file: bool
) -> List[FileMatch]:
    """
    Parse grep output lines into matches.

    Recursive output with line numbers is ``file:line:content``; output for a
    single named file is ``line:content``. Lines that do not parse keep the
    raw text and are attributed to ``default_file``.
    """
    matches: List[FileMatch] = []
    for raw in output.split("\n"):
        if not raw.strip():
            continue
        if include_line_numbers:
            if per_file:
                m = _NUMBERED_LINE.match(raw)
                if m:
                    matches.append(
                        FileMatch(file=default_file, line=m.group(2), line_number=int(m.group(1)))
                    )
                    continue
            else:
                m = _RECURSIVE_NUMBERED_LINE.match(raw)
                if m:
                    matches.append(
                        FileMatch(file=m.group(1), line=m.group(3), line_number=int(m.group(2)))
                    )
                    continue
        matches.append(FileMatch(file=default_file, line=raw))
    return matches


def _grep_flags(case_sensitive: bool, include_line_numbers: bool) -> List[str]:
    flags = []
    if not case_sensitive:
        flags.append("-i")
    if include_line_numbers:
        flags.append("-n")
    return flags


class SandboxOperations:
    """Structured file operations for one sandbox manager."""

    def __init__(self, executor: CommandExecutor):
        self.executor = executor

    async def list_files(
        self,
        chat_id: str,
        repository_url: Optional[str] = None,
        path: str = ".",
        recursive: bool = False,
    ) -> FileListing:
        """List a directory, or every file and directory beneath it when recursive."""
        if recursive:
            cmd, args = "find", [path, "-type", "f", "-o", "-type", "d"]
        else:
            cmd, args = "ls", ["-la", path]

        async def _list(handle: SandboxHandle) -> FileListing:
            result = await handle.run_command(cmd, args)
            if result.exit_code != 0:
                raise FileListFailedError(f"Failed to list files: {result.stderr}")
            return FileListing(path=path, recursive=recursive, output=result.stdout or "")

        return await self.executor.execute(
            chat_id, repository_url, _list, FileListFailedError, "list files"
        )

    async def read_file(
        self, chat_id: str, file_path: str, repository_url: Optional[str] = None
    ) -> FileContent:
        """Return the full content of a file."""

        async def _read(handle: SandboxHandle) -> FileContent:
            result = await handle.run_command("cat", [file_path])
            if result.exit_code != 0:
                raise FileReadFailedError(f"Failed to read file: {result.stderr}")
            return FileContent(file_path=file_path, content=result.stdout or "")

        return await self.executor.execute(
            chat_id, repository_url, _read, FileReadFailedError, "read file"
        )

    async def search_files(
        self,
        chat_id: str,
        pattern: str,
        repository_url: Optional[str] = None,
        path: str = ".",
        case_sensitive: bool = True,
        include_line_numbers: bool = True,
        file_pattern: Optional[str] = None,
    ) -> FileSearchResult:
        """
        Search file contents for a grep pattern.

        With a ``file_pattern`` glob other than ``*``, matching files are found
        first and grepped one by one; otherwise a single recursive grep runs
        over ``path``. "No matches" is an empty result, not an error.
        """
        flags = _grep_flags(case_sensitive, include_line_numbers)

        async def _search_glob(handle: SandboxHandle) -> FileSearchResult:
            found = await handle.run_command(
                "find", [path, "-type", "f", "-name", file_pattern]
            )
            if found.exit_code != 0:
                raise FileSearchFailedError(f"Failed to find files: {found.stderr}")

            files = [f.strip() for f in (found.stdout or "").split("\n") if f.strip()]
            if not files:
                return FileSearchResult(
                    pattern=pattern,
                    path=path,
                    file_pattern=file_pattern,
                    message=f"No files matching pattern '{file_pattern}' found",
                )

            matches: List[FileMatch] = []
            for file in files:
                grep = await handle.run_command("grep", [*flags, "-e", pattern, file])
                # Unreadable files and non-matching files are skipped
                if grep.exit_code == 0 and grep.stdout:
                    matches.extend(
                        parse_grep_output(grep.stdout, file, include_line_numbers, per_file=True)
                    )

            logger.debug(
                f"Searched {len(files)} file(s) matching {file_pattern} for {pattern!r}: "
                f"{len(matches)} match(es)"
            )
            return FileSearchResult(
                pattern=pattern, path=path, matches=matches, file_pattern=file_pattern
            )

        async def _search_tree(handle: SandboxHandle) -> FileSearchResult:
            grep = await handle.run_command("grep", [*flags, "-r", "-e", pattern, path])
            if grep.exit_code not in (0, GREP_NO_MATCH):
                raise FileSearchFailedError(f"Failed to search files: {grep.stderr}")
            matches = parse_grep_output(
                grep.stdout or "", path, include_line_numbers, per_file=False
            )
            return FileSearchResult(pattern=pattern, path=path, matches=matches)

        operation = (
            _search_glob if file_pattern and file_pattern != ALL_FILES_GLOB else _search_tree
        )
        return await self.executor.execute(
            chat_id, repository_url, operation, FileSearchFailedError, "search files"
        )
