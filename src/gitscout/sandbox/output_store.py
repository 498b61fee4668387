"""Per-conversation log of executed commands and their full output."""

import re
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from gitscout.utils.logger import get_logger

from .errors import OutputSearchFailedError

logger = get_logger(__name__)

DEFAULT_MAX_RESULTS = 50


def new_command_id() -> str:
    """Generate a unique, roughly time-ordered command identifier."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True)
class CommandRecord:
    """Full captured result of one executed command."""

    command_id: str
    command: str
    stdout: str
    stderr: str
    exit_code: int
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class OutputMatch:
    command_id: str
    command: str
    stream: str
    line: str
    line_number: int


@dataclass
class OutputSearchResult:
    """Matches from stored command output, capped at ``max_results``."""

    pattern: str
    command_id: str
    matches: List[OutputMatch]
    total_matches: int
    limited: bool = False
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": True,
            "pattern": self.pattern,
            "command_id": self.command_id,
            "matches": [asdict(m) for m in self.matches],
            "match_count": len(self.matches),
            "total_matches": self.total_matches,
            "limited": self.limited,
        }
        if self.message:
            result["message"] = self.message
        return result


class OutputStore:
    """Append-only command log keyed by conversation id.

    Records outlive sandbox evictions; they are only dropped by ``clear``.
    """

    def __init__(self):
        self._records: Dict[str, List[CommandRecord]] = {}

    def append(self, chat_id: str, record: CommandRecord) -> None:
        self._records.setdefault(chat_id, []).append(record)

    def records(self, chat_id: str) -> Tuple[CommandRecord, ...]:
        """Records for a conversation in execution order."""
        return tuple(self._records.get(chat_id, ()))

    def get(self, chat_id: str, command_id: str) -> Optional[CommandRecord]:
        for record in self._records.get(chat_id, ()):
            if record.command_id == command_id:
                return record
        return None

    def clear(self, chat_id: str) -> None:
        self._records.pop(chat_id, None)

    def clear_all(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())

    def search(
        self,
        chat_id: str,
        pattern: str,
        command_id: Optional[str] = None,
        search_stdout: bool = True,
        search_stderr: bool = True,
        case_sensitive: bool = False,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> OutputSearchResult:
        """
        Search stored output line by line with a regular expression.

        Matches are ordered by record, then stream (stdout before stderr),
        then line.

        Args:
            chat_id: Conversation whose records are searched
            pattern: Python regular expression
            command_id: Restrict the search to one command
            search_stdout: Include stdout lines
            search_stderr: Include stderr lines
            case_sensitive: Match case exactly
            max_results: Maximum number of matches returned

        Returns:
            OutputSearchResult; empty with a message when there is nothing to search

        Raises:
            OutputSearchFailedError: If the pattern is not a valid regular expression
            ValueError: If max_results is negative
        """
        if max_results < 0:
            raise ValueError(f"max_results must be >= 0, got {max_results}")

        scope = command_id or "all"
        records = self._records.get(chat_id, [])
        if not records:
            return OutputSearchResult(
                pattern=pattern,
                command_id=scope,
                matches=[],
                total_matches=0,
                message=f'No command outputs found for chat "{chat_id}". Run some commands first.',
            )

        if command_id:
            records = [r for r in records if r.command_id == command_id]
            if not records:
                return OutputSearchResult(
                    pattern=pattern,
                    command_id=scope,
                    matches=[],
                    total_matches=0,
                    message=f'No command found with command_id "{command_id}"',
                )

        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            raise OutputSearchFailedError(
                f"Failed to search command output: invalid pattern {pattern!r}: {e}"
            ) from e

        streams = []
        if search_stdout:
            streams.append("stdout")
        if search_stderr:
            streams.append("stderr")

        matches = list(_iter_matches(records, streams, regex))
        total = len(matches)
        limited = total > max_results

        logger.debug(
            f"Output search for {pattern!r} in chat {chat_id} ({scope}): {total} matches"
        )

        return OutputSearchResult(
            pattern=pattern,
            command_id=scope,
            matches=matches[:max_results],
            total_matches=total,
            limited=limited,
            message=f"Found {total} matches, showing first {max_results}" if limited else None,
        )


def _iter_matches(
    records: List[CommandRecord], streams: List[str], regex: "re.Pattern[str]"
) -> Iterator[OutputMatch]:
    for record in records:
        for stream in streams:
            text = getattr(record, stream)
            if not text:
                continue
            for index, line in enumerate(text.split("\n")):
                if regex.search(line):
                    yield OutputMatch(
                        command_id=record.command_id,
                        command=record.command,
                        stream=stream,
                        line=line,
                        line_number=index + 1,
                    )
