"""Head/tail truncation of command output."""

from dataclasses import dataclass

DEFAULT_MAX_LINES = 20


@dataclass(frozen=True)
class TruncatedView:
    """Bounded excerpt of a longer text."""

    text: str
    total_lines: int
    is_truncated: bool


def truncate_output(output: str, max_lines: int = DEFAULT_MAX_LINES) -> TruncatedView:
    """
    Condense ``output`` to its first and last ``max_lines // 2`` lines.

    Lines are counted by splitting on newlines, so a trailing newline counts
    as a final empty line. Empty output is zero lines.

    Args:
        output: Full text
        max_lines: Line budget for the excerpt

    Returns:
        TruncatedView with the excerpt, the original line count and whether
        anything was omitted

    Raises:
        ValueError: If max_lines is negative
    """
    if max_lines < 0:
        raise ValueError(f"max_lines must be >= 0, got {max_lines}")
    if not output:
        return TruncatedView(text="", total_lines=0, is_truncated=False)

    lines = output.split("\n")
    total_lines = len(lines)

    if total_lines <= max_lines:
        return TruncatedView(text=output, total_lines=total_lines, is_truncated=False)

    half = max_lines // 2
    head = lines[:half]
    tail = lines[total_lines - half :] if half else []
    text = (
        "\n".join(head)
        + f"\n... [{total_lines - max_lines} lines omitted] ...\n"
        + "\n".join(tail)
    )
    return TruncatedView(text=text, total_lines=total_lines, is_truncated=True)
