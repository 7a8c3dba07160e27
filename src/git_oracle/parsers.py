"""Parsers that turn raw git output into value objects.

None of these functions run git. They accept text and never raise on
unexpected input: malformed records are skipped (and logged) so a single odd
line cannot blank out a whole panel.
"""

import datetime
import logging
import re

from .constants import APP_NAME, FIELD_DELIMITER, GRAPH_GLYPHS
from .models import BlameLine, CommitRecord, LogCommit, LogLine

logger = logging.getLogger(APP_NAME)

_GRAPH_CHARS = r"*|/\\_ .-"

# Matches the `%h %ad |%d | %s [%an]` format drawn with --graph --date=short.
LOG_LINE_RE = re.compile(
    rf"^(?P<graph>[{_GRAPH_CHARS}]*)"
    r"(?P<hash>[0-9a-f]{4,40}) "
    r"(?P<date>\d{4}-\d{2}-\d{2}) \|"
    r"(?: \((?P<refs>[^()]*)\))? \| "
    r"(?P<message>.*)"
    r" \[(?P<author>[^\[\]]+)\]$"
)

_LEADING_GRAPH_RE = re.compile(rf"^[{_GRAPH_CHARS}]*")

_BLAME_HEADER_RE = re.compile(r"^([0-9a-f]{40}) \d+ (\d+)")


def parse_commit_history(text: str) -> list[CommitRecord]:
    """Parses `hash|author|date|message` lines into commit records.

    The subject may itself contain the delimiter, so only the first three
    splits are fields; everything after them is re-joined into the message.

    Args:
        text (str): Output of `git log --pretty=format:%H|%an|%ad|%s`.

    Returns:
        list[CommitRecord]: One record per well-formed line; empty for empty input.
    """
    records = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        parts = line.split(FIELD_DELIMITER)
        if len(parts) < 4:
            logger.warning(f"Skipping malformed history line: {line!r}")
            continue
        commit_hash, author, date, *message = parts
        records.append(
            CommitRecord(
                hash=commit_hash,
                author=author,
                date=date,
                message=FIELD_DELIMITER.join(message),
            )
        )
    return records


def format_graph(graph: str) -> str:
    """Translates ASCII graph characters into display glyphs.

    Spaces become no-break spaces so proportional renderers keep the columns.
    """
    return "".join(GRAPH_GLYPHS.get(char, char) for char in graph)


def _split_refs(decoration: str | None) -> tuple[str, ...]:
    if not decoration:
        return ()
    return tuple(ref.strip() for ref in decoration.split(",") if ref.strip())


def parse_log_line(line: str) -> LogLine:
    """Extracts graph, hash, date, message, refs and author from a log line.

    Lines that do not look like a commit (merge connectors, blank lines,
    anything unexpected) come back with `commit=None` and only their leading
    graph characters translated.

    Args:
        line (str): One line of the decorated graph log.

    Returns:
        LogLine: The parsed line.
    """
    match = LOG_LINE_RE.match(line)
    if match is None:
        leading = _LEADING_GRAPH_RE.match(line)
        graph = leading.group(0) if leading else ""
        return LogLine(raw=line, graph=format_graph(graph))

    commit = LogCommit(
        hash=match.group("hash"),
        date=match.group("date"),
        message=match.group("message").strip(),
        author=match.group("author"),
        refs=_split_refs(match.group("refs")),
    )
    return LogLine(raw=line, graph=format_graph(match.group("graph")), commit=commit)


def parse_log(text: str) -> list[LogLine]:
    """Parses every line of a decorated graph log."""
    if not text:
        return []
    return [parse_log_line(line) for line in text.rstrip("\n").split("\n")]


def parse_porcelain_counts(lines: list[str]) -> tuple[int, int, int]:
    """Counts working-tree changes from `git status --porcelain` lines.

    Args:
        lines (list[str]): Status lines in `XY path` form.

    Returns:
        tuple[int, int, int]: (added, modified, deleted). Untracked and newly
                              staged paths count as added.
    """
    added = modified = deleted = 0
    for line in lines:
        code = line[:2]
        if len(code) < 2:
            continue
        if code == "??" or "A" in code:
            added += 1
        elif "D" in code:
            deleted += 1
        elif code != "!!":
            modified += 1
    return added, modified, deleted


def parse_blame(text: str) -> list[BlameLine]:
    """Parses `git blame --line-porcelain` output.

    Args:
        text (str): The porcelain output; every line carries full headers.

    Returns:
        list[BlameLine]: One entry per line of the blamed file.
    """
    result = []
    commit_hash = author = date = ""
    line_number = 0
    for line in text.split("\n"):
        if line.startswith("\t"):
            result.append(
                BlameLine(
                    hash=commit_hash,
                    author=author,
                    date=date,
                    line=line_number,
                    content=line[1:],
                )
            )
        elif header := _BLAME_HEADER_RE.match(line):
            commit_hash = header.group(1)
            line_number = int(header.group(2))
            author = date = ""
        elif line.startswith("author "):
            author = line.removeprefix("author ")
        elif line.startswith("author-time "):
            try:
                stamp = int(line.removeprefix("author-time "))
                date = datetime.datetime.fromtimestamp(stamp).strftime(
                    "%Y-%m-%d %H:%M:%S"
                )
            except ValueError:
                logger.warning(f"Unreadable blame timestamp: {line!r}")
    return result
