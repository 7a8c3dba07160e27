"""Value objects produced by the synchronization engine.

Everything here is immutable: a refresh produces new objects rather than
patching existing ones.
"""

import datetime
import enum
from dataclasses import dataclass, field

from .constants import NO_COMMITS, NOT_TRACKING


class BranchScope(enum.Enum):
    """Where a branch lives."""

    LOCAL = "local"
    REMOTE = "remote"


class DateMode(enum.Enum):
    """How commit dates are rendered by `git log`."""

    RELATIVE = "relative"
    ABSOLUTE = "iso"

    @classmethod
    def from_flag(cls, show_relative_dates: bool) -> "DateMode":
        return cls.RELATIVE if show_relative_dates else cls.ABSOLUTE


@dataclass(frozen=True)
class Branch:
    """A local or remote branch.

    Attributes:
        name (str): The branch name without any remote qualifier.
        scope (BranchScope): Local or remote.
        remote (str | None): The owning remote for remote branches.
    """

    name: str
    scope: BranchScope = BranchScope.LOCAL
    remote: str | None = None

    @property
    def qualified_name(self) -> str:
        """The name git accepts for this branch (e.g. 'origin/main')."""
        if self.remote:
            return f"{self.remote}/{self.name}"
        return self.name


@dataclass(frozen=True)
class Remote:
    """A configured remote and its branches in first-seen order."""

    name: str
    branches: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommitRecord:
    """A single entry of the commit history.

    Attributes:
        hash (str): The full commit hash.
        author (str): The author name.
        date (str): Relative ('2 hours ago') or absolute date, as git rendered it.
        message (str): The subject line, verbatim.
    """

    hash: str
    author: str
    date: str
    message: str


@dataclass(frozen=True)
class LogCommit:
    """Structured fields of a decorated graph log line."""

    hash: str
    date: str
    message: str
    author: str
    refs: tuple[str, ...] = ()

    @property
    def head_branch(self) -> str | None:
        """The branch HEAD points at, if this commit carries `HEAD -> name`."""
        for ref in self.refs:
            if ref.startswith("HEAD -> "):
                return ref.removeprefix("HEAD -> ")
        return None


@dataclass(frozen=True)
class LogLine:
    """One display line of the decorated graph log.

    Attributes:
        raw (str): The line exactly as git printed it.
        graph (str): The leading graph characters translated to display glyphs.
        commit (LogCommit | None): Parsed fields, or None for pure graph lines
            and anything else the formatter does not recognize.
    """

    raw: str
    graph: str
    commit: LogCommit | None = None

    @property
    def is_commit(self) -> bool:
        return self.commit is not None


@dataclass(frozen=True)
class BlameLine:
    """Attribution of a single line of a file."""

    hash: str
    author: str
    date: str
    line: int
    content: str


def _now_label() -> str:
    return datetime.datetime.now().strftime("%b %d, %Y, %I:%M:%S %p")


@dataclass(frozen=True)
class StatusSnapshot:
    """The working-tree state at one instant.

    `timestamp` records when the snapshot was taken and is excluded from
    equality, so two snapshots of an unchanged repository compare equal.

    Attributes:
        branch (str): The checked-out branch (or 'HEAD' when detached).
        user (str): The configured `user.name`.
        timestamp (str): When the snapshot was taken.
        added (int): Untracked or newly staged paths.
        modified (int): Modified, renamed or copied paths.
        deleted (int): Deleted paths.
        remote (str): The upstream ref, or 'Not tracking'.
        commit_hash (str): Abbreviated HEAD hash, or 'No commits'.
        error (str | None): Set when the snapshot stands in for a failed query.
    """

    branch: str
    user: str
    timestamp: str = field(default_factory=_now_label, compare=False)
    added: int = 0
    modified: int = 0
    deleted: int = 0
    remote: str = NOT_TRACKING
    commit_hash: str = NO_COMMITS
    error: str | None = None

    @classmethod
    def failed(cls, message: str) -> "StatusSnapshot":
        """Builds a clearly marked error snapshot for presentation layers."""
        return cls(branch="", user="", error=message)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RepositoryView:
    """Everything a panel needs to render the repository in one value.

    Attributes:
        local_branches (dict[str, list[str]]): Local branches grouped by prefix.
        remote_branches (dict[str, dict[str, list[str]]]): Remote, then prefix.
        status (StatusSnapshot): The working-tree snapshot.
    """

    local_branches: dict[str, list[str]]
    remote_branches: dict[str, dict[str, list[str]]]
    status: StatusSnapshot
