"""The repository state synchronization engine.

`RepositoryEngine` is the composition root: it owns the two TTL caches, the
change notifier, the debouncer and the auto-fetch poller, and it is the only
thing that talks to `GitRepo`. Presentation layers read through its accessors
or subscribe to `RepositoryView` updates; they never touch the caches.

Signal flow::

    ChangeNotifier.publish() -> Debouncer.signal() -> (window) -> refresh()
        -> TTLCache.get_or_fetch() -> GitRepo -> parsers -> RepositoryView
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias, assert_never

from . import branches, parsers
from .cache import TTLCache
from .config import Config, RefreshPolicy
from .constants import APP_NAME, NO_COMMITS, NOT_TRACKING, UNKNOWN_USER
from .errors import AuthenticationRequired, CommandFailed, GitOracleError, NoWorkspace
from .git_wrapper import GitRepo, resolve_root
from .models import (
    BlameLine,
    Branch,
    BranchScope,
    CommitRecord,
    DateMode,
    LogLine,
    RepositoryView,
    StatusSnapshot,
)
from .poller import AutoFetchPoller, PollerState
from .scheduling import ChangeNotifier, Debouncer, ListenerSet, Scheduler, Subscription

logger = logging.getLogger(APP_NAME)

_BRANCHES_KEY = "branches"
_STATUS_KEY = "status"

BranchListing: TypeAlias = tuple[list[str], dict[str, list[str]]]


# --- Operations ---
# One variant per operation a presentation layer may request.


@dataclass(frozen=True)
class GetLocalBranches:
    pass


@dataclass(frozen=True)
class GetRemoteBranches:
    pass


@dataclass(frozen=True)
class GetBranches:
    pass


@dataclass(frozen=True)
class GetCommitHistory:
    limit: int | None = None
    date_mode: DateMode | None = None


@dataclass(frozen=True)
class GetLog:
    limit: int | None = None


@dataclass(frozen=True)
class GetStatus:
    pass


@dataclass(frozen=True)
class GetCommitDetails:
    commit: str


@dataclass(frozen=True)
class GetBlame:
    file: str


@dataclass(frozen=True)
class SwitchBranch:
    branch: str


@dataclass(frozen=True)
class CreateBranch:
    branch: str


@dataclass(frozen=True)
class DeleteBranch:
    branch: str
    scope: BranchScope = BranchScope.LOCAL
    remote: str | None = None


@dataclass(frozen=True)
class MergeBranches:
    label: str
    branch: str


@dataclass(frozen=True)
class RebaseBranches:
    label: str
    branch: str


@dataclass(frozen=True)
class CherryPick:
    commit: str


@dataclass(frozen=True)
class StartAutoFetch:
    pass


@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class Dispose:
    pass


Operation: TypeAlias = (
    GetLocalBranches
    | GetRemoteBranches
    | GetBranches
    | GetCommitHistory
    | GetLog
    | GetStatus
    | GetCommitDetails
    | GetBlame
    | SwitchBranch
    | CreateBranch
    | DeleteBranch
    | MergeBranches
    | RebaseBranches
    | CherryPick
    | StartAutoFetch
    | Refresh
    | Dispose
)


class RepositoryEngine:
    """Keeps a cached, refreshable view of one repository.

    Attributes:
        config (Config): The effective configuration.
        notifier (ChangeNotifier): Where change signals are published.
    """

    def __init__(
        self,
        root: Path | str | None,
        scheduler: Scheduler,
        config: Config | None = None,
        notifier: ChangeNotifier | None = None,
        confirm_init: Callable[[GitRepo], bool] | None = None,
        on_auth_failure: Callable[[AuthenticationRequired], None] | None = None,
    ):
        """Wires caches, debouncer and notifier together.

        Args:
            root (Path | str | None): The workspace folder. None defers every
                operation with `NoWorkspace` until `change_root` is called.
            scheduler (Scheduler): Clock and timers (an asyncio loop works).
            config (Config | None, optional): Defaults to `Config()`.
            notifier (ChangeNotifier | None, optional): Shared change signals.
                A private one is created when omitted.
            confirm_init (Callable, optional): Asked whether to initialize a
                root that is not yet a repository.
            on_auth_failure (Callable, optional): Told when auto-fetch is
                disabled by a credential failure.
        """
        self.config = config or Config()
        self.notifier = notifier or ChangeNotifier()
        self._scheduler = scheduler
        self._confirm_init = confirm_init
        self._on_auth_failure = on_auth_failure

        sync = self.config.sync
        self._branch_cache: TTLCache[BranchListing] = TTLCache(
            sync.cache_ttl, scheduler.time, name="branches"
        )
        self._status_cache: TTLCache[StatusSnapshot] = TTLCache(
            sync.cache_ttl, scheduler.time, name="status"
        )
        self._debouncer = Debouncer(scheduler, sync.debounce_window)
        self._views = ListenerSet("view listeners")
        self._last_view: RepositoryView | None = None
        self._poller: AutoFetchPoller | None = None
        self._disposed = False

        self._subscriptions = [
            self.notifier.subscribe(self._debouncer.signal),
            self._debouncer.subscribe(self._background_refresh),
        ]

        self._repo: GitRepo | None = None
        if root is not None:
            self._repo = GitRepo(resolve_root(root), self.config.core.git_path)

    # --- Root ---

    @property
    def root(self) -> Path | None:
        return self._repo.path if self._repo else None

    def _require_repo(self) -> GitRepo:
        if self._repo is None:
            raise NoWorkspace()
        return self._repo

    def change_root(self, path: Path | str) -> None:
        """Points the engine at another working copy.

        Cached state and the poller belong to the old root and are discarded.
        """
        repo = GitRepo(resolve_root(path), self.config.core.git_path)
        if self._poller is not None:
            self._poller.dispose()
            self._poller = None
        self._repo = repo
        self._invalidate()
        self._last_view = None
        logger.info(f"Repository root changed to {repo.path}")
        self.notifier.publish()

    # --- Subscriptions ---

    def subscribe(self, listener: Callable[[RepositoryView], object]) -> Subscription:
        """Registers a listener for pushed `RepositoryView` updates."""
        return self._views.add(listener)

    @property
    def last_view(self) -> RepositoryView | None:
        return self._last_view

    # --- Queries ---

    def _read_branches(self) -> BranchListing:
        repo = self._require_repo()
        local = repo.local_branches()
        remotes = branches.split_remote_branches(repo.remote_branches())
        return local, remotes

    def _branch_listing(self) -> BranchListing:
        return self._branch_cache.get_or_fetch(_BRANCHES_KEY, self._read_branches)

    def get_local_branches(self) -> list[str]:
        local, _ = self._branch_listing()
        return list(local)

    def get_remote_branches(self) -> dict[str, list[str]]:
        _, remotes = self._branch_listing()
        return {remote: list(names) for remote, names in remotes.items()}

    def get_branches(self) -> list[Branch]:
        local, remotes = self._branch_listing()
        return branches.to_branches(local, remotes)

    def get_commit_history(
        self, limit: int | None = None, date_mode: DateMode | None = None
    ) -> list[CommitRecord]:
        """Returns the most recent commits of HEAD.

        Args:
            limit (int | None, optional): Defaults to `max_commit_history`.
            date_mode (DateMode | None, optional): Defaults to the
                `show_relative_dates` setting.

        Returns:
            list[CommitRecord]: Newest first; empty on an unborn branch.
        """
        repo = self._require_repo()
        history = self.config.history
        if limit is None:
            limit = history.max_commit_history
        if date_mode is None:
            date_mode = DateMode.from_flag(history.show_relative_dates)
        if repo.short_head() is None:
            return []
        return parsers.parse_commit_history(repo.log_history(limit, date_mode))

    def get_log(self, limit: int | None = None) -> str:
        """Returns the raw decorated graph log of all refs.

        An unborn HEAD only empties the log when no branch exists at all; on
        an orphan branch the other refs are still drawn.
        """
        repo = self._require_repo()
        if repo.short_head() is None:
            local, remotes = self._branch_listing()
            if not local and not remotes:
                return ""
        if limit is None:
            limit = self.config.history.log_limit
        return repo.log_graph(limit)

    def get_log_lines(self, limit: int | None = None) -> list[LogLine]:
        return parsers.parse_log(self.get_log(limit))

    def _read_status(self) -> StatusSnapshot:
        repo = self._require_repo()
        added, modified, deleted = parsers.parse_porcelain_counts(
            repo.status_porcelain()
        )
        return StatusSnapshot(
            branch=repo.current_branch(),
            user=repo.user_name() or UNKNOWN_USER,
            added=added,
            modified=modified,
            deleted=deleted,
            remote=repo.upstream() or NOT_TRACKING,
            commit_hash=repo.short_head() or NO_COMMITS,
        )

    def get_status(self) -> StatusSnapshot:
        """Returns the working-tree snapshot.

        Never raises for git failures: the result is an error snapshot
        (`StatusSnapshot.error` set) that panels can render as-is.
        """
        try:
            return self._status_cache.get_or_fetch(_STATUS_KEY, self._read_status)
        except GitOracleError as e:
            logger.error(f"STATUS ERROR: {e}")
            return StatusSnapshot.failed(str(e))

    def get_commit_details(self, commit: str) -> str:
        return self._require_repo().show_commit(commit)

    def get_blame(self, file: str) -> list[BlameLine]:
        return parsers.parse_blame(self._require_repo().blame(file))

    # --- Mutations ---

    def _mutate(self, description: str, action: Callable[[GitRepo], None]) -> None:
        """Runs a mutating command, then invalidates and signals a change.

        Failures are logged and re-raised; the caller notifies the user. A
        failed merge, rebase or cherry-pick may still have touched the
        working tree, so the change is signalled either way.
        """
        repo = self._require_repo()
        try:
            action(repo)
        except GitOracleError as e:
            logger.error(f"{description} failed: {e}")
            self._invalidate()
            self.notifier.publish()
            raise
        logger.info(f"{description} succeeded.")
        self._invalidate()
        self.notifier.publish()

    def switch_branch(self, branch: str) -> None:
        self._mutate(f"Switch to '{branch}'", lambda repo: repo.switch(branch))

    def create_branch(self, branch: str) -> None:
        self._mutate(f"Create '{branch}'", lambda repo: repo.create_branch(branch))

    def delete_branch(
        self,
        branch: str,
        scope: BranchScope = BranchScope.LOCAL,
        remote: str | None = None,
    ) -> None:
        """Deletes a local branch, or a branch on a remote.

        Args:
            branch (str): The branch name. For remote scope without `remote`,
                a qualified 'origin/name' is split on its first slash.
            scope (BranchScope, optional): Defaults to LOCAL.
            remote (str | None, optional): The owning remote for REMOTE scope.

        Raises:
            ValueError: If a remote branch cannot be attributed to a remote.
        """
        if scope is BranchScope.LOCAL:
            self._mutate(
                f"Delete '{branch}'", lambda repo: repo.delete_local_branch(branch)
            )
            return

        if remote is None:
            remote, sep, branch = branch.partition("/")
            if not sep or not branch:
                raise ValueError(f"Cannot tell which remote owns '{remote}'")
        owner = remote
        self._mutate(
            f"Delete '{owner}/{branch}'",
            lambda repo: repo.delete_remote_branch(owner, branch),
        )

    def merge_branches(self, label: str, branch: str) -> None:
        self._mutate(
            f"Merge '{label}' '{branch}'", lambda repo: repo.merge(label, branch)
        )

    def rebase_branches(self, label: str, branch: str) -> None:
        self._mutate(
            f"Rebase '{branch}' onto '{label}'",
            lambda repo: repo.rebase(label, branch),
        )

    def cherry_pick(self, commit: str) -> bool:
        """Applies a commit onto HEAD.

        Returns:
            bool: False if git rejected the cherry-pick (e.g. a conflict).
        """
        try:
            self._mutate(
                f"Cherry-pick {commit}", lambda repo: repo.cherry_pick(commit)
            )
        except CommandFailed:
            return False
        return True

    # --- Lifecycle ---

    @property
    def auto_fetch_state(self) -> PollerState | None:
        return self._poller.state if self._poller else None

    def start_auto_fetch(self) -> bool:
        """Starts background fetching for the current root.

        Returns:
            bool: True if the fetch interval is armed.
        """
        repo = self._require_repo()
        if self._disposed:
            return False
        if self._poller is None:
            self._poller = AutoFetchPoller(
                repo,
                self._scheduler,
                self.config.sync.fetch_interval,
                confirm_init=self._confirm_init,
                on_auth_failure=self._on_auth_failure,
                on_fetched=self.notifier.publish,
            )
        return self._poller.start()

    def _invalidate(self) -> None:
        self._branch_cache.invalidate()
        self._status_cache.invalidate()

    def refresh(self) -> RepositoryView:
        """Discards cached state, re-reads the repository and pushes the view.

        With `RefreshPolicy.ON_CHANGE` listeners only hear about views that
        differ from the last one pushed.

        Returns:
            RepositoryView: The freshly read view.
        """
        self._invalidate()
        local, remotes = self._branch_listing()
        view = RepositoryView(
            local_branches=branches.group_by_prefix(local),
            remote_branches=branches.group_remote_branches(remotes),
            status=self.get_status(),
        )
        self._push(view)
        return view

    def _push(self, view: RepositoryView) -> None:
        policy = self.config.sync.refresh_policy
        if policy is RefreshPolicy.ON_CHANGE and view == self._last_view:
            logger.debug("View unchanged; skipping push.")
            return
        self._last_view = view
        self._views.notify(view)

    def _background_refresh(self) -> None:
        if self._disposed or self._repo is None:
            return
        self.refresh()

    def dispose(self) -> None:
        """Cancels timers and drops subscriptions. Safe to call repeatedly.

        Commands already running are left to finish; their results are
        simply not pushed anywhere.
        """
        if self._disposed:
            return
        self._disposed = True
        self._debouncer.cancel()
        if self._poller is not None:
            self._poller.dispose()
        for subscription in self._subscriptions:
            subscription.dispose()
        self._views.clear()
        logger.debug("Engine disposed.")

    # --- Dispatch ---

    def dispatch(self, operation: Operation) -> object:
        """Executes an operation requested by a presentation layer."""
        match operation:
            case GetLocalBranches():
                return self.get_local_branches()
            case GetRemoteBranches():
                return self.get_remote_branches()
            case GetBranches():
                return self.get_branches()
            case GetCommitHistory(limit=limit, date_mode=date_mode):
                return self.get_commit_history(limit, date_mode)
            case GetLog(limit=limit):
                return self.get_log(limit)
            case GetStatus():
                return self.get_status()
            case GetCommitDetails(commit=commit):
                return self.get_commit_details(commit)
            case GetBlame(file=file):
                return self.get_blame(file)
            case SwitchBranch(branch=branch):
                self.switch_branch(branch)
            case CreateBranch(branch=branch):
                self.create_branch(branch)
            case DeleteBranch(branch=branch, scope=scope, remote=remote):
                self.delete_branch(branch, scope, remote)
            case MergeBranches(label=label, branch=branch):
                self.merge_branches(label, branch)
            case RebaseBranches(label=label, branch=branch):
                self.rebase_branches(label, branch)
            case CherryPick(commit=commit):
                return self.cherry_pick(commit)
            case StartAutoFetch():
                return self.start_auto_fetch()
            case Refresh():
                return self.refresh()
            case Dispose():
                self.dispose()
            case _:
                assert_never(operation)
        return None
