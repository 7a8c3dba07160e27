"""Background auto-fetch with authentication fail-closed semantics."""

import enum
import logging
from collections.abc import Callable

from .constants import APP_NAME, DEFAULT_FETCH_INTERVAL
from .errors import AuthenticationRequired, GitOracleError
from .git_wrapper import GitRepo
from .scheduling import Scheduler, TimerHandle

logger = logging.getLogger(APP_NAME)


class PollerState(enum.Enum):
    """Lifecycle of an `AutoFetchPoller`.

    IDLE -> RUNNING -> IDLE on every successful or transiently failed fetch.
    RUNNING -> AUTH_FAILED -> DISABLED on a credential failure; DISABLED is
    terminal for the instance.
    """

    IDLE = "idle"
    RUNNING = "running"
    AUTH_FAILED = "auth_failed"
    DISABLED = "disabled"


class AutoFetchPoller:
    """Periodically runs `git fetch` until credentials are rejected.

    Transient failures (network down, remote unreachable) are logged and the
    interval keeps running. An authentication failure is reported once and
    permanently stops this poller; a new engine must be built to retry.

    Attributes:
        interval (float): Seconds between fetches.
    """

    def __init__(
        self,
        repo: GitRepo,
        scheduler: Scheduler,
        interval: float = DEFAULT_FETCH_INTERVAL,
        confirm_init: Callable[[GitRepo], bool] | None = None,
        on_auth_failure: Callable[[AuthenticationRequired], None] | None = None,
        on_fetched: Callable[[], None] | None = None,
    ):
        """Initializes the poller in the IDLE state.

        Args:
            repo (GitRepo): The repository to fetch.
            scheduler (Scheduler): Source of interval timers.
            interval (float, optional): Seconds between fetches.
            confirm_init (Callable, optional): Asked whether to `git init` a root
                that is not a repository. Without it the poller does not start.
            on_auth_failure (Callable, optional): Told once about the credential
                failure that disabled the poller.
            on_fetched (Callable, optional): Runs after every successful fetch.
        """
        self.repo = repo
        self.interval = interval
        self._scheduler = scheduler
        self._confirm_init = confirm_init
        self._on_auth_failure = on_auth_failure
        self._on_fetched = on_fetched
        self._state = PollerState.IDLE
        self._timer: TimerHandle | None = None
        self._disposed = False
        self.last_error: GitOracleError | None = None

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def start(self) -> bool:
        """Verifies the repository, fetches once, then arms the interval.

        Returns:
            bool: True if the interval is armed, False if the poller did not
                  start or has been disabled.
        """
        if self._state is PollerState.DISABLED or self._disposed:
            return False
        if self.armed:
            return True

        if not self._ensure_repository():
            return False

        if not self._fetch_once():
            return False

        self._arm()
        logger.info(
            f"Auto-fetch armed for {self.repo.path.name} every {self.interval:g}s."
        )
        return True

    def dispose(self) -> None:
        """Cancels the interval unconditionally. Safe to call repeatedly."""
        self._disposed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _ensure_repository(self) -> bool:
        if self.repo.is_repository():
            return True

        if self._confirm_init is None or not self._confirm_init(self.repo):
            logger.info(f"{self.repo.path} is not a git repository; auto-fetch idle.")
            return False

        try:
            self.repo.init()
        except GitOracleError as e:
            logger.error(f"INIT ERROR {self.repo.path}: {e}")
            self.last_error = e
            return False
        logger.info(f"Initialized git repository in {self.repo.path}")
        return True

    def _fetch_once(self) -> bool:
        """Runs one fetch cycle.

        Returns:
            bool: False if the poller was disabled by this cycle.
        """
        self._state = PollerState.RUNNING
        try:
            self.repo.fetch()
        except AuthenticationRequired as e:
            self._disable(e)
            return False
        except GitOracleError as e:
            logger.warning(f"FETCH ERROR {self.repo.path.name}: {e}")
            self.last_error = e
        else:
            self.last_error = None
            if self._on_fetched is not None:
                try:
                    self._on_fetched()
                except Exception:
                    logger.exception("Post-fetch callback failed")
        self._state = PollerState.IDLE
        return True

    def _disable(self, error: AuthenticationRequired) -> None:
        self._state = PollerState.AUTH_FAILED
        self.last_error = error
        logger.error(
            f"AUTH ERROR {self.repo.path.name}: {error}. Auto-fetch disabled."
        )
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        try:
            if self._on_auth_failure is not None:
                self._on_auth_failure(error)
        finally:
            self._state = PollerState.DISABLED

    def _arm(self) -> None:
        self._timer = self._scheduler.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self._timer = None
        if self._disposed or self._state is PollerState.DISABLED:
            return
        if self._fetch_once() and not self._disposed:
            self._arm()
