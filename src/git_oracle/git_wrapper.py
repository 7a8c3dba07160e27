import logging
import os
import subprocess
from pathlib import Path

from .constants import (
    APP_NAME,
    AUTH_FAILURE_PHRASES,
    GRAPH_LOG_FORMAT,
    HISTORY_FORMAT,
    NOT_A_REPOSITORY_PHRASE,
)
from .errors import AuthenticationRequired, CommandFailed, NoWorkspace, NotARepository
from .models import DateMode

logger = logging.getLogger(APP_NAME)


def resolve_root(path: Path | str | None) -> Path:
    """Resolves a candidate workspace folder to an absolute repository root.

    Args:
        path (Path | str | None): The folder chosen by the user, if any.

    Returns:
        Path: The absolute path.

    Raises:
        NoWorkspace: If no folder was given or it does not exist.
    """
    if path is None:
        raise NoWorkspace()
    root = Path(path).expanduser().resolve()
    if not root.is_dir():
        raise NoWorkspace(root)
    return root


def is_auth_failure(stderr: str) -> bool:
    """Checks git diagnostics for a credential failure."""
    lowered = stderr.lower()
    return any(phrase in lowered for phrase in AUTH_FAILURE_PHRASES)


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Every method runs `<git_path> <args...>` with the repository root as the
    working directory. Failures are classified into the exceptions defined in
    `errors`, keeping git's stderr intact.

    Attributes:
        path (Path): The file system path to the repository root.
        git_path (str): The git executable to invoke.
    """

    def __init__(self, path: Path, git_path: str = "git"):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            git_path (str, optional): The git executable. Defaults to "git".

        Raises:
            NoWorkspace: If the path does not exist.
        """
        self.path = resolve_root(path)
        self.git_path = git_path

    def _run(
        self, args: list[str], strip: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            strip (bool, optional): Whether to strip surrounding whitespace from
                                    stdout. Graph output keeps its leading
                                    columns. Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str: The stdout of the command.

        Raises:
            NotARepository: If the root is not inside a working copy.
            AuthenticationRequired: If git rejected the credentials.
            CommandFailed: For any other non-zero exit or a missing executable.
        """
        try:
            res = subprocess.run(
                [self.git_path, *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=True,
                env=env,
            )
        except FileNotFoundError as e:
            raise CommandFailed(args, None, f"git executable not found: {e}") from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr or ""
            if is_auth_failure(stderr):
                raise AuthenticationRequired(args, stderr) from e
            if NOT_A_REPOSITORY_PHRASE in stderr.lower():
                raise NotARepository(self.path, stderr) from e
            raise CommandFailed(args, e.returncode, stderr) from e
        return res.stdout.strip() if strip else res.stdout.rstrip("\n")

    @staticmethod
    def _batch_env() -> dict[str, str]:
        """Environment for network commands that must never prompt."""
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        return env

    # --- Repository lifecycle ---

    def is_repository(self) -> bool:
        """Checks whether the root lies inside a git working tree.

        Returns:
            bool: True if git recognizes the directory as a working tree.
        """
        try:
            return self._run(["rev-parse", "--is-inside-work-tree"]) == "true"
        except NotARepository:
            return False
        except CommandFailed as e:
            logger.debug(f"rev-parse failed in {self.path}: {e}")
            return False

    def init(self) -> None:
        """Initializes a new repository at the root."""
        self._run(["init"])

    def fetch(self) -> None:
        """Fetches all remotes without prompting for credentials.

        Raises:
            AuthenticationRequired: If any remote needs credentials.
        """
        self._run(["fetch", "--all", "--prune"], env=self._batch_env())

    # --- Queries ---

    def local_branches(self) -> list[str]:
        """Lists local branch names in git's order.

        Returns:
            list[str]: Short branch names (e.g. 'feature/login').
        """
        output = self._run(["branch", "--format=%(refname:short)"])
        return [line.strip() for line in output.split("\n") if line.strip()]

    def remote_branches(self) -> list[str]:
        """Lists remote-qualified branch names (e.g. 'origin/main').

        Returns:
            list[str]: Short remote branch names, unfiltered.
        """
        output = self._run(["branch", "-r", "--format=%(refname:short)"])
        return [line.strip() for line in output.split("\n") if line.strip()]

    def log_history(self, limit: int, date_mode: DateMode) -> str:
        """Returns the delimiter-joined commit history.

        Args:
            limit (int): Maximum number of commits.
            date_mode (DateMode): Relative or absolute dates.

        Returns:
            str: One `hash|author|date|subject` line per commit.
        """
        return self._run(
            [
                "log",
                f"-n{limit}",
                f"--pretty=format:{HISTORY_FORMAT}",
                f"--date={date_mode.value}",
            ]
        )

    def log_graph(self, limit: int) -> str:
        """Returns the decorated, graph-annotated log of all refs.

        Args:
            limit (int): Maximum number of commits.

        Returns:
            str: The raw log text with its graph columns preserved.
        """
        return self._run(
            [
                "log",
                "--graph",
                "--all",
                "--abbrev-commit",
                "--decorate",
                "--date=short",
                f"-n{limit}",
                f"--pretty=format:{GRAPH_LOG_FORMAT}",
            ],
            strip=False,
        )

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch.

        Returns:
            str: The branch name, or 'HEAD' when detached. Works on an
                 unborn branch.
        """
        return self._run(["branch", "--show-current"]) or "HEAD"

    def user_name(self) -> str | None:
        """Reads the configured `user.name`.

        Returns:
            str | None: The user name, or None if it is not configured.
        """
        try:
            return self._run(["config", "user.name"]) or None
        except CommandFailed:
            # `git config` exits 1 when the key is unset.
            return None

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"], strip=False)
        return [line for line in output.split("\n") if line.strip()]

    def upstream(self) -> str | None:
        """Resolves the upstream tracking ref of the current branch.

        Returns:
            str | None: e.g. 'origin/main', or None if the branch tracks nothing.
        """
        try:
            return self._run(
                ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"]
            )
        except CommandFailed as e:
            logger.debug(f"No upstream in {self.path}: {e}")
            return None

    def short_head(self) -> str | None:
        """Resolves HEAD to an abbreviated hash.

        Returns:
            str | None: The short hash, or None on an unborn branch.
        """
        try:
            return self._run(["rev-parse", "--short", "HEAD"])
        except CommandFailed as e:
            logger.debug(f"HEAD unresolved in {self.path}: {e}")
            return None

    def show_commit(self, commit: str) -> str:
        """Returns the subject, body and patch of a commit."""
        return self._run(["show", "--pretty=format:%h %s%n%b", "--patch", commit])

    def blame(self, file: str) -> str:
        """Returns `git blame --line-porcelain` output for a file."""
        return self._run(["blame", "--line-porcelain", "--", file], strip=False)

    # --- Mutations ---

    def switch(self, branch: str) -> None:
        """Switches the working tree to a branch.

        Args:
            branch (str): The branch to switch to.
        """
        self._run(["switch", branch])

    def create_branch(self, branch: str) -> None:
        """Creates a branch at HEAD without switching to it."""
        self._run(["branch", branch])

    def delete_local_branch(self, branch: str) -> None:
        """Force-deletes a local branch."""
        self._run(["branch", "-D", branch])

    def delete_remote_branch(self, remote: str, branch: str) -> None:
        """Deletes a branch on a remote.

        Args:
            remote (str): The remote name (e.g. 'origin').
            branch (str): The branch name without the remote qualifier.
        """
        self._run(["push", remote, "--delete", branch], env=self._batch_env())

    def merge(self, label: str, branch: str) -> None:
        """Merges `label` and `branch` into the current HEAD."""
        self._run(["merge", label, branch])

    def rebase(self, label: str, branch: str) -> None:
        """Rebases `branch` onto `label`."""
        self._run(["rebase", label, branch])

    def cherry_pick(self, commit: str) -> None:
        """Applies a single commit onto the current HEAD."""
        self._run(["cherry-pick", commit])
