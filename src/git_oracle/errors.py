"""Error taxonomy for git invocations.

Every failure of the external `git` binary is classified into one of the
exceptions below. The tool's diagnostic text is kept verbatim on the exception
so callers can pattern-match on it.
"""

from pathlib import Path


class GitOracleError(Exception):
    """Base class for all errors raised by the synchronization engine."""


class NoWorkspace(GitOracleError):
    """No repository root could be resolved."""

    def __init__(self, path: Path | None = None):
        self.path = path
        if path is None:
            message = "No workspace folder found"
        else:
            message = f"Workspace folder does not exist: {path}"
        super().__init__(message)


class NotARepository(GitOracleError):
    """The root exists but is not under version control."""

    def __init__(self, path: Path, stderr: str = ""):
        self.path = path
        self.stderr = stderr
        super().__init__(f"Not a git repository: {path}")


class CommandFailed(GitOracleError):
    """Git exited with a non-zero status.

    Attributes:
        command (list[str]): The git arguments that were executed.
        exit_code (int | None): The process exit code, or None if git never ran.
        stderr (str): The unmodified diagnostic output.
    """

    def __init__(self, command: list[str], exit_code: int | None, stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"Git error ({' '.join(command)}): {detail}")


class AuthenticationRequired(GitOracleError):
    """A remote operation was rejected for lack of credentials.

    Git does not use a distinct exit code for this case; it is recognized from
    the diagnostic text.
    """

    def __init__(self, command: list[str], stderr: str):
        self.command = command
        self.stderr = stderr
        super().__init__(
            f"Authentication required ({' '.join(command)}): {stderr.strip()}"
        )
