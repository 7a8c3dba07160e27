import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import cast

from rich.console import Console, Group
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .config import Config
from .constants import APP_NAME, LOG_FILE, ROOT_GROUP
from .engine import (
    CherryPick,
    CreateBranch,
    DeleteBranch,
    GetBlame,
    GetCommitDetails,
    GetCommitHistory,
    GetLog,
    GetStatus,
    MergeBranches,
    Operation,
    RebaseBranches,
    Refresh,
    RepositoryEngine,
    SwitchBranch,
)
from .errors import AuthenticationRequired, GitOracleError
from .git_wrapper import GitRepo
from .models import (
    BlameLine,
    BranchScope,
    CommitRecord,
    DateMode,
    RepositoryView,
    StatusSnapshot,
)
from .parsers import parse_log

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)

# Group icons keyed by substrings of the branch prefix.
GROUP_ICONS = [
    ("feature", "✨"),
    ("bugfix", "🐛"),
    ("hotfix", "🚨"),
    ("release", "🚀"),
    ("main", "⭐️"),
    ("develop", "🛠️"),
]


def setup_logging(verbose: bool, to_file: bool = False, max_bytes: int = 0) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): Emit DEBUG records instead of WARNING and above.
        to_file (bool, optional): Also write a rotating log file (watch mode).
        max_bytes (int, optional): Rotation threshold for the log file.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(stream_handler)

    if to_file:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=max_bytes,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def confirm_init(repo: GitRepo) -> bool:
    """Asks whether a folder that is not a repository should become one."""
    return Confirm.ask(
        f"[yellow]{repo.path}[/yellow] is not a git repository. Initialize it?",
        default=False,
    )


def report_auth_failure(error: AuthenticationRequired) -> None:
    err_console.print(
        "[bold red]AUTH ERROR:[/bold red] The remote rejected the stored "
        "credentials. Auto-fetch is disabled until you restart.\n"
        f"   {error.stderr.strip()}"
    )


# --- Rendering ---


def _group_label(prefix: str, count: int) -> str:
    if prefix == ROOT_GROUP:
        return f"📁 / [dim]({count})[/dim]"
    icon = next((i for key, i in GROUP_ICONS if key in prefix.lower()), "📁")
    return f"{icon} {prefix} [dim]({count})[/dim]"


def render_status(status: StatusSnapshot) -> Panel:
    """Builds the status panel, or an error panel for a degraded snapshot."""
    if not status.ok:
        return Panel(
            f"[red]{status.error}[/red]",
            title="Error Loading Git Status",
            border_style="red",
        )

    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold blue", justify="right")
    grid.add_column()
    grid.add_row("Branch:", status.branch)
    grid.add_row("User:", status.user)
    grid.add_row("Last Update:", status.timestamp)
    grid.add_row(
        "Changes:",
        f"[green]+{status.added}[/green] "
        f"[yellow]~{status.modified}[/yellow] "
        f"[red]-{status.deleted}[/red]",
    )
    grid.add_row("Remote:", status.remote)
    grid.add_row("Commit:", status.commit_hash)
    return Panel(grid, title="Git Status", border_style="blue")


def render_branches(
    local: dict[str, list[str]],
    remotes: dict[str, dict[str, list[str]]],
    current: str | None = None,
) -> Tree:
    """Builds a two-level tree of grouped local and remote branches."""
    tree = Tree("[bold]Branches[/bold]")

    local_count = sum(len(names) for names in local.values())
    local_node = tree.add(f"📁 Local [dim]({local_count})[/dim]")
    for prefix, names in local.items():
        group = local_node.add(_group_label(prefix, len(names)))
        for name in names:
            marker = "[bold green]* [/bold green]" if name == current else ""
            group.add(f"{marker}{name}")

    for remote, groups in remotes.items():
        count = sum(len(names) for names in groups.values())
        remote_node = tree.add(f"🌐 {remote} [dim]({count})[/dim]")
        for prefix, names in groups.items():
            group = remote_node.add(_group_label(prefix, len(names)))
            for name in names:
                group.add(name)
    return tree


def render_history(records: list[CommitRecord]) -> Table | Text:
    if not records:
        return Text("No commits to display", style="dim")
    table = Table(title="Commit History", show_lines=False)
    table.add_column("Hash", style="bold blue", no_wrap=True)
    table.add_column("Date", style="green")
    table.add_column("Author", style="dim")
    table.add_column("Message")
    for record in records:
        table.add_row(record.hash[:8], record.date, record.author, record.message)
    return table


def render_log(raw: str) -> Text:
    """Renders the decorated graph log with glyphs and highlighted refs."""
    lines = parse_log(raw)
    if not lines:
        return Text("No commits to display", style="dim")

    text = Text()
    for line in lines:
        text.append(line.graph, style="magenta")
        if line.commit is not None:
            commit = line.commit
            text.append(commit.hash, style="bold blue")
            text.append(f" {commit.date} ", style="green")
            text.append(commit.message)
            if commit.refs:
                text.append(f" ({', '.join(commit.refs)})", style="bold yellow")
            text.append(f" - {commit.author}", style="dim")
        else:
            # Keep whatever the graph prefix did not account for.
            text.append(line.raw[len(line.graph) :])
        text.append("\n")
    return text


def render_blame(lines: list[BlameLine]) -> Table:
    table = Table(show_header=True, box=None)
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Hash", style="bold blue", no_wrap=True)
    table.add_column("Author", style="green", no_wrap=True)
    table.add_column("Content")
    for line in lines:
        table.add_row(str(line.line), line.hash[:8], line.author, line.content)
    return table


def render_view(view: RepositoryView) -> Group:
    return Group(
        render_status(view.status),
        render_branches(
            view.local_branches, view.remote_branches, view.status.branch
        ),
    )


# --- Commands ---


def build_operation(args: argparse.Namespace) -> Operation:
    """Maps a parsed command line onto an engine operation."""
    match args.command:
        case "status":
            return GetStatus()
        case "branches":
            return Refresh()
        case "history":
            mode = DateMode.ABSOLUTE if args.absolute else None
            return GetCommitHistory(args.limit, mode)
        case "log":
            return GetLog(args.limit)
        case "show":
            return GetCommitDetails(args.commit)
        case "blame":
            return GetBlame(args.file)
        case "switch":
            return SwitchBranch(args.branch)
        case "create":
            return CreateBranch(args.branch)
        case "delete":
            if args.remote:
                return DeleteBranch(args.branch, BranchScope.REMOTE, args.remote)
            return DeleteBranch(args.branch)
        case "merge":
            return MergeBranches(args.label, args.branch)
        case "rebase":
            return RebaseBranches(args.label, args.branch)
        case "cherry-pick":
            return CherryPick(args.commit)
    raise ValueError(f"Unknown command '{args.command}'")


def run_command(engine: RepositoryEngine, operation: Operation) -> int:
    """Executes one operation and prints its result.

    Returns:
        int: The process exit code.
    """
    result = engine.dispatch(operation)

    match operation:
        case GetStatus():
            status = cast(StatusSnapshot, result)
            console.print(render_status(status))
            return 0 if status.ok else 1
        case Refresh():
            view = cast(RepositoryView, result)
            console.print(
                render_branches(
                    view.local_branches,
                    view.remote_branches,
                    view.status.branch,
                )
            )
        case GetCommitHistory():
            console.print(render_history(cast(list[CommitRecord], result)))
        case GetLog():
            console.print(render_log(cast(str, result)))
        case GetCommitDetails():
            console.print(Text(cast(str, result)))
        case GetBlame():
            console.print(render_blame(cast(list[BlameLine], result)))
        case CherryPick(commit=commit):
            if not result:
                console.print(
                    f"[bold red]Cherry-pick of {commit} failed.[/bold red] "
                    "Resolve the conflict or run 'git cherry-pick --abort'."
                )
                return 1
            console.print(f"[bold green]SUCCESS:[/bold green] Picked {commit}.")
        case _:
            console.print("[bold green]SUCCESS:[/bold green] Done.")
    return 0


def run_watch(
    engine: RepositoryEngine, loop: asyncio.AbstractEventLoop, poll: float
) -> None:
    """Keeps the status and branch view live until interrupted.

    Args:
        engine (RepositoryEngine): The engine, built on `loop`.
        loop (asyncio.AbstractEventLoop): The loop that drives all timers.
        poll (float): Seconds between local change checks; 0 disables them.
    """

    def on_view(view: RepositoryView) -> None:
        console.clear()
        console.print(render_view(view))
        state = engine.auto_fetch_state
        if state is not None:
            console.print(f"[dim]Auto-fetch: {state.value}[/dim]")

    engine.subscribe(on_view)

    # The poller owns the init prompt, so it must run before the first read.
    if not engine.start_auto_fetch():
        console.print("[yellow]Auto-fetch is not running.[/yellow]")
    engine.refresh()

    def heartbeat() -> None:
        engine.notifier.publish()
        loop.call_later(poll, heartbeat)

    if poll > 0:
        loop.call_later(poll, heartbeat)

    try:
        loop.run_forever()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching.[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Live view of a git repository's state."
    )
    parser.add_argument(
        "--repo",
        type=Path,
        default=None,
        help="Repository root (defaults to the current directory)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show branch, user and change counts")
    subparsers.add_parser("branches", help="Show grouped local and remote branches")

    history_parser = subparsers.add_parser("history", help="Show recent commits")
    history_parser.add_argument("-n", "--limit", type=int, default=None)
    history_parser.add_argument(
        "--absolute", action="store_true", help="Show absolute dates"
    )

    log_parser = subparsers.add_parser("log", help="Show the decorated graph log")
    log_parser.add_argument("-n", "--limit", type=int, default=None)

    show_parser = subparsers.add_parser("show", help="Show a commit with its patch")
    show_parser.add_argument("commit")

    blame_parser = subparsers.add_parser("blame", help="Show line authorship")
    blame_parser.add_argument("file")

    switch_parser = subparsers.add_parser("switch", help="Switch to a branch")
    switch_parser.add_argument("branch")

    create_parser = subparsers.add_parser("create", help="Create a branch at HEAD")
    create_parser.add_argument("branch")

    delete_parser = subparsers.add_parser("delete", help="Delete a branch")
    delete_parser.add_argument("branch")
    delete_parser.add_argument(
        "--remote", default=None, help="Delete the branch on this remote instead"
    )

    merge_parser = subparsers.add_parser("merge", help="Merge branches into HEAD")
    merge_parser.add_argument("label")
    merge_parser.add_argument("branch")

    rebase_parser = subparsers.add_parser("rebase", help="Rebase a branch")
    rebase_parser.add_argument("label", help="Upstream to rebase onto")
    rebase_parser.add_argument("branch")

    pick_parser = subparsers.add_parser("cherry-pick", help="Apply a single commit")
    pick_parser.add_argument("commit")

    watch_parser = subparsers.add_parser(
        "watch", help="Keep a live view with background auto-fetch"
    )
    watch_parser.add_argument(
        "--poll",
        type=float,
        default=2.0,
        help="Seconds between local change checks (0 to disable)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the `git-oracle` console script."""
    args = build_parser().parse_args(argv)
    root = args.repo or Path.cwd()
    config = Config.load(root)
    watching = args.command == "watch"
    setup_logging(args.verbose, to_file=watching, max_bytes=config.limits.max_log_size)

    loop = asyncio.new_event_loop()
    engine: RepositoryEngine | None = None
    code = 0
    try:
        engine = RepositoryEngine(
            root,
            loop,
            config,
            confirm_init=confirm_init,
            on_auth_failure=report_auth_failure,
        )
        if watching:
            run_watch(engine, loop, args.poll)
        else:
            code = run_command(engine, build_operation(args))
    except GitOracleError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {e}")
        code = 1
    finally:
        if engine is not None:
            engine.dispose()
        loop.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
