"""Branch hierarchy grouping.

Branch names are bucketed one level deep by the prefix before their first
slash (`feature/login` -> `feature/`). Remote branches are first split by
remote name and then grouped the same way.
"""

import logging

from .constants import APP_NAME, ROOT_GROUP
from .models import Branch, BranchScope, Remote

logger = logging.getLogger(APP_NAME)


def group_key(name: str) -> str:
    """Returns the group a branch name belongs to.

    Args:
        name (str): A branch name such as 'feature/login' or 'main'.

    Returns:
        str: The prefix up to and including the first slash, or the root
             sentinel '/' for names without one.
    """
    prefix, sep, _ = name.partition("/")
    return f"{prefix}/" if sep else ROOT_GROUP


def group_by_prefix(names: list[str]) -> dict[str, list[str]]:
    """Groups branch names by prefix, preserving first-seen order.

    Args:
        names (list[str]): Branch names in display order.

    Returns:
        dict[str, list[str]]: Group key to member names. Neither the groups
                              nor their members are re-sorted.
    """
    groups: dict[str, list[str]] = {}
    for name in names:
        groups.setdefault(group_key(name), []).append(name)
    return groups


def split_remote_branches(qualified_names: list[str]) -> dict[str, list[str]]:
    """Splits remote-qualified names ('origin/feature/x') by remote.

    The remote is the text before the first slash; the remainder, including
    any further slashes, is the branch name. Symbolic HEAD aliases and bare
    remote names are not branches and are skipped.

    Args:
        qualified_names (list[str]): Output of `git branch -r`.

    Returns:
        dict[str, list[str]]: Remote name to its branches, first-seen order.
    """
    remotes: dict[str, list[str]] = {}
    for qualified in qualified_names:
        remote, sep, branch = qualified.partition("/")
        if not sep or not branch or branch == "HEAD" or " -> " in branch:
            logger.debug(f"Skipping non-branch remote ref '{qualified}'")
            continue
        members = remotes.setdefault(remote, [])
        if branch not in members:
            members.append(branch)
    return remotes


def group_remote_branches(
    remotes: dict[str, list[str]],
) -> dict[str, dict[str, list[str]]]:
    """Applies prefix grouping to each remote's branch list."""
    return {remote: group_by_prefix(names) for remote, names in remotes.items()}


def to_remotes(remotes: dict[str, list[str]]) -> list[Remote]:
    return [Remote(name, tuple(names)) for name, names in remotes.items()]


def to_branches(local: list[str], remotes: dict[str, list[str]]) -> list[Branch]:
    """Flattens local and remote listings into `Branch` records."""
    branches = [Branch(name, BranchScope.LOCAL) for name in local]
    for remote, names in remotes.items():
        branches.extend(Branch(name, BranchScope.REMOTE, remote) for name in names)
    return branches
