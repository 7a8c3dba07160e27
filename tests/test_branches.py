"""Tests for branch hierarchy grouping."""

from git_oracle.branches import (
    group_by_prefix,
    group_key,
    group_remote_branches,
    split_remote_branches,
    to_branches,
    to_remotes,
)
from git_oracle.models import Branch, BranchScope, Remote


def test_group_by_prefix_preserves_order() -> None:
    """Verifies one-level grouping in first-seen order."""
    names = ["feature/login", "main", "feature/signup", "bugfix/crash", "develop"]

    assert group_by_prefix(names) == {
        "feature/": ["feature/login", "feature/signup"],
        "/": ["main", "develop"],
        "bugfix/": ["bugfix/crash"],
    }
    assert list(group_by_prefix(names)) == ["feature/", "/", "bugfix/"]


def test_group_key_uses_first_slash_only() -> None:
    """Verifies that nested names are bucketed by their first segment."""
    assert group_key("feature/ui/button") == "feature/"
    assert group_key("main") == "/"


def test_group_by_prefix_empty() -> None:
    assert group_by_prefix([]) == {}


def test_split_remote_branches_by_first_slash() -> None:
    """Verifies that the remote is split off and the rest kept intact."""
    refs = ["origin/main", "origin/feature/a/b", "upstream/main"]

    assert split_remote_branches(refs) == {
        "origin": ["main", "feature/a/b"],
        "upstream": ["main"],
    }


def test_split_remote_branches_skips_aliases() -> None:
    """Verifies that symbolic HEAD refs and bare remote names are dropped."""
    refs = ["origin/HEAD -> origin/main", "origin/HEAD", "origin", "origin/main"]

    assert split_remote_branches(refs) == {"origin": ["main"]}


def test_group_remote_branches() -> None:
    """Verifies that each remote is grouped independently."""
    remotes = {"origin": ["main", "feature/x"], "fork": ["feature/y"]}

    assert group_remote_branches(remotes) == {
        "origin": {"/": ["main"], "feature/": ["feature/x"]},
        "fork": {"feature/": ["feature/y"]},
    }


def test_flattened_records() -> None:
    """Verifies Branch and Remote records built from listings."""
    branches = to_branches(["main"], {"origin": ["feature/x"]})

    assert branches == [
        Branch("main", BranchScope.LOCAL),
        Branch("feature/x", BranchScope.REMOTE, "origin"),
    ]
    assert branches[1].qualified_name == "origin/feature/x"
    assert to_remotes({"origin": ["main"]}) == [Remote("origin", ("main",))]
