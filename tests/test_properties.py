import string

from hypothesis import given
from hypothesis import strategies as st

from git_oracle.branches import group_by_prefix, group_key, split_remote_branches
from git_oracle.cache import TTLCache
from git_oracle.parsers import parse_commit_history

# Strategy: branch-like names (no whitespace, no empty segments)
segment = st.text(
    alphabet=string.ascii_letters + string.digits,
    min_size=1,
    max_size=8,
)
branch_names = st.lists(
    st.lists(segment, min_size=1, max_size=3).map("/".join), unique=True
)


@given(names=branch_names)
def test_grouping_partitions_names(names: list[str]) -> None:
    """
    Property: Grouping neither loses nor duplicates names, and every member
    sits under the group its own prefix dictates, in input order.
    """
    groups = group_by_prefix(names)

    flattened = [name for members in groups.values() for name in members]
    assert sorted(flattened) == sorted(names)

    for key, members in groups.items():
        assert all(group_key(name) == key for name in members)
        assert members == [name for name in names if group_key(name) == key]


@given(
    remote=segment,
    names=st.lists(st.lists(segment, min_size=1, max_size=3).map("/".join)),
)
def test_remote_split_keeps_branch_suffix(remote: str, names: list[str]) -> None:
    """
    Property: Splitting '<remote>/<branch>' recovers every branch name intact,
    including any nested slashes, except the symbolic HEAD alias.
    """
    qualified = [f"{remote}/{name}" for name in names]

    result = split_remote_branches(qualified)

    expected = list(dict.fromkeys(n for n in names if n != "HEAD"))
    assert result.get(remote, []) == expected


# Strategy: subjects may hold the delimiter and any line separator but "\n"
subjects = st.text(min_size=1).filter(lambda s: "\n" not in s)


@given(
    fields=st.tuples(segment, segment, segment),
    subject=subjects,
)
def test_history_subject_survives_delimiters(
    fields: tuple[str, str, str], subject: str
) -> None:
    """
    Property: Whatever the subject contains, it is recovered verbatim.
    """
    commit_hash, author, date = fields
    line = f"{commit_hash}|{author}|{date}|{subject}"

    records = parse_commit_history(line)

    assert len(records) == 1
    assert records[0].message == subject
    assert records[0].hash == commit_hash


@given(offsets=st.lists(st.floats(min_value=0, max_value=10), max_size=20))
def test_cache_refetches_only_after_ttl(offsets: list[float]) -> None:
    """
    Property: The fetcher runs exactly when the previous entry has aged past
    the TTL, never more often.
    """
    now = 0.0
    calls = 0

    def fetch() -> int:
        nonlocal calls
        calls += 1
        return calls

    cache: TTLCache[int] = TTLCache(2.0, lambda: now)
    cache.get_or_fetch("k", fetch)
    stored_at = 0.0
    expected = 1

    for offset in offsets:
        now += offset
        cache.get_or_fetch("k", fetch)
        if now - stored_at >= 2.0:
            expected += 1
            stored_at = now

    assert calls == expected
