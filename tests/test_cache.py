from __future__ import annotations

from gitssh.cache import SessionCache, default_session_file
from gitssh.identity import Binding

ALICE = Binding("Alice Liddell", "alice@example.com")
BOB = Binding("Bob Builder", "bob@example.com")


def test_put_replaces_earlier_line_for_same_repository(cache) -> None:
    cache.put_cached_binding("/src/app", ALICE)
    cache.put_cached_binding("/src/other", BOB)
    cache.put_cached_binding("/src/app", BOB)

    lines = cache.path.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "/src/other:Bob Builder <bob@example.com>",
        "/src/app:Bob Builder <bob@example.com>",
    ]
    assert cache.get_cached_binding("/src/app") == BOB


def test_prefix_paths_do_not_collide(cache) -> None:
    cache.put_cached_binding("/src/app", ALICE)
    cache.put_cached_binding("/src/app-two", BOB)
    assert cache.get_cached_binding("/src/app") == ALICE
    assert cache.remove_cached_binding("/src/app") is True
    assert cache.get_cached_binding("/src/app-two") == BOB


def test_paths_with_colons_parse_into_entries(cache) -> None:
    cache.put_cached_binding("C:/work/app", ALICE)
    [entry] = cache.entries()
    assert entry.repo_path == "C:/work/app"
    assert entry.binding == ALICE


def test_missing_file_reads_as_empty(tmp_path) -> None:
    cache = SessionCache(tmp_path / "absent")
    assert cache.entries() == []
    assert cache.get_cached_binding("/src/app") is None
    assert cache.remove_cached_binding("/src/app") is False


def test_unparseable_line_is_ignored_on_lookup(cache) -> None:
    cache.path.write_text("/src/app:garbage\n", encoding="utf-8")
    assert cache.get_cached_binding("/src/app") is None
    [entry] = cache.entries()
    assert entry.binding is None


def test_clear_all_deletes_file(cache) -> None:
    cache.put_cached_binding("/src/app", ALICE)
    cache.clear_all_cached_bindings()
    assert not cache.path.exists()
    cache.clear_all_cached_bindings()


def test_stats_and_prune_missing(cache, repo, tmp_path) -> None:
    cache.put_cached_binding(str(repo), ALICE)
    cache.put_cached_binding(str(tmp_path / "gone"), BOB)

    stats = cache.stats()
    assert (stats.active, stats.invalid) == (1, 1)

    assert cache.prune_missing() == (1, 1)
    assert [entry.repo_path for entry in cache.entries()] == [str(repo)]
    assert cache.prune_missing() == (0, 1)


def test_default_session_file_lives_in_temp_dir() -> None:
    assert default_session_file().name.startswith("gitssh-session-")


def test_colon_in_display_name_survives_prune(cache, repo) -> None:
    work = Binding("Bob: Work", "bob@example.com")
    cache.put_cached_binding(str(repo), work)

    [entry] = cache.entries()
    assert entry.repo_path == str(repo)
    assert entry.binding == work
    assert cache.stats().active == 1

    assert cache.prune_missing() == (0, 1)
    assert cache.get_cached_binding(str(repo)) == work
