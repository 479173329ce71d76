from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from gitssh.cli.sessions import (
    SessionError,
    build_session_export,
    import_session,
    load_session_export,
    save_session_export,
)
from gitssh.identity import Binding

ALICE = Binding("Alice Liddell", "alice@example.com")


def test_export_keeps_only_existing_repositories(cache, repo, tmp_path) -> None:
    cache.put_cached_binding(str(repo), ALICE)
    cache.put_cached_binding(str(tmp_path / "deleted"), ALICE)

    document = build_session_export(
        cache, now=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    )
    assert document.export_date == "2024-05-01T09:30:00Z"
    assert list(document.session_repositories) == ["alice-app"]
    assert document.session_repositories["alice-app"].user == str(ALICE)


def test_export_keeps_display_name_with_colon(cache, repo) -> None:
    work = Binding("Bob: Work", "bob@example.com")
    cache.put_cached_binding(str(repo), work)

    document = build_session_export(cache)
    record = document.session_repositories["alice-app"]
    assert record.path == str(repo)
    assert record.user == "Bob: Work <bob@example.com>"


def test_saved_export_uses_documented_layout(cache, repo, tmp_path) -> None:
    cache.put_cached_binding(str(repo), ALICE)
    target = save_session_export(build_session_export(cache), tmp_path / "out.json")
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["session_repositories"]["alice-app"] == {
        "path": str(repo),
        "user": "Alice Liddell <alice@example.com>",
    }
    assert "export_date" in payload


def test_import_restores_bindings_and_skips_missing(cache, repo, tmp_path) -> None:
    path = tmp_path / "in.json"
    path.write_text(
        json.dumps(
            {
                "session_repositories": {
                    "alice-app": {"path": str(repo), "user": str(ALICE)},
                    "gone": {"path": str(tmp_path / "gone"), "user": str(ALICE)},
                    "broken": {"path": str(repo), "user": "nobody"},
                },
                "export_date": "2024-05-01T09:30:00Z",
            }
        ),
        encoding="utf-8",
    )
    result = import_session(cache, load_session_export(path))
    assert result.imported == [str(repo)]
    assert sorted(result.skipped) == sorted([str(tmp_path / "gone"), str(repo)])
    assert cache.get_cached_binding(str(repo)) == ALICE


def test_load_missing_file_raises(tmp_path) -> None:
    with pytest.raises(SessionError, match="import file not found"):
        load_session_export(tmp_path / "absent.json")


@pytest.mark.parametrize("content", ["{oops", json.dumps({"repositories": {}})])
def test_load_invalid_file_raises(tmp_path, content) -> None:
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(SessionError, match="invalid import file format"):
        load_session_export(path)
