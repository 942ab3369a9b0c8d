import pytest
from loguru import logger

import main
from santa.db import get_session, repo
from santa.services import draw


def test_cli_full_flow(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'santa.db'}")
    monkeypatch.setenv("LOG_PATH", "")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    assert main.main(["init-db"]) == 0
    assert main.main(["create-group", "Family", "--year", "2025"]) == 0
    for name in ["Ann", "Bob", "Cid"]:
        assert main.main(["add-member", "1", name]) == 0
    assert main.main(["add-exclusion", "1", "1", "2"]) == 0
    assert main.main(["draw", "1", "--seed", "7"]) == 0
    assert main.main(["show", "1", "1"]) == 0

    with get_session() as session:
        pairs = {(row.giver_user_id, row.receiver_user_id) for row in repo.list_assignments(session, 1, 2025)}
    assert pairs == {(1, 3), (3, 2), (2, 1)}
    logger.remove()


def test_cli_reports_failed_draw(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'santa.db'}")
    monkeypatch.setenv("LOG_PATH", "")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    main.main(["init-db"])
    main.main(["create-group", "Pair", "--year", "2025"])
    main.main(["add-member", "1", "Ann"])
    main.main(["add-member", "1", "Bob"])
    main.main(["add-exclusion", "1", "1", "2", "--mutual"])

    assert main.main(["draw", "1", "--max-retries", "20"]) == 1
    logger.remove()


def setup_three_member_group(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'santa.db'}")
    monkeypatch.setenv("LOG_PATH", "")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    main.main(["init-db"])
    main.main(["create-group", "Family", "--year", "2025"])
    for name in ["Ann", "Bob", "Cid"]:
        main.main(["add-member", "1", name])


@pytest.mark.parametrize("value", ["0", "-3", "lots"])
def test_cli_rejects_non_positive_retry_budget(tmp_path, monkeypatch, value):
    setup_three_member_group(tmp_path, monkeypatch)

    with pytest.raises(SystemExit) as excinfo:
        main.main(["draw", "1", "--max-retries", value])
    assert excinfo.value.code == 2
    logger.remove()


def test_cli_passes_retry_budget_through(tmp_path, monkeypatch):
    setup_three_member_group(tmp_path, monkeypatch)
    monkeypatch.setenv("ASSIGNMENT_MAX_RETRIES", "42")
    seen = []

    def record(session, group, **kwargs):
        seen.append(kwargs["max_retries"])
        return draw.DrawResult(group=group, year=2025, pairings=(), attempts=1)

    monkeypatch.setattr(draw, "run_assignments", record)

    assert main.main(["draw", "1", "--max-retries", "1"]) == 0
    assert main.main(["draw", "1"]) == 0
    assert seen == [1, 42]
    logger.remove()


def test_cli_wishlist_and_members(tmp_path, monkeypatch):
    setup_three_member_group(tmp_path, monkeypatch)

    assert main.main(["wish", "1", "2", "board game"]) == 0
    assert main.main(["wish", "1", "99", "kite"]) == 1
    assert main.main(["wish", "1", "2", "   "]) == 1
    assert main.main(["members", "1"]) == 0

    with get_session() as session:
        group = repo.get_group_by_id(session, 1)
        assert draw.list_wishlist_items(session, group, 2) == ["board game"]
        assert [user.name for user in draw.list_members(session, group)] == ["Ann", "Bob", "Cid"]
    logger.remove()
