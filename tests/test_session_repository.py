"""Tests for the session registry."""

import threading

import pytest

from dualpng.models.errors import SessionLimitError, SessionNotFoundError
from dualpng.repositories.session_repository import SessionRepository


def test_create_and_find() -> None:
    repo = SessionRepository(max_sessions=0)

    session = repo.create("abc")

    assert repo.find("abc") is session
    assert "abc" in repo
    assert len(repo) == 1


def test_generated_ids_are_unique() -> None:
    repo = SessionRepository(max_sessions=0)

    first = repo.create()
    second = repo.create()

    assert first.session_id != second.session_id


def test_create_with_existing_id_returns_same_session() -> None:
    repo = SessionRepository(max_sessions=0)

    assert repo.create("abc") is repo.create("abc")
    assert len(repo) == 1


def test_find_unknown_session() -> None:
    with pytest.raises(SessionNotFoundError):
        SessionRepository(max_sessions=0).find("missing")


def test_reject_policy_refuses_new_sessions() -> None:
    repo = SessionRepository(max_sessions=2, limit_policy="reject")
    repo.create("a")
    repo.create("b")

    with pytest.raises(SessionLimitError):
        repo.create("c")

    assert repo.ids() == ["a", "b"]
    # existing ids are still served at capacity
    assert repo.create("a") is repo.find("a")


def test_evict_oldest_policy_drops_first_created() -> None:
    repo = SessionRepository(max_sessions=2, limit_policy="evict_oldest")
    repo.create("a")
    repo.create("b")

    repo.create("c")

    assert repo.ids() == ["b", "c"]
    with pytest.raises(SessionNotFoundError):
        repo.find("a")


def test_limit_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MAX_SESSIONS", "1")
    monkeypatch.setenv("SESSION_LIMIT_POLICY", "evict_oldest")

    repo = SessionRepository()

    assert repo.max_sessions == 1
    assert repo.limit_policy == "evict_oldest"


def test_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        SessionRepository(max_sessions=1, limit_policy="lru")
    with pytest.raises(ValueError):
        SessionRepository(max_sessions=-1)


@pytest.mark.parametrize("max_sessions,policy,expected", [(0, "reject", 400), (25, "evict_oldest", 25)])
def test_concurrent_creation_and_lookup(max_sessions, policy, expected) -> None:
    repo = SessionRepository(max_sessions=max_sessions, limit_policy=policy)
    errors = []

    def worker(n):
        try:
            for i in range(50):
                session = repo.create(f"{n}-{i}")
                repo.ids()
                if max_sessions == 0:
                    assert repo.find(session.session_id) is session
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert errors == []
    assert len(repo) == expected
