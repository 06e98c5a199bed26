import threading
from concurrent.futures import ThreadPoolExecutor
import pytest
from assistant.agent.memory import SessionMemory, SessionMemoryManager
from assistant.models.conversation import ConversationTurn, TurnRole


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_get_or_create_is_idempotent():
    manager = SessionMemoryManager(max_turns=4)
    first = manager.get_or_create("alice")
    assert manager.get_or_create("alice") is first
    assert manager.get_or_create("bob") is not first
    assert len(manager) == 2
    assert "alice" in manager


def test_concurrent_first_access_creates_one_session():
    manager = SessionMemoryManager(max_turns=50)
    workers = 16
    barrier = threading.Barrier(workers)

    def first_message(i):
        barrier.wait()
        memory = manager.get_or_create("new-user")
        manager.append("new-user", ConversationTurn.user(f"message {i}"))
        return memory

    with ThreadPoolExecutor(max_workers=workers) as pool:
        sessions = list(pool.map(first_message, range(workers)))

    assert len({id(s) for s in sessions}) == 1
    assert len(manager) == 1
    # No turn was lost
    contents = {t.content for t in manager.snapshot("new-user")}
    assert contents == {f"message {i}" for i in range(workers)}


def test_fifo_window_keeps_last_turns_in_order():
    manager = SessionMemoryManager(max_turns=5)
    for i in range(12):
        manager.append("alice", ConversationTurn.user(f"turn {i}"))
    snapshot = manager.snapshot("alice")
    assert [t.content for t in snapshot] == [f"turn {i}" for i in range(7, 12)]


def test_append_pair_is_atomic_and_bounded():
    manager = SessionMemoryManager(max_turns=3)
    manager.append("alice", ConversationTurn.user("q1"), ConversationTurn.assistant("a1"))
    manager.append("alice", ConversationTurn.user("q2"), ConversationTurn.assistant("a2"))
    snapshot = manager.snapshot("alice")
    assert [t.content for t in snapshot] == ["a1", "q2", "a2"]
    assert [t.role for t in snapshot] == [TurnRole.ASSISTANT, TurnRole.USER, TurnRole.ASSISTANT]


def test_snapshot_is_a_copy():
    manager = SessionMemoryManager(max_turns=3)
    manager.append("alice", ConversationTurn.user("q1"))
    snapshot = manager.snapshot("alice")
    manager.append("alice", ConversationTurn.user("q2"))
    assert len(snapshot) == 1
    assert isinstance(snapshot, tuple)


def test_snapshot_unknown_user_is_empty():
    manager = SessionMemoryManager()
    assert manager.snapshot("ghost") == ()
    # Looking does not create a session
    assert "ghost" not in manager


def test_evict():
    manager = SessionMemoryManager()
    manager.append("alice", ConversationTurn.user("hi"))
    assert manager.evict("alice") is True
    assert manager.evict("alice") is False
    assert manager.snapshot("alice") == ()


def test_evict_idle():
    clock = FakeClock()
    manager = SessionMemoryManager(max_turns=4, clock=clock)
    manager.append("old", ConversationTurn.user("hi"))
    clock.now = 100.0
    manager.append("fresh", ConversationTurn.user("hi"))
    clock.now = 150.0

    assert manager.evict_idle(ttl_seconds=60) == ["old"]
    assert manager.user_ids() == ["fresh"]


def test_invalid_max_turns():
    with pytest.raises(ValueError):
        SessionMemoryManager(max_turns=0)
    with pytest.raises(ValueError):
        SessionMemory("alice", max_turns=-1)
