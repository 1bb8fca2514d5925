"""Tests for session ids and the duration clock."""

from __future__ import annotations

import uuid

from triostack_audit.session import new_session_id

from .conftest import FakeClock


def test_session_id_is_uuid4():
    sid = new_session_id()
    assert uuid.UUID(sid).version == 4


def test_session_ids_are_unique():
    assert len({new_session_id() for _ in range(200)}) == 200


def test_elapsed_whole_seconds():
    clock = FakeClock()
    start = clock.start()
    clock.advance(3)
    assert clock.elapsed(start) == 3


def test_elapsed_rounds_half_up():
    clock = FakeClock()
    start = clock.start()
    clock.advance(1.5)
    assert clock.elapsed(start) == 2
    clock.advance(0.9)  # 2.4
    assert clock.elapsed(start) == 2


def test_elapsed_never_negative():
    clock = FakeClock()
    start = clock.start()
    clock.advance(-10)
    assert clock.elapsed(start) == 0
