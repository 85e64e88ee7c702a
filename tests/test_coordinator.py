"""Tests for channel membership reconciliation and its serialization gate."""

import threading
import time
from unittest.mock import MagicMock

from chatkeeper.errors import PersistenceError
from chatkeeper.membership.coordinator import CAPABILITIES, ChannelMembership
from chatkeeper.membership.executor import RateLimitedExecutor

from conftest import FakeSession, refs


def names(channels):
    return [ch.name for ch in channels]


def make_membership(session, desired, cancel=None):
    desired_fn = desired if callable(desired) else (lambda: list(desired))
    return ChannelMembership(
        session,
        desired_fn,
        RateLimitedExecutor(session),
        cancel or threading.Event(),
    )


class TestReconcile:
    def test_starts_empty(self, fake_session):
        membership = make_membership(fake_session, [])
        assert membership.current_channels == []

    def test_first_pass_joins_all(self, fake_session):
        membership = make_membership(fake_session, refs("a", "b"))
        assert membership.reconcile() is True
        assert fake_session.joins == ["a", "b"]
        assert names(membership.current_channels) == ["a", "b"]

    def test_second_pass_only_sends_the_difference(self, fake_session):
        desired = refs("a", "b", "c")
        membership = make_membership(fake_session, lambda: list(desired))
        membership.reconcile()
        fake_session.sent.clear()

        desired[:] = refs("b", "c", "d")
        membership.reconcile()
        assert fake_session.sent == [("JOIN", "d"), ("PART", "a")]
        assert names(membership.current_channels) == ["b", "c", "d"]

    def test_unchanged_desired_state_sends_nothing(self, fake_session):
        membership = make_membership(fake_session, refs("a"))
        membership.reconcile()
        fake_session.sent.clear()
        assert membership.reconcile() is True
        assert fake_session.sent == []

    def test_empty_desired_state_leaves_everything(self, fake_session):
        desired = refs("a", "b")
        membership = make_membership(fake_session, lambda: list(desired))
        membership.reconcile()
        desired.clear()
        membership.reconcile()
        assert fake_session.leaves == ["a", "b"]
        assert membership.current_channels == []

    def test_send_failures_still_commit(self):
        session = FakeSession(fail_on={"b"})
        membership = make_membership(session, refs("a", "b"))
        assert membership.reconcile() is True
        assert names(membership.current_channels) == ["a", "b"]

    def test_desired_state_failure_skips_pass(self, fake_session):
        membership = make_membership(fake_session, refs("a"))
        membership.reconcile()

        failing = MagicMock(side_effect=PersistenceError("db down"))
        membership._desired_channels = failing
        assert membership.reconcile() is False
        assert names(membership.current_channels) == ["a"]

    def test_cancelled_pass_does_not_commit(self, fake_session):
        cancel = threading.Event()
        cancel.set()
        membership = make_membership(fake_session, refs("a"), cancel)
        assert membership.reconcile() is False
        assert membership.current_channels == []
        assert fake_session.sent == []


class TestStimuli:
    def test_session_ready_requests_capabilities_first(self, fake_session):
        membership = make_membership(fake_session, refs("a"))
        membership.on_session_ready()
        assert fake_session.sent[0] == ("CAP", " ".join(CAPABILITIES))
        assert fake_session.joins == ["a"]

    def test_capability_failure_still_reconciles(self):
        session = FakeSession(fail_on={" ".join(CAPABILITIES)})
        membership = make_membership(session, refs("a"))
        membership.on_session_ready()
        assert session.joins == ["a"]

    def test_tick_reconciles(self, fake_session):
        membership = make_membership(fake_session, refs("a"))
        membership.on_tick()
        assert fake_session.joins == ["a"]

    def test_capabilities_include_tags_and_commands(self):
        assert "twitch.tv/tags" in CAPABILITIES
        assert "twitch.tv/commands" in CAPABILITIES


class TestSerialization:
    def test_passes_never_overlap(self):
        """A stimulus during a pass waits, then sees the newer desired state."""
        active = []
        overlaps = []
        first_running = threading.Event()
        release_first = threading.Event()

        class SlowSession(FakeSession):
            def send_join(self, channel):
                if active:
                    overlaps.append(channel.name)
                active.append(channel.name)
                if channel.name == "a":
                    first_running.set()
                    release_first.wait(timeout=5)
                super().send_join(channel)
                active.remove(channel.name)

        session = SlowSession()
        desired = refs("a")
        membership = make_membership(session, lambda: list(desired))

        t1 = threading.Thread(target=membership.on_tick)
        t1.start()
        assert first_running.wait(timeout=5)
        assert membership.is_reconciling

        desired[:] = refs("a", "b")
        t2 = threading.Thread(target=membership.on_tick)
        t2.start()
        time.sleep(0.05)
        assert session.joins == []  # second pass is blocked on the gate

        release_first.set()
        t1.join(timeout=5)
        t2.join(timeout=5)

        assert overlaps == []
        assert session.joins == ["a", "b"]
        assert names(membership.current_channels) == ["a", "b"]
        assert not membership.is_reconciling
