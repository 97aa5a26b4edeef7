from __future__ import annotations

import random
from typing import List, Tuple

import pytest

from keymacros.executor import MacroExecutor, RateLimiter
from keymacros.models import GlobalOptions, Message, Override, SendMode, Trigger
from keymacros.scheduler import TickScheduler


class FakeChannel:
    def __init__(self) -> None:
        self.sent: List[Tuple[str, bool]] = []
        self.typed: List[str] = []
        self.overlay: List[str] = []
        self.fail_on = None

    def send(self, text: str, add_to_history: bool) -> None:
        if text == self.fail_on:
            raise RuntimeError("channel down")
        self.sent.append((text, add_to_history))

    def type_text(self, text: str) -> None:
        self.typed.append(text)

    def show_overlay(self, text: str) -> None:
        self.overlay.append(text)


def make_executor(options: GlobalOptions = None, singleplayer: bool = False):
    channel = FakeChannel()
    scheduler = TickScheduler()
    opts = options or GlobalOptions()
    executor = MacroExecutor(
        channel, scheduler, lambda: opts, in_singleplayer=lambda: singleplayer
    )
    return executor, channel, scheduler


def test_messages_without_delay_are_sent_in_order() -> None:
    executor, channel, _ = make_executor()
    trigger = Trigger(messages=[Message("/home"), Message("hi all")])

    assert executor.fire(trigger) is True
    assert [text for text, _ in channel.sent] == ["/home", "hi all"]


def test_delays_accumulate_and_use_the_scheduler() -> None:
    executor, channel, scheduler = make_executor()
    trigger = Trigger(
        messages=[Message("a"), Message("b", delay_ticks=2), Message("c", delay_ticks=1)]
    )

    executor.fire(trigger)
    assert [text for text, _ in channel.sent] == ["a"]
    scheduler.tick()
    assert [text for text, _ in channel.sent] == ["a"]
    scheduler.tick()
    assert [text for text, _ in channel.sent] == ["a", "b"]
    scheduler.tick()
    assert [text for text, _ in channel.sent] == ["a", "b", "c"]


def test_uniform_spacing_skips_the_first_message() -> None:
    executor, channel, scheduler = make_executor()
    trigger = Trigger(
        messages=[Message("a", delay_ticks=9), Message("b"), Message("c")], space_ticks=3
    )

    executor.fire(trigger)
    assert [text for text, _ in channel.sent] == ["a"]
    for _ in range(3):
        scheduler.tick()
    assert [text for text, _ in channel.sent] == ["a", "b"]
    for _ in range(3):
        scheduler.tick()
    assert [text for text, _ in channel.sent] == ["a", "b", "c"]


def test_sub_messages_and_blank_parts() -> None:
    executor, channel, _ = make_executor()
    executor.fire(Trigger(messages=[Message("/gamemode creative,,,, ,,/time set day")]))

    assert [text for text, _ in channel.sent] == ["/gamemode creative", "/time set day"]


def test_non_literal_messages_are_typed_not_sent() -> None:
    executor, channel, _ = make_executor()
    executor.fire(Trigger(messages=[Message("/msg ", literal=False), Message(" ", literal=False)]))

    assert channel.typed == ["/msg "]
    assert channel.sent == []


def test_overrides_apply_to_history_and_overlay() -> None:
    options = GlobalOptions(show_overlay=Override.ON, add_to_history=Override.OFF)
    executor, channel, _ = make_executor(options)
    executor.fire(Trigger(messages=[Message("hello", add_to_history=True)]))

    assert channel.sent == [("hello", False)]
    assert channel.overlay == ["hello"]


def test_deferred_options_use_entry_values() -> None:
    executor, channel, _ = make_executor()
    executor.fire(
        Trigger(messages=[Message("hello", add_to_history=True)], show_overlay=False)
    )

    assert channel.sent == [("hello", True)]
    assert channel.overlay == []


def test_channel_failure_does_not_abort_later_messages(
    caplog: pytest.LogCaptureFixture,
) -> None:
    executor, channel, _ = make_executor()
    channel.fail_on = "a"
    executor.fire(Trigger(messages=[Message("a"), Message("b")]))

    assert [text for text, _ in channel.sent] == ["b"]
    assert "Message channel failed" in caplog.text


def test_ratelimit_blocks_and_notifies() -> None:
    options = GlobalOptions(ratelimit_count=2, ratelimit_ticks=10)
    executor, channel, scheduler = make_executor(options)
    trigger = Trigger(keys={"keyboard.k"}, messages=[Message("x")])

    assert executor.fire(trigger) is True
    assert executor.fire(trigger) is True
    assert executor.fire(trigger) is False
    assert len(channel.sent) == 2
    assert channel.overlay == ["Macro keyboard.k blocked by rate limit"]

    for _ in range(10):
        scheduler.tick()
    assert executor.fire(trigger) is True


def test_ratelimit_bypassed_in_singleplayer() -> None:
    options = GlobalOptions(ratelimit_count=1, ratelimit_ticks=100)
    executor, channel, _ = make_executor(options, singleplayer=True)
    trigger = Trigger(messages=[Message("x")])

    for _ in range(3):
        assert executor.fire(trigger) is True
    assert len(channel.sent) == 3


def test_rate_limiter_window() -> None:
    now = [0]
    limiter = RateLimiter(lambda: now[0])

    assert limiter.allow(1, 5) is True
    assert limiter.allow(1, 5) is False
    now[0] = 5
    assert limiter.allow(1, 5) is True
    assert limiter.allow(0, 5) is True


def test_cycle_sends_one_entry_per_firing_and_wraps() -> None:
    executor, channel, scheduler = make_executor()
    trigger = Trigger(
        messages=[
            Message("/day,,/weather clear", delay_ticks=5),
            Message(""),
            Message("/night"),
        ],
        mode=SendMode.CYCLE,
    )

    for _ in range(4):
        assert executor.fire(trigger) is True

    # The blank entry is a firing that sends nothing; delays do not apply.
    assert [text for text, _ in channel.sent] == [
        "/day",
        "/weather clear",
        "/night",
        "/day",
        "/weather clear",
    ]
    assert scheduler.pending() == 0
    assert trigger.cycle_index == 1


def test_cycle_entry_may_be_typed() -> None:
    executor, channel, _ = make_executor()
    trigger = Trigger(
        messages=[Message("/msg ", literal=False), Message("/r")], mode=SendMode.CYCLE
    )

    executor.fire(trigger)
    executor.fire(trigger)

    assert channel.typed == ["/msg "]
    assert channel.sent == [("/r", False)]


def test_random_sends_one_chosen_entry() -> None:
    channel = FakeChannel()
    opts = GlobalOptions()
    executor = MacroExecutor(channel, TickScheduler(), lambda: opts, rng=random.Random(7))
    expected = random.Random(7)
    messages = [Message("/a"), Message("/b"), Message("/c")]
    trigger = Trigger(messages=messages, mode=SendMode.RANDOM)

    for _ in range(5):
        executor.fire(trigger)

    assert [text for text, _ in channel.sent] == [
        expected.choice(messages).text for _ in range(5)
    ]
