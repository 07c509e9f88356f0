"""Rotary encoder with push button: turns raw pin levels into input events."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Callable, Optional

from callstorm.ringer import Clock, _elapsed

logger = logging.getLogger(__name__)

PinReader = Callable[[], bool]
LogSink = Callable[[str], None]

BUTTON_DEBOUNCE_MS = 50
LONG_PRESS_MS = 1000

HIGH = True
LOW = False


class EncoderEvent(IntEnum):
    NONE = 0
    CLOCKWISE = 1
    COUNTER_CLOCKWISE = 2
    BUTTON_PRESS = 3
    BUTTON_RELEASE = 4
    BUTTON_LONG_PRESS = 5


def event_name(event: int) -> str:
    """Return the name of ``event``, or ``"UNKNOWN"`` for values that are not events."""
    try:
        return EncoderEvent(event).name
    except ValueError:
        return "UNKNOWN"


def _level(state: bool) -> str:
    return "HIGH" if state else "LOW"


class EncoderManager:
    """Polls the encoder pins and reports one event per call to :meth:`update`.

    The pin readers return the electrical level (``True`` is HIGH); the inputs
    use pull-ups, so a pressed button reads LOW. A short press is reported on
    release; holding the button for a second reports a long press once, and the
    release after it is reported as ``BUTTON_RELEASE``.
    """

    def __init__(
        self,
        read_a: PinReader,
        read_b: PinReader,
        read_button: PinReader,
        clock: Clock,
        log: Optional[LogSink] = None,
    ) -> None:
        self._read_a = read_a
        self._read_b = read_b
        self._read_button = read_button
        self._clock = clock
        self._log = log if log is not None else logger.debug

        self._last_a = bool(read_a())
        self._last_b = bool(read_b())
        initial_button = bool(read_button())
        self._last_button_state = initial_button
        self._last_raw_button_state = initial_button
        self._current_button_state = initial_button
        self._button_pressed = False
        self._button_press_time = 0
        self._last_button_debounce = 0

    def update(self) -> EncoderEvent:
        """Poll the pins; rotation takes precedence over button events."""
        rotation = self._check_rotation()
        if rotation is not EncoderEvent.NONE:
            return rotation
        return self._check_button()

    def button_state(self) -> bool:
        """The debounced button level (``False`` while pressed)."""
        return self._current_button_state

    def _check_rotation(self) -> EncoderEvent:
        current_a = bool(self._read_a())
        current_b = bool(self._read_b())
        changed = current_a != self._last_a
        self._last_a = current_a
        self._last_b = current_b
        if not changed:
            return EncoderEvent.NONE
        if current_a == current_b:
            self._log("Encoder: CLOCKWISE")
            return EncoderEvent.CLOCKWISE
        self._log("Encoder: COUNTER_CLOCKWISE")
        return EncoderEvent.COUNTER_CLOCKWISE

    def _check_button(self) -> EncoderEvent:
        raw = bool(self._read_button())
        now = self._clock()

        if raw != self._last_raw_button_state:
            self._last_button_debounce = now
            self._last_raw_button_state = raw
            self._log(f"Button debounce reset, raw={_level(raw)}")

        if _elapsed(now, self._last_button_debounce) > BUTTON_DEBOUNCE_MS:
            if raw != self._last_button_state:
                self._log(
                    f"Button state change detected: "
                    f"{_level(self._last_button_state)} -> {_level(raw)}"
                )
                self._current_button_state = raw
                self._last_button_state = raw
                if raw is LOW:
                    # Wait for release or long press before reporting anything.
                    self._button_pressed = True
                    self._button_press_time = now
                    self._log("Encoder button pressed (waiting for release/long-press)")
                    return EncoderEvent.NONE
                duration = _elapsed(now, self._button_press_time)
                self._button_pressed = False
                self._log(f"Encoder button released after {duration}ms")
                if duration < LONG_PRESS_MS:
                    self._log("Short press detected on release")
                    return EncoderEvent.BUTTON_PRESS
                self._log("Long press already handled, ignoring release")
                return EncoderEvent.BUTTON_RELEASE
            self._current_button_state = raw

        if self._current_button_state is LOW and self._button_pressed:
            if _elapsed(now, self._button_press_time) >= LONG_PRESS_MS:
                self._log("Encoder Button: LONG_PRESS")
                self._button_pressed = False
                return EncoderEvent.BUTTON_LONG_PRESS

        return EncoderEvent.NONE