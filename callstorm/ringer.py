"""A single telephone ringer driven by a non-blocking state machine."""

from __future__ import annotations

import logging
import random
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
RelayWriter = Callable[[int, bool], None]
CallDelay = Union[int, Callable[[], int]]
CanStartCall = Callable[[], bool]

MIN_WAIT_MS = 5000
DEFAULT_RING_ON_MS = 2000
DEFAULT_RING_OFF_MS = 4000
HANG_UP_PAUSE_MS = 1000
DEFAULT_MAX_CALL_DELAY = 30
_ULONG_MASK = 0xFFFFFFFF


def _elapsed(now: int, since: int) -> int:
    """Milliseconds between two 32-bit millisecond counter readings."""
    return (now - since) & _ULONG_MASK


def random_wait_time(max_call_delay_seconds: int, rng: random.Random) -> int:
    """Return a random wait in milliseconds between calls.

    The wait lies between 5 s and ``max_call_delay_seconds``; if that maximum
    is not above 5 s, the lower bound becomes half the maximum.
    """
    if max_call_delay_seconds < 0:
        raise ValueError("maximum call delay must not be negative")
    max_delay = max_call_delay_seconds * 1000
    min_delay = MIN_WAIT_MS
    if min_delay >= max_delay:
        min_delay = max_delay // 2
    return rng.randint(min_delay, max_delay)


class RingerState(Enum):
    IDLE = "idle"                    # waiting for the next call
    RING_ON = "ring_on"              # bell is ringing
    RING_OFF = "ring_off"            # silence between rings
    CALL_ANSWERED = "call_answered"  # call over, brief hang-up pause
    WAITING = "waiting"              # waiting before going idle again


class TelephoneRinger:
    """Rings one telephone through a relay, simulating incoming calls.

    ``relay_writer(pin, level)`` receives the output level for the relay pin;
    relays are active low, so ``False`` energises the ringer.
    ``max_call_delay`` is the longest wait between calls in seconds, either a
    number or a callable read each time a wait is chosen.
    """

    def __init__(
        self,
        relay_pin: int,
        clock: Clock,
        rng: Optional[random.Random] = None,
        relay_writer: Optional[RelayWriter] = None,
        max_call_delay: CallDelay = DEFAULT_MAX_CALL_DELAY,
        verbose: bool = False,
    ) -> None:
        self.relay_pin = relay_pin
        self._clock = clock
        self._rng = rng if rng is not None else random.Random()
        self._relay_writer = relay_writer
        self._max_call_delay = max_call_delay
        self._verbose = verbose
        self.can_start_call: Optional[CanStartCall] = None

        self._state = RingerState.IDLE
        self._last_state_change = clock()
        self._current_ring_count = 0
        self._total_rings = 0
        self._final_ring_cut_short = False
        self._use_uk_style = False
        self._ring_on_duration = DEFAULT_RING_ON_MS
        self._ring_off_duration = DEFAULT_RING_OFF_MS
        self._wait_duration = self.random_wait_time()
        self._log("Phone initialized on pin %d", relay_pin)

    # -- read-only state -------------------------------------------------

    @property
    def state(self) -> RingerState:
        return self._state

    @property
    def last_state_change(self) -> int:
        return self._last_state_change

    @property
    def current_ring_count(self) -> int:
        return self._current_ring_count

    @property
    def total_rings(self) -> int:
        return self._total_rings

    @property
    def final_ring_cut_short(self) -> bool:
        return self._final_ring_cut_short

    @property
    def use_uk_style(self) -> bool:
        return self._use_uk_style

    @property
    def wait_duration(self) -> int:
        return self._wait_duration

    @property
    def ring_on_duration(self) -> int:
        return self._ring_on_duration

    @property
    def ring_off_duration(self) -> int:
        return self._ring_off_duration

    @property
    def max_call_delay(self) -> int:
        delay = self._max_call_delay
        return delay() if callable(delay) else delay

    # -- behaviour -------------------------------------------------------

    def _log(self, message: str, *args: object) -> None:
        if self._verbose:
            logger.info(message, *args)

    def _set_relay(self, active: bool) -> None:
        if self.relay_pin < 0:
            return
        if self._relay_writer is not None:
            self._relay_writer(self.relay_pin, not active)
        self._log(
            "Relay pin %d set to %s", self.relay_pin, "ON (LOW)" if active else "OFF (HIGH)"
        )

    def random_wait_time(self) -> int:
        """Return a random wait in milliseconds using the current maximum delay."""
        return random_wait_time(self.max_call_delay, self._rng)

    def step(self, current_time: int) -> None:
        """Advance the state machine to ``current_time`` (milliseconds)."""
        elapsed = _elapsed(current_time, self._last_state_change)
        state = self._state

        if state is RingerState.IDLE:
            if elapsed >= self._wait_duration:
                if self.can_start_call is None or self.can_start_call():
                    self.start_call()
                else:
                    # Concurrency limit reached: try again after a shorter wait.
                    self._wait_duration = self.random_wait_time() // 4
                    self._last_state_change = current_time

        elif state is RingerState.RING_ON:
            ring_duration = self._ring_on_duration
            if self._current_ring_count == self._total_rings and self._final_ring_cut_short:
                ring_duration = self._ring_on_duration * self._rng.randrange(25, 76) // 100
                self._log(
                    "Phone pin %d final ring cut short to %dms", self.relay_pin, ring_duration
                )
            if elapsed >= ring_duration:
                self._set_relay(False)
                self._log(
                    "Phone pin %d ring %d/%d OFF",
                    self.relay_pin,
                    self._current_ring_count,
                    self._total_rings,
                )
                if self._current_ring_count >= self._total_rings:
                    self._state = RingerState.CALL_ANSWERED
                    self._log("Phone pin %d call complete", self.relay_pin)
                else:
                    self._state = RingerState.RING_OFF
                self._last_state_change = current_time

        elif state is RingerState.RING_OFF:
            if elapsed >= self._ring_off_duration:
                self._current_ring_count += 1
                self._log(
                    "Phone pin %d starting ring %d/%d",
                    self.relay_pin,
                    self._current_ring_count,
                    self._total_rings,
                )
                self._set_relay(True)
                self._state = RingerState.RING_ON
                self._last_state_change = current_time

        elif state is RingerState.CALL_ANSWERED:
            if elapsed >= HANG_UP_PAUSE_MS:
                self._state = RingerState.WAITING
                self._wait_duration = self.random_wait_time()
                self._last_state_change = current_time
                self._log(
                    "Phone pin %d waiting %dms for next call", self.relay_pin, self._wait_duration
                )

        elif state is RingerState.WAITING:
            if elapsed >= self._wait_duration:
                self._state = RingerState.IDLE
                self._wait_duration = self.random_wait_time()
                self._last_state_change = current_time
                self._log("Phone pin %d ready for next call", self.relay_pin)

    def start_call(
        self,
        ring_count: Optional[int] = None,
        cut_short: bool = False,
        use_uk_style: bool = False,
    ) -> None:
        """Begin a call.

        Without ``ring_count`` the call gets 1 to 8 rings and an even chance
        that the final ring is cut short; the other arguments are then ignored.
        """
        if ring_count is None:
            self._total_rings = self._rng.randrange(1, 9)
            self._current_ring_count = 1
            self._final_ring_cut_short = self._rng.randrange(100) < 50
            self._log(
                "Phone on pin %d starting call: %d rings%s",
                self.relay_pin,
                self._total_rings,
                " (last ring may be cut short)" if self._final_ring_cut_short else "",
            )
            self._set_relay(True)
            self._state = RingerState.RING_ON
            self._last_state_change = self._clock()
            return

        self._total_rings = ring_count
        self._current_ring_count = 1
        self._final_ring_cut_short = cut_short
        self._use_uk_style = use_uk_style
        self._ring_on_duration = DEFAULT_RING_ON_MS
        self._ring_off_duration = DEFAULT_RING_OFF_MS
        self._set_relay(True)
        self._state = RingerState.RING_ON
        self._last_state_change = self._clock()
        self._log(
            "Phone on pin %d starting call: %d rings%s",
            self.relay_pin,
            self._total_rings,
            " (final ring cut short)" if cut_short else "",
        )

    def stop_call(self) -> None:
        """Silence the ringer and return to idle with a fresh random wait."""
        self._set_relay(False)
        self._state = RingerState.IDLE
        self._wait_duration = self.random_wait_time()
        self._last_state_change = self._clock()

    def is_ringing(self) -> bool:
        return self._state is RingerState.RING_ON

    def is_active(self) -> bool:
        return self._state not in (RingerState.IDLE, RingerState.WAITING)