"""Coordinates a bank of telephone ringers."""

from __future__ import annotations

import logging
import random
from typing import Iterable, Optional, Sequence

from callstorm.ringer import (
    DEFAULT_MAX_CALL_DELAY,
    CallDelay,
    CanStartCall,
    Clock,
    RelayWriter,
    TelephoneRinger,
    _elapsed,
)

logger = logging.getLogger(__name__)

STATUS_PRINT_INTERVAL_MS = 10000
DEFAULT_ACTIVE_RELAYS = 8
_MAX_PHONES_SHOWN = 8


class RingerManager:
    """Owns one TelephoneRinger per relay pin and steps the enabled ones.

    Phone indexes outside the bank are ignored, as are calls on them.
    """

    def __init__(
        self,
        relay_pins: Iterable[int],
        clock: Clock,
        rng: Optional[random.Random] = None,
        relay_writer: Optional[RelayWriter] = None,
        max_call_delay: CallDelay = DEFAULT_MAX_CALL_DELAY,
        verbose: bool = False,
    ) -> None:
        rng = rng if rng is not None else random.Random()
        self._verbose = verbose
        self._ringers: tuple[TelephoneRinger, ...] = tuple(
            TelephoneRinger(pin, clock, rng, relay_writer, max_call_delay, verbose)
            for pin in relay_pins
        )
        self._active_relay_count = DEFAULT_ACTIVE_RELAYS
        self._last_status_print = clock()
        if verbose:
            logger.info("RingerManager initialized with %d phones", len(self._ringers))

    @property
    def ringers(self) -> Sequence[TelephoneRinger]:
        return self._ringers

    def _ringer(self, phone_index: int) -> Optional[TelephoneRinger]:
        if 0 <= phone_index < len(self._ringers):
            return self._ringers[phone_index]
        return None

    def step(self, current_time: int) -> None:
        """Step every enabled ringer and periodically log the status."""
        for ringer in self._ringers[: min(self._active_relay_count, len(self._ringers))]:
            ringer.step(current_time)
        if (
            self._verbose
            and _elapsed(current_time, self._last_status_print) >= STATUS_PRINT_INTERVAL_MS
        ):
            logger.info("%s", self.status_report())
            self._last_status_print = current_time

    def start_call(
        self,
        phone_index: int,
        ring_count: Optional[int] = None,
        cut_short: bool = False,
        use_uk_style: bool = False,
    ) -> None:
        ringer = self._ringer(phone_index)
        if ringer is not None:
            ringer.start_call(ring_count, cut_short, use_uk_style)

    def stop_call(self, phone_index: int) -> None:
        ringer = self._ringer(phone_index)
        if ringer is not None:
            ringer.stop_call()

    def stop_all_calls(self) -> None:
        for ringer in self._ringers:
            ringer.stop_call()

    def set_can_start_call(self, callback: Optional[CanStartCall]) -> None:
        """Install the callback every phone asks before starting a call."""
        for ringer in self._ringers:
            ringer.can_start_call = callback

    def set_active_relay_count(self, count: int) -> None:
        """Enable the first ``count`` phones and stop calls on the rest."""
        self._active_relay_count = max(0, min(count, len(self._ringers)))
        for ringer in self._ringers[self._active_relay_count:]:
            ringer.stop_call()

    def active_call_count(self) -> int:
        return sum(1 for ringer in self._ringers if ringer.is_active())

    def ringing_phone_count(self) -> int:
        return sum(1 for ringer in self._ringers if ringer.is_ringing())

    def total_phone_count(self) -> int:
        return len(self._ringers)

    def active_phone_count(self) -> int:
        """Number of enabled relays."""
        return self._active_relay_count

    def is_phone_ringing(self, phone_index: int) -> bool:
        ringer = self._ringer(phone_index)
        return ringer is not None and ringer.is_ringing()

    def is_phone_active(self, phone_index: int) -> bool:
        ringer = self._ringer(phone_index)
        return ringer is not None and ringer.is_active()

    def status_report(self) -> str:
        """Return a three-line summary of the bank's activity."""
        active_calls = self.active_call_count()
        ringing = self.ringing_phone_count()
        phones = "".join(
            "R" if ringer.is_ringing() else "A" if ringer.is_active() else "."
            for ringer in self._ringers[:_MAX_PHONES_SHOWN]
        )
        return "\n".join(
            (
                f"Status: {active_calls} active calls, {ringing} phones ringing "
                f"out of {len(self._ringers)} total phones",
                f"Phones: {phones} (R=Ringing, A=Active, .=Idle)",
                f"Concurrent: {active_calls} active (limit enforced by callback system)",
            )
        )