"""The CallStorm controller: pause button, menu, power control and status LED."""

from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Protocol

from callstorm.display import DisplayManager, LcdScreen
from callstorm.encoder import EncoderEvent, EncoderManager
from callstorm.ringer import _elapsed
from callstorm.ringer_manager import RingerManager
from callstorm.settings import (
    Eeprom,
    InvalidSettingsError,
    Settings,
    load_settings as _load_settings,
    save_settings as _save_settings,
)

logger = logging.getLogger(__name__)

HIGH = True
LOW = False

# Analog pins as numbered on the board.
A0, A1, A2, A3 = 14, 15, 16, 17

RELAY_PINS = (5, 6, 7, 8, 9, 10, 11, 12)
NUM_PHONES = len(RELAY_PINS)
ENCODER_PIN_A = 3
ENCODER_PIN_B = 2
ENCODER_BUTTON = 4
PAUSE_BUTTON = A0
SEED_PIN = A1
STATUS_LED = 13
RINGER_POWER_PIN = A2
READY_LED = A3

MAX_CONCURRENT_ACTIVE_PHONES = 4
DEFAULT_MAX_CALL_DELAY = 30
DEFAULT_RINGER_HANG_TIME = 2

CHAOS_ACTIVE_RELAYS = 8
CHAOS_MAX_CONCURRENT = 8
CHAOS_MIN_CALL_DELAY = 10

DEBOUNCE_DELAY_MS = 50
PAUSE_BLINK_INTERVAL_MS = 100
LOOP_DELAY_MS = 10
RANDOM_SEED_SAMPLES = 16

_SETTINGS_HEADER = "* SETTINGS *"
_NAVIGATE_HINT = "Turn: Navigate"
_SELECT_HINT = "Press: Select/Exit"
_SAVE_HINT = "Press: Save & Back"


class MenuItem(IntEnum):
    CONCURRENT_LIMIT = 0
    ACTIVE_RELAYS = 1
    CALL_FREQUENCY = 2
    RINGER_HANG_TIME = 3
    EXIT = 4

    @property
    def label(self) -> str:
        return _MENU_LABELS[self]


_MENU_LABELS = {
    MenuItem.CONCURRENT_LIMIT: "Max Concurrent",
    MenuItem.ACTIVE_RELAYS: "Active Phones",
    MenuItem.CALL_FREQUENCY: "Call Timing",
    MenuItem.RINGER_HANG_TIME: "Ringer Hang Time",
    MenuItem.EXIT: "Exit Menu",
}


@dataclass(frozen=True)
class _Adjustment:
    attribute: str
    value_format: str
    hint: str
    step: int
    minimum: int
    maximum: int


_ADJUSTMENTS = {
    MenuItem.CONCURRENT_LIMIT: _Adjustment(
        "max_concurrent_setting", "Setting: {}", "Turn: Adjust (1-8)", 1, 1, 8
    ),
    MenuItem.ACTIVE_RELAYS: _Adjustment(
        "active_relay_setting", "Setting: {}", "Turn: Adjust (0-8)", 1, 0, 8
    ),
    MenuItem.CALL_FREQUENCY: _Adjustment(
        "max_call_delay_setting", "Max: {}s", "Turn: +/-10s (10-1000)", 10, 10, 1000
    ),
    MenuItem.RINGER_HANG_TIME: _Adjustment(
        "ringer_hang_time_setting", "Setting: {}s", "Turn: +/-1s (0-60)", 1, 0, 60
    ),
}


def random_seed(read_analog: Callable[[], int], samples: int = RANDOM_SEED_SAMPLES) -> int:
    """Fold noisy analog readings into a non-zero 16-bit seed.

    Sampling repeats until the folded value is non-zero.
    """
    if samples <= 0:
        raise ValueError("samples must be positive")
    seed = 0
    while seed == 0:
        for _ in range(samples):
            seed = ((seed << 1) ^ read_analog()) & 0xFFFF
    return seed


class _Hardware(Protocol):
    def millis(self) -> int: ...
    def delay(self, ms: int) -> None: ...
    def digital_read(self, pin: int) -> bool: ...
    def digital_write(self, pin: int, value: bool) -> None: ...
    def analog_read(self, pin: int) -> int: ...


class SimulatedHardware:
    """A board with a virtual millisecond clock and pull-up inputs.

    Unwritten pins read HIGH; writing a pin sets the level it reads back,
    which is also how a test presses a button. Analog pins return noise.
    """

    def __init__(self) -> None:
        self._now = 0
        self._levels: dict[int, bool] = {}
        self._noise = random.Random()

    def millis(self) -> int:
        return self._now & 0xFFFFFFFF

    def delay(self, ms: int) -> None:
        if ms < 0:
            raise ValueError("delay must not be negative")
        self._now += ms

    def digital_read(self, pin: int) -> bool:
        return self._levels.get(pin, HIGH)

    def digital_write(self, pin: int, value: bool) -> None:
        self._levels[pin] = bool(value)

    def analog_read(self, pin: int) -> int:
        return self._noise.randrange(1024)


class CallStorm:
    """The whole controller: call `setup` once, then `loop` repeatedly."""

    def __init__(
        self,
        hardware: _Hardware,
        eeprom: Optional[Eeprom] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.hardware = hardware
        self.eeprom = eeprom if eeprom is not None else Eeprom()
        self._rng = rng if rng is not None else random.Random()

        self.in_menu = False
        self.in_adjustment_mode = False
        self.current_menu_item = MenuItem.CONCURRENT_LIMIT
        self.max_concurrent_setting = MAX_CONCURRENT_ACTIVE_PHONES
        self.active_relay_setting = NUM_PHONES
        self.max_call_delay_setting = DEFAULT_MAX_CALL_DELAY
        self.ringer_hang_time_setting = DEFAULT_RINGER_HANG_TIME

        self.system_paused = False
        self._last_pause_button_state = HIGH
        self._pause_button_pressed = False
        self._last_pause_debounce = 0

        self.ringer_power_active = False
        self._ringer_power_start = 0
        self.status_led_state = False
        self._last_status_led_toggle = 0
        self._last_active_relay_count = self.active_relay_setting

        self.ringers = RingerManager(
            RELAY_PINS,
            hardware.millis,
            self._rng,
            hardware.digital_write,
            lambda: self.max_call_delay_setting,
            verbose=False,
        )
        self.lcd = LcdScreen()
        self.display = DisplayManager(self.lcd, hardware.millis, hardware.delay)
        self.encoder = EncoderManager(
            lambda: hardware.digital_read(ENCODER_PIN_A),
            lambda: hardware.digital_read(ENCODER_PIN_B),
            lambda: hardware.digital_read(ENCODER_BUTTON),
            hardware.millis,
        )

    def _reseed(self) -> None:
        self._rng.seed(random_seed(lambda: self.hardware.analog_read(SEED_PIN)))

    def setup(self) -> None:
        """Seed the RNG, park every output, load settings and test each relay."""
        hw = self.hardware
        self._reseed()
        for pin in RELAY_PINS:
            hw.digital_write(pin, HIGH)
        hw.digital_write(STATUS_LED, LOW)
        hw.digital_write(RINGER_POWER_PIN, HIGH)
        hw.digital_write(READY_LED, LOW)

        self.load_settings()
        self.ringers.set_active_relay_count(self.active_relay_setting)
        self.ringers.set_can_start_call(self.can_start_new_call)
        self.load_settings()

        for pin in RELAY_PINS:
            hw.digital_write(pin, LOW)
            hw.delay(200)
            hw.digital_write(pin, HIGH)
            hw.delay(100)

        self._last_active_relay_count = self.active_relay_setting
        hw.digital_write(READY_LED, HIGH)

    def loop(self) -> None:
        """One pass of the main loop, ending with a 10 ms delay."""
        current_time = self.hardware.millis()
        self.check_pause_button()
        self.handle_encoder_event(self.encoder.update())

        if not self.system_paused and self.active_relay_setting > 0:
            self.ringers.step(current_time)

        if self._last_active_relay_count != self.active_relay_setting:
            self.ringers.set_active_relay_count(self.active_relay_setting)
            self._last_active_relay_count = self.active_relay_setting

        if not self.in_menu:
            self.display.update(
                current_time, self.system_paused, self.ringers, self.max_concurrent_setting
            )

        self.update_ringer_power_control()
        self.update_status_led()
        self.hardware.delay(LOOP_DELAY_MS)

    def check_pause_button(self) -> None:
        """Toggle pause on each debounced press of the pause button."""
        hw = self.hardware
        state = hw.digital_read(PAUSE_BUTTON)
        if state != self._last_pause_button_state:
            self._last_pause_debounce = hw.millis()
            self._pause_button_pressed = False

        if _elapsed(hw.millis(), self._last_pause_debounce) > DEBOUNCE_DELAY_MS:
            if state == LOW and not self._pause_button_pressed:
                self._pause_button_pressed = True
                self.system_paused = not self.system_paused
                if self.system_paused:
                    # Silence the relays but keep the call state machines running.
                    for pin in RELAY_PINS:
                        hw.digital_write(pin, HIGH)
                    self.display.show_pause_message()
                else:
                    self.display.show_resume_message()
            if state == HIGH:
                self._pause_button_pressed = False

        self._last_pause_button_state = state

    def update_status_led(self) -> None:
        """Blink while paused; otherwise light the LED while any phone rings."""
        hw = self.hardware
        now = hw.millis()
        if self.system_paused:
            if _elapsed(now, self._last_status_led_toggle) >= PAUSE_BLINK_INTERVAL_MS:
                self.status_led_state = not self.status_led_state
                hw.digital_write(STATUS_LED, self.status_led_state)
                self._last_status_led_toggle = now
            return
        should_be_on = self.ringers.ringing_phone_count() > 0
        if self.status_led_state != should_be_on:
            self.status_led_state = should_be_on
            hw.digital_write(STATUS_LED, should_be_on)

    def update_ringer_power_control(self) -> None:
        """Power the ringer supply while calls are active, with a hang time after."""
        hw = self.hardware
        now = hw.millis()
        if self.system_paused:
            if self.ringer_power_active:
                self.ringer_power_active = False
                hw.digital_write(RINGER_POWER_PIN, HIGH)
            return

        if self.ringers.active_call_count() > 0:
            if not self.ringer_power_active:
                self.ringer_power_active = True
                hw.digital_write(RINGER_POWER_PIN, LOW)
            self._ringer_power_start = now
        elif self.ringer_power_active:
            if _elapsed(now, self._ringer_power_start) >= self.ringer_hang_time_setting * 1000:
                self.ringer_power_active = False
                hw.digital_write(RINGER_POWER_PIN, HIGH)

    def can_start_new_call(self) -> bool:
        """True if relays are enabled and the concurrent limit is not reached."""
        if self.active_relay_setting == 0:
            return False
        return self.ringers.active_call_count() < self.max_concurrent_setting

    def _show_menu(self) -> None:
        self.display.show_menu_message(
            _SETTINGS_HEADER, self.current_menu_item.label, _NAVIGATE_HINT, _SELECT_HINT
        )

    def _show_adjustment(self, item: MenuItem) -> None:
        adjustment = _ADJUSTMENTS[item]
        value = getattr(self, adjustment.attribute)
        self.display.show_message(
            item.label, adjustment.value_format.format(value), adjustment.hint, _SAVE_HINT
        )

    def _adjust(self, direction: int) -> None:
        adjustment = _ADJUSTMENTS.get(self.current_menu_item)
        if adjustment is None:
            return
        value = getattr(self, adjustment.attribute)
        if direction > 0 and value < adjustment.maximum:
            setattr(self, adjustment.attribute, value + adjustment.step)
        elif direction < 0 and value > adjustment.minimum:
            setattr(self, adjustment.attribute, value - adjustment.step)
        else:
            return
        self._show_adjustment(self.current_menu_item)

    def _handle_press(self) -> None:
        if not self.in_menu:
            self.in_menu = True
            self.in_adjustment_mode = False
            self.current_menu_item = MenuItem.CONCURRENT_LIMIT
            self._show_menu()
        elif self.in_adjustment_mode:
            self.save_settings()
            self.in_adjustment_mode = False
            self._show_menu()
        elif self.current_menu_item is MenuItem.EXIT:
            self.in_menu = False
            self.in_adjustment_mode = False
            self.display.show_status(
                self.ringers, self.system_paused, self.max_concurrent_setting
            )
        else:
            self.in_adjustment_mode = True
            self._show_adjustment(self.current_menu_item)

    def handle_encoder_event(self, event: EncoderEvent) -> None:
        """React to one encoder event according to the menu state."""
        if event is EncoderEvent.NONE:
            return
        if event is EncoderEvent.BUTTON_PRESS:
            self._handle_press()
            return

        turn = {EncoderEvent.CLOCKWISE: 1, EncoderEvent.COUNTER_CLOCKWISE: -1}.get(event)
        if self.in_menu:
            if turn is not None:
                if self.in_adjustment_mode:
                    self._adjust(turn)
                else:
                    self.current_menu_item = MenuItem(
                        (self.current_menu_item + turn) % len(MenuItem)
                    )
                    self._show_menu()
            elif event is EncoderEvent.BUTTON_LONG_PRESS:
                self.save_and_exit_menu()
            return

        if turn == 1 and self.active_relay_setting < NUM_PHONES:
            self.active_relay_setting += 1
            self.display.show_relay_adjustment_direction(self.active_relay_setting, True)
            self.save_settings()
        elif turn == -1 and self.active_relay_setting > 0:
            self.active_relay_setting -= 1
            self.display.show_relay_adjustment_direction(self.active_relay_setting, False)
            self.save_settings()
        elif event is EncoderEvent.BUTTON_LONG_PRESS:
            self.activate_maximum_chaos()

    def load_settings(self) -> None:
        """Apply stored settings, or store the current ones if none are valid."""
        try:
            stored = _load_settings(self.eeprom)
        except InvalidSettingsError as error:
            logger.debug("Using default settings: %s", error)
            self.save_settings()
            return
        self.max_concurrent_setting = stored.max_concurrent
        self.active_relay_setting = stored.active_relays
        self.max_call_delay_setting = stored.max_call_delay
        self.ringer_hang_time_setting = stored.ringer_hang_time

    def save_settings(self) -> Settings:
        """Write the current settings to the EEPROM and return what was stored."""
        return _save_settings(
            self.eeprom,
            Settings(
                max_concurrent=self.max_concurrent_setting,
                active_relays=self.active_relay_setting,
                max_call_delay=self.max_call_delay_setting,
                ringer_hang_time=self.ringer_hang_time_setting,
            ),
        )

    def activate_maximum_chaos(self) -> None:
        """Enable every phone at the highest call rate and announce it."""
        self.max_concurrent_setting = CHAOS_MAX_CONCURRENT
        self.active_relay_setting = CHAOS_ACTIVE_RELAYS
        self.max_call_delay_setting = CHAOS_MIN_CALL_DELAY
        self._reseed()
        self.save_settings()
        self.display.show_chaos_message()

    def show_relay_adjustment_feedback(self) -> None:
        self.display.show_relay_adjustment_message(self.active_relay_setting)

    def save_and_exit_menu(self) -> None:
        self.save_settings()
        self.display.show_save_exit_message()
        self.in_menu = False
        self.in_adjustment_mode = False


def main(argv: Optional[list[str]] = None) -> int:
    """Run the controller on simulated hardware and print the final screen."""
    parser = argparse.ArgumentParser(
        prog="callstorm", description="Run the CallStorm controller on simulated hardware."
    )
    parser.add_argument("--seconds", type=float, default=60.0, help="simulated run time")
    parser.add_argument("--verbose", action="store_true", help="log encoder and status details")
    args = parser.parse_args(argv)
    if args.seconds < 0:
        parser.error("--seconds must not be negative")
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    hardware = SimulatedHardware()
    storm = CallStorm(hardware)
    storm.setup()
    end = hardware.millis() + int(args.seconds * 1000)
    while hardware.millis() < end:
        storm.loop()

    for line in storm.lcd.lines():
        print(line.replace("\x01", "*"))
    print(storm.ringers.status_report())
    return 0