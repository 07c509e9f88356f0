"""System configuration with range checks and EEPROM persistence."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, fields
from enum import IntEnum

from callstorm.settings import Eeprom

logger = logging.getLogger(__name__)

CONFIG_ADDRESS = 0
CONFIG_MAGIC_NUMBER = 0xABCD
_MAGIC_LAYOUT = struct.Struct("<H")
_CONFIG_LAYOUT = struct.Struct("<BBBHHHHHBBB?BBHB?")
_U16_MAX = 0xFFFF


class RingStyle(IntEnum):
    US = 0      # 2 s on, 4 s off
    UK = 1      # short double ring
    MIXED = 2   # random mix of US and UK
    CUSTOM = 3  # user-defined timing


class PatternMode(IntEnum):
    RANDOM = 0
    SEQUENTIAL = 1
    WAVE = 2
    MAYHEM = 3
    BURST = 4
    CUSTOM = 5


@dataclass
class SystemConfig:
    """All user-adjustable settings; the defaults are the factory configuration."""

    active_relay_count: int = 8
    max_simultaneous_rings: int = 3
    max_rings_per_call: int = 8
    ring_on_duration: int = 2000
    ring_off_duration: int = 4000
    min_wait_time: int = 5000
    max_wait_time: int = 30000
    short_ring_duration: int = 300
    answer_probability: int = 70
    ring_style: int = RingStyle.US
    pattern_mode: int = PatternMode.RANDOM
    status_display_enabled: bool = True
    display_brightness: int = 8
    display_timeout: int = 30
    sequential_delay: int = 1000
    wave_speed: int = 5
    debug_output: bool = True


DEFAULT_CONFIG = SystemConfig()


def _constrain(value: int, low: int, high: int) -> int:
    if value < low:
        return low
    if value > high:
        return high
    return value


def _is_valid(config: SystemConfig) -> bool:
    return (
        1 <= config.active_relay_count <= 8
        and 1 <= config.max_simultaneous_rings <= config.active_relay_count
        and 1 <= config.max_rings_per_call <= 15
        and 100 <= config.ring_on_duration <= 10000
        and 100 <= config.ring_off_duration <= 20000
        and 0 <= config.answer_probability <= 100
        and 0 <= config.ring_style <= RingStyle.CUSTOM
        and 0 <= config.pattern_mode <= PatternMode.CUSTOM
    )


def _pack(config: SystemConfig) -> bytes:
    return _CONFIG_LAYOUT.pack(*(getattr(config, f.name) for f in fields(config)))


def _unpack(raw: bytes) -> SystemConfig:
    config = SystemConfig(*_CONFIG_LAYOUT.unpack(raw))
    if config.ring_style in RingStyle._value2member_map_:
        config.ring_style = RingStyle(config.ring_style)
    if config.pattern_mode in PatternMode._value2member_map_:
        config.pattern_mode = PatternMode(config.pattern_mode)
    return config


class ConfigManager:
    """Holds the current configuration and persists it to an EEPROM image.

    Setters silently ignore values outside their allowed range.
    """

    def __init__(self, eeprom: Eeprom) -> None:
        self._eeprom = eeprom
        self._config = SystemConfig()
        self._changed = False

    @property
    def config(self) -> SystemConfig:
        return self._config

    @property
    def changed(self) -> bool:
        """True if the configuration was modified since it was last saved or loaded."""
        return self._changed

    def load_config(self) -> None:
        """Load the stored configuration, falling back to (and saving) defaults."""
        (magic,) = _MAGIC_LAYOUT.unpack(self._eeprom.read(CONFIG_ADDRESS, _MAGIC_LAYOUT.size))
        if magic == CONFIG_MAGIC_NUMBER:
            stored = _unpack(
                self._eeprom.read(CONFIG_ADDRESS + _MAGIC_LAYOUT.size, _CONFIG_LAYOUT.size)
            )
            if _is_valid(stored):
                self._config = stored
                self._changed = False
                logger.info("Configuration loaded from EEPROM")
                return
            logger.info("Invalid configuration in EEPROM, using defaults")
        else:
            logger.info("No valid configuration found, using defaults")
        self._config = SystemConfig()
        self.save_config()

    def save_config(self) -> None:
        """Constrain values and write the configuration behind the magic number."""
        self.constrain_values()
        self._eeprom.write(CONFIG_ADDRESS, _MAGIC_LAYOUT.pack(CONFIG_MAGIC_NUMBER))
        self._eeprom.write(CONFIG_ADDRESS + _MAGIC_LAYOUT.size, _pack(self._config))
        self._changed = False
        logger.info("Configuration saved to EEPROM")

    def reset_to_defaults(self) -> None:
        self._config = SystemConfig()
        self._changed = True
        self.save_config()
        logger.info("Configuration reset to defaults")

    def set_active_relay_count(self, count: int) -> None:
        if 1 <= count <= 8:
            self._config.active_relay_count = count
            self._changed = True

    def set_max_simultaneous_rings(self, maximum: int) -> None:
        if 1 <= maximum <= self._config.active_relay_count:
            self._config.max_simultaneous_rings = maximum
            self._changed = True

    def set_max_rings_per_call(self, maximum: int) -> None:
        if 1 <= maximum <= 15:
            self._config.max_rings_per_call = maximum
            self._changed = True

    def set_ring_style(self, style: int) -> None:
        if 0 <= style <= RingStyle.CUSTOM:
            self._config.ring_style = RingStyle(style)
            self._changed = True

    def set_pattern_mode(self, mode: int) -> None:
        if 0 <= mode <= PatternMode.CUSTOM:
            self._config.pattern_mode = PatternMode(mode)
            self._changed = True

    def set_answer_probability(self, probability: int) -> None:
        if 0 <= probability <= 100:
            self._config.answer_probability = probability
            self._changed = True

    def set_display_brightness(self, brightness: int) -> None:
        if 0 <= brightness <= 15:
            self._config.display_brightness = brightness
            self._changed = True

    def set_debug_output(self, enabled: bool) -> None:
        self._config.debug_output = bool(enabled)
        self._changed = True

    def is_config_valid(self) -> bool:
        return _is_valid(self._config)

    def constrain_values(self) -> None:
        """Clamp every bounded setting into its allowed range."""
        c = self._config
        c.active_relay_count = _constrain(c.active_relay_count, 1, 8)
        c.max_simultaneous_rings = _constrain(c.max_simultaneous_rings, 1, c.active_relay_count)
        c.max_rings_per_call = _constrain(c.max_rings_per_call, 1, 15)
        c.ring_on_duration = _constrain(c.ring_on_duration, 100, 10000)
        c.ring_off_duration = _constrain(c.ring_off_duration, 100, 20000)
        # Wait times are 16-bit fields, so their upper bounds cannot exceed that width.
        c.min_wait_time = _constrain(c.min_wait_time, 1000, min(120000, _U16_MAX))
        c.max_wait_time = _constrain(c.max_wait_time, c.min_wait_time, min(300000, _U16_MAX))
        c.answer_probability = _constrain(c.answer_probability, 0, 100)
        c.display_brightness = _constrain(c.display_brightness, 0, 15)
        c.sequential_delay = _constrain(c.sequential_delay, 100, 5000)
        c.wave_speed = _constrain(c.wave_speed, 1, 10)

    def ring_timing(self, is_uk_style: bool = False) -> tuple[int, int]:
        """Return ``(on_ms, off_ms)`` for the current ring style."""
        uk_timing = (400, 2000)
        configured = (self._config.ring_on_duration, self._config.ring_off_duration)
        style = self._config.ring_style
        if style == RingStyle.UK:
            return uk_timing
        if style == RingStyle.MIXED:
            return uk_timing if is_uk_style else configured
        return configured