"""Persistent user settings stored in a small EEPROM image with a checksum."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace

SETTINGS_VERSION = 2
VERSION_ADDRESS = 0
SETTINGS_ADDRESS = 4
DEFAULT_EEPROM_SIZE = 1024

# version, max_concurrent, active_relays, max_call_delay, ringer_hang_time, checksum
_LAYOUT = struct.Struct("<BBBHBB")
# The version marker is written as a 16-bit integer; only its low byte is read back.
_VERSION_LAYOUT = struct.Struct("<H")


class InvalidSettingsError(ValueError):
    """Raised when stored or supplied settings are missing, corrupt or out of range."""


class Eeprom:
    """A byte-addressable non-volatile memory image, erased to 0xFF."""

    def __init__(self, size: int = DEFAULT_EEPROM_SIZE) -> None:
        if size <= 0:
            raise ValueError("EEPROM size must be positive")
        self._data = bytearray(b"\xff" * size)

    def __len__(self) -> int:
        return len(self._data)

    def _check_range(self, address: int, length: int) -> None:
        if address < 0 or length < 0 or address + length > len(self._data):
            raise IndexError(
                f"EEPROM access {address}..{address + length} outside 0..{len(self._data)}"
            )

    def read(self, address: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``address``."""
        self._check_range(address, length)
        return bytes(self._data[address:address + length])

    def write(self, address: int, data: bytes) -> None:
        """Store ``data`` starting at ``address``."""
        self._check_range(address, len(data))
        self._data[address:address + len(data)] = data


@dataclass
class Settings:
    """User settings persisted across power cycles."""

    max_concurrent: int
    active_relays: int
    max_call_delay: int
    ringer_hang_time: int
    version: int = SETTINGS_VERSION
    checksum: int = 0


def default_settings() -> Settings:
    """Return the factory settings."""
    return Settings(
        max_concurrent=4,
        active_relays=8,
        max_call_delay=30,
        ringer_hang_time=2,
        version=SETTINGS_VERSION,
        checksum=0,
    )


def validate_settings(settings: Settings) -> bool:
    """Return True if every setting lies within its allowed range."""
    return (
        1 <= settings.max_concurrent <= 8
        and 0 <= settings.active_relays <= 8
        and 10 <= settings.max_call_delay <= 1000
        and 0 <= settings.ringer_hang_time <= 60
    )


def calculate_checksum(settings: Settings) -> int:
    """XOR of every stored byte except the checksum itself."""
    checksum = 0
    for value in (
        settings.version & 0xFF,
        settings.max_concurrent & 0xFF,
        settings.active_relays & 0xFF,
        settings.max_call_delay & 0xFF,
        (settings.max_call_delay >> 8) & 0xFF,
        settings.ringer_hang_time & 0xFF,
    ):
        checksum ^= value
    return checksum


def _pack(settings: Settings) -> bytes:
    return _LAYOUT.pack(
        settings.version,
        settings.max_concurrent,
        settings.active_relays,
        settings.max_call_delay,
        settings.ringer_hang_time,
        settings.checksum,
    )


def _unpack(raw: bytes) -> Settings:
    version, max_concurrent, active_relays, max_call_delay, hang_time, checksum = _LAYOUT.unpack(raw)
    return Settings(
        max_concurrent=max_concurrent,
        active_relays=active_relays,
        max_call_delay=max_call_delay,
        ringer_hang_time=hang_time,
        version=version,
        checksum=checksum,
    )


def load_settings(eeprom: Eeprom) -> Settings:
    """Read settings from ``eeprom``.

    Raises InvalidSettingsError if the version marker is wrong, the checksum
    does not match, or a value is out of range.
    """
    (version,) = eeprom.read(VERSION_ADDRESS, 1)
    if version != SETTINGS_VERSION:
        raise InvalidSettingsError(f"stored settings version {version} is not {SETTINGS_VERSION}")
    settings = _unpack(eeprom.read(SETTINGS_ADDRESS, _LAYOUT.size))
    if settings.checksum != calculate_checksum(settings):
        raise InvalidSettingsError("stored settings checksum mismatch")
    if not validate_settings(settings):
        raise InvalidSettingsError("stored settings out of range")
    return settings


def save_settings(eeprom: Eeprom, settings: Settings) -> Settings:
    """Validate and write ``settings`` to ``eeprom``; return what was stored."""
    if not validate_settings(settings):
        raise InvalidSettingsError(f"settings out of range: {settings}")
    to_save = replace(settings, version=SETTINGS_VERSION)
    to_save = replace(to_save, checksum=calculate_checksum(to_save))
    eeprom.write(VERSION_ADDRESS, _VERSION_LAYOUT.pack(SETTINGS_VERSION))
    eeprom.write(SETTINGS_ADDRESS, _pack(to_save))
    return to_save