"""Relay-driven telephone ringer controller with LCD screens, encoder menu and EEPROM settings, run on simulated hardware."""

__version__ = "1.0.0"