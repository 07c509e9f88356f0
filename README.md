# callstorm

Controls a bank of up to eight telephone ringers and makes them ring in an
unsynchronised, call-centre style. Each phone runs its own ring state machine.
It waits a random time and rings one to eight times; there is an even chance
that the last ring is cut short, as if someone picked up. It then pauses and
waits for the next call.

A concurrency limit caps how many phones can be in a call at once. A shared
ringer power supply is switched on while any phone is active and stays on for
a configurable hang time after the last call ends.

The hardware is reached only through small interfaces: a millisecond clock, a
relay writer, pin readers and a 20x4 character LCD. `SimulatedHardware` and
`LcdScreen` stand in for the real devices, so everything runs in software.

## Installation

```
pip install .
```

## Command line

```
callstorm [--seconds N] [--verbose]
```

This runs the controller on simulated hardware for `N` simulated seconds
(default 60). It then prints the final LCD contents, with the storm icon shown
as `*`, and the ringer status report. `--verbose` turns on debug logging.

## Library overview

- `callstorm.controller.CallStorm` is the top-level controller. Call `setup()`
  once, then `loop()` repeatedly. It handles:
  - the pause button
  - the settings menu, which `handle_encoder_event()` drives
  - the status LED
  - ringer power control
  - "maximum chaos" mode (`activate_maximum_chaos()`)

  `random_seed()` folds analog readings into a non-zero 16-bit seed.
- `callstorm.controller.SimulatedHardware` is a board with a virtual clock. Its
  clock advances through `delay()`. Its digital pins read HIGH until written,
  and its analog pins return noise.
- `callstorm.ringer.TelephoneRinger` is the state machine for one phone. The
  states are listed in `RingerState`. `callstorm.ringer_manager.RingerManager`
  drives a bank of ringers and produces `status_report()`.
- `callstorm.encoder.EncoderManager` reports one event per `update()`: rotation
  direction, a short press on release, or a long press after one second.
- `callstorm.display.DisplayManager` draws the status, menu, pause, resume and
  chaos screens onto an `LcdScreen`, including the four-frame animated storm
  icon.
- `callstorm.settings` stores the four user settings in an `Eeprom` image.
  `load_settings` and `save_settings` read and write them with a version
  marker and an XOR checksum. Missing, corrupt or out-of-range data raises
  `InvalidSettingsError`.
- `callstorm.config.ConfigManager` holds an extended `SystemConfig`. It
  provides range-checked setters, `constrain_values()`, persistence behind a
  magic number, and `ring_timing()` for each `RingStyle`.
- `callstorm.stringutils` has `pad_string` and `center_string` for
  fixed-width lines.

### Example

```python
import random

from callstorm.controller import CallStorm, SimulatedHardware
from callstorm.settings import Eeprom

hardware = SimulatedHardware()
storm = CallStorm(hardware, Eeprom(1024), random.Random(1))
storm.setup()
for _ in range(1000):
    storm.loop()
print("\n".join(storm.lcd.lines()))
print(storm.ringers.status_report())
```

## Settings ranges

| Setting          | Range   | Default |
|------------------|---------|---------|
| Max concurrent   | 1–8     | 4       |
| Active phones    | 0–8     | 8       |
| Call timing (s)  | 10–1000 | 30      |
| Ringer hang (s)  | 0–60    | 2       |

## What it does not do

- It drives no physical devices. There is no GPIO, I2C or LCD driver; real
  hardware would need an object with the same `millis`, `delay`,
  `digital_read`, `digital_write` and `analog_read` methods.
- The `Eeprom` image lives in memory only. Settings are not written to disk
  between runs.
- `ConfigManager` stores a `PatternMode`, but no part of the package runs
  sequential, wave, burst or other patterns. Phones always ring on their own
  random schedules.

## Running the tests

```
pip install .[test]
pytest
```