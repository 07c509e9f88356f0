import random

import pytest

from callstorm.controller import (
    ENCODER_BUTTON,
    ENCODER_PIN_A,
    HIGH,
    LOW,
    PAUSE_BUTTON,
    READY_LED,
    RELAY_PINS,
    RINGER_POWER_PIN,
    STATUS_LED,
    CallStorm,
    MenuItem,
    SimulatedHardware,
    main,
    random_seed,
)
from callstorm.encoder import EncoderEvent
from callstorm.settings import Eeprom, Settings, load_settings, save_settings


@pytest.fixture
def storm():
    hw = SimulatedHardware()
    controller = CallStorm(hw, Eeprom(), random.Random(1))
    controller.setup()
    return controller


def run_loops(controller, count):
    for _ in range(count):
        controller.loop()


def test_random_seed_single_sample_uses_reading():
    assert random_seed(lambda: 7, samples=1) == 7


def test_random_seed_retries_until_nonzero():
    readings = iter([0, 0, 0, 9])
    assert random_seed(lambda: next(readings), samples=1) == 9


def test_random_seed_fits_sixteen_bits():
    rng = random.Random(3)
    for _ in range(20):
        seed = random_seed(lambda: rng.randrange(1024))
        assert 0 < seed <= 0xFFFF


def test_random_seed_rejects_bad_sample_count():
    with pytest.raises(ValueError):
        random_seed(lambda: 1, samples=0)


def test_simulated_hardware_clock_and_pins():
    hw = SimulatedHardware()
    assert hw.millis() == 0
    hw.delay(250)
    assert hw.millis() == 250
    assert hw.digital_read(PAUSE_BUTTON) is HIGH
    hw.digital_write(PAUSE_BUTTON, LOW)
    assert hw.digital_read(PAUSE_BUTTON) is LOW
    assert 0 <= hw.analog_read(15) < 1024
    with pytest.raises(ValueError):
        hw.delay(-1)


def test_setup_parks_outputs_and_lights_ready(storm):
    hw = storm.hardware
    assert hw.digital_read(READY_LED) is HIGH
    assert hw.digital_read(RINGER_POWER_PIN) is HIGH
    assert all(hw.digital_read(pin) is HIGH for pin in RELAY_PINS)
    assert hw.millis() >= 300 * len(RELAY_PINS)


def test_setup_stores_defaults_when_eeprom_empty(storm):
    stored = load_settings(storm.eeprom)
    assert (stored.max_concurrent, stored.active_relays) == (4, 8)
    assert (stored.max_call_delay, stored.ringer_hang_time) == (30, 2)


def test_setup_applies_stored_settings():
    eeprom = Eeprom()
    save_settings(eeprom, Settings(max_concurrent=3, active_relays=5,
                                   max_call_delay=100, ringer_hang_time=7))
    controller = CallStorm(SimulatedHardware(), eeprom, random.Random(2))
    controller.setup()
    assert controller.max_concurrent_setting == 3
    assert controller.active_relay_setting == 5
    assert controller.max_call_delay_setting == 100
    assert controller.ringer_hang_time_setting == 7
    assert controller.ringers.active_phone_count() == 5


def test_can_start_new_call_respects_limit(storm):
    assert storm.can_start_new_call() is True
    for index in range(storm.max_concurrent_setting):
        storm.ringers.start_call(index, 3)
    assert storm.can_start_new_call() is False
    storm.ringers.stop_all_calls()
    storm.active_relay_setting = 0
    assert storm.can_start_new_call() is False


def test_ringer_power_hang_time(storm):
    hw = storm.hardware
    storm.ringers.start_call(0, 2)
    storm.update_ringer_power_control()
    assert hw.digital_read(RINGER_POWER_PIN) is LOW
    storm.ringers.stop_all_calls()
    storm.update_ringer_power_control()
    assert hw.digital_read(RINGER_POWER_PIN) is LOW
    hw.delay(storm.ringer_hang_time_setting * 1000)
    storm.update_ringer_power_control()
    assert hw.digital_read(RINGER_POWER_PIN) is HIGH
    assert storm.ringer_power_active is False


def test_status_led_follows_ringing(storm):
    storm.ringers.start_call(1, 2)
    storm.update_status_led()
    assert storm.hardware.digital_read(STATUS_LED) is HIGH
    storm.ringers.stop_all_calls()
    storm.update_status_led()
    assert storm.hardware.digital_read(STATUS_LED) is LOW


def test_pause_button_toggles_and_silences(storm):
    hw = storm.hardware
    storm.ringers.start_call(0, 5)
    hw.digital_write(PAUSE_BUTTON, LOW)
    run_loops(storm, 10)
    assert storm.system_paused is True
    assert all(hw.digital_read(pin) is HIGH for pin in RELAY_PINS)
    assert hw.digital_read(RINGER_POWER_PIN) is HIGH
    assert "** SYSTEM PAUSED **" in [line.strip() for line in storm.lcd.lines()]

    run_loops(storm, 10)
    assert storm.system_paused is True

    hw.digital_write(PAUSE_BUTTON, HIGH)
    run_loops(storm, 10)
    hw.digital_write(PAUSE_BUTTON, LOW)
    run_loops(storm, 10)
    assert storm.system_paused is False


def test_button_press_enters_menu(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    assert storm.in_menu is True
    lines = storm.lcd.lines()
    assert lines[0].strip() == "* SETTINGS *"
    assert lines[1].strip() == "Max Concurrent"


def test_menu_navigation_wraps(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.handle_encoder_event(EncoderEvent.COUNTER_CLOCKWISE)
    assert storm.current_menu_item is MenuItem.EXIT
    assert storm.lcd.lines()[1].strip() == "Exit Menu"
    storm.handle_encoder_event(EncoderEvent.CLOCKWISE)
    assert storm.current_menu_item is MenuItem.CONCURRENT_LIMIT


def test_adjust_active_relays_and_save(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.handle_encoder_event(EncoderEvent.CLOCKWISE)
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    assert storm.in_adjustment_mode is True
    assert storm.lcd.lines()[1].strip() == "Setting: 8"
    storm.handle_encoder_event(EncoderEvent.CLOCKWISE)
    assert storm.active_relay_setting == 8
    storm.handle_encoder_event(EncoderEvent.COUNTER_CLOCKWISE)
    assert storm.lcd.lines()[1].strip() == "Setting: 7"
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    assert storm.in_adjustment_mode is False
    assert load_settings(storm.eeprom).active_relays == 7
    storm.loop()
    assert storm.ringers.active_phone_count() == 7


def test_call_timing_steps_by_ten(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.current_menu_item = MenuItem.CALL_FREQUENCY
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    before = storm.max_call_delay_setting
    storm.handle_encoder_event(EncoderEvent.CLOCKWISE)
    assert storm.max_call_delay_setting == before + 10
    storm.max_call_delay_setting = 10
    storm.handle_encoder_event(EncoderEvent.COUNTER_CLOCKWISE)
    assert storm.max_call_delay_setting == 10


def test_exit_item_leaves_menu(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.current_menu_item = MenuItem.EXIT
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    assert storm.in_menu is False
    assert storm.lcd.lines()[0].startswith("CallStorm")


def test_long_press_in_menu_saves_and_exits(storm):
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.handle_encoder_event(EncoderEvent.BUTTON_PRESS)
    storm.handle_encoder_event(EncoderEvent.COUNTER_CLOCKWISE)
    storm.handle_encoder_event(EncoderEvent.BUTTON_LONG_PRESS)
    assert storm.in_menu is False
    assert storm.in_adjustment_mode is False
    assert storm.display.temp_message == "Settings Saved!"
    assert load_settings(storm.eeprom).max_concurrent == storm.max_concurrent_setting


def test_rotation_outside_menu_adjusts_relays(storm):
    storm.handle_encoder_event(EncoderEvent.CLOCKWISE)
    assert storm.active_relay_setting == 8
    storm.handle_encoder_event(EncoderEvent.COUNTER_CLOCKWISE)
    assert storm.active_relay_setting == 7
    assert storm.display.temp_message == "Relays -1 (7)"
    assert load_settings(storm.eeprom).active_relays == 7


def test_show_relay_adjustment_feedback(storm):
    storm.active_relay_setting = 5
    storm.show_relay_adjustment_feedback()
    assert storm.display.temp_message == "Relays: 5"


def test_long_press_outside_menu_activates_chaos(storm):
    storm.max_concurrent_setting = 2
    before = storm.hardware.millis()
    storm.handle_encoder_event(EncoderEvent.BUTTON_LONG_PRESS)
    assert storm.max_concurrent_setting == 8
    assert storm.active_relay_setting == 8
    assert storm.max_call_delay_setting == 10
    stored = load_settings(storm.eeprom)
    assert (stored.max_concurrent, stored.max_call_delay) == (8, 10)
    assert storm.hardware.millis() - before >= 3000
    assert "** MAXIMUM CHAOS **" in [line.strip() for line in storm.lcd.lines()]


def test_encoder_pins_drive_menu(storm):
    hw = storm.hardware
    hw.digital_write(ENCODER_BUTTON, LOW)
    run_loops(storm, 10)
    hw.digital_write(ENCODER_BUTTON, HIGH)
    run_loops(storm, 10)
    assert storm.in_menu is True
    hw.digital_write(ENCODER_PIN_A, LOW)
    storm.loop()
    assert storm.current_menu_item is MenuItem.EXIT


def test_main_runs_simulation(capsys):
    assert main(["--seconds", "1"]) == 0
    output = capsys.readouterr().out
    assert "CallStorm" in output
    assert "Status:" in output


def test_main_rejects_negative_time():
    with pytest.raises(SystemExit):
        main(["--seconds", "-1"])