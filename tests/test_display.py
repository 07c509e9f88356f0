import pytest

from callstorm.display import STORM_FRAMES, DisplayManager, LcdScreen
from callstorm.ringer_manager import RingerManager


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def lcd():
    return LcdScreen(20, 4)


@pytest.fixture
def display(lcd, clock, sleeps):
    return DisplayManager(lcd, clock, sleeps.append)


@pytest.fixture
def manager(clock):
    return RingerManager([5, 6, 7, 8, 9, 10, 11, 12], clock)


def test_lcd_write_is_clipped_at_row_end():
    screen = LcdScreen(5, 2)
    screen.set_cursor(3, 1)
    screen.write("abcdef")
    assert screen.lines() == ["     ", "   ab"]


def test_lcd_clear_blanks_and_homes():
    screen = LcdScreen(4, 2)
    screen.set_cursor(1, 1)
    screen.write("xy")
    screen.clear()
    assert screen.lines() == ["    ", "    "]
    assert screen.cursor == (0, 0)


def test_lcd_rejects_bad_cursor_and_chars():
    screen = LcdScreen()
    with pytest.raises(ValueError):
        screen.set_cursor(20, 0)
    with pytest.raises(ValueError):
        screen.create_char(8, STORM_FRAMES[0])
    with pytest.raises(ValueError):
        screen.create_char(1, (0, 1, 2))
    with pytest.raises(ValueError):
        screen.create_char(1, (32,) * 8)


def test_startup_message_and_storm_char(display, lcd):
    assert [line.rstrip() for line in lcd.lines()] == [
        "CallStorm 2K V.1.0",
        "Call Center Chaos!",
        "",
        "WAIT System Testing",
    ]
    assert lcd.custom_chars[1] == STORM_FRAMES[0]
    assert all(len(line) == 20 for line in lcd.lines())


def test_menu_message_centres_header(display, lcd):
    display.show_menu_message("* SETTINGS *", "Exit Menu", "Turn: Navigate")
    lines = lcd.lines()
    assert lines[0].strip() == "* SETTINGS *"
    assert lines[0].startswith(" ")
    assert lines[1].rstrip() == "Exit Menu"
    assert lines[2].startswith("Turn: Navigate")
    assert lines[3].strip() == ""


def test_plain_message_is_left_aligned(display, lcd):
    display.show_message("* SETTINGS *")
    assert lcd.lines()[0].startswith("* SETTINGS *")
    assert lcd.lines()[1].strip() == ""


def test_status_at_start(display, lcd, manager):
    display.show_status(manager, False, 4)
    lines = lcd.lines()
    assert lines[0] == "CallStorm \x01 2K 00:00"
    assert lines[1] == " " * 20
    assert lines[2].strip() == "A:0 R:0 E:8 M:4"
    assert lines[3].strip() == "- - - - - - - -"


def test_status_timer_minutes_and_hours(display, lcd, manager, clock):
    clock.now = 61000
    display.show_status(manager)
    assert lcd.lines()[0].endswith("01:01")
    clock.now = 6_000_000
    display.show_status(manager)
    assert lcd.lines()[0].endswith("01:40")


def test_status_without_limit_and_with_disabled_phones(display, lcd, manager, clock):
    manager.set_active_relay_count(4)
    manager.start_call(0, 2)
    manager.start_call(1, 2)
    clock.now = 2000
    manager.step(2000)  # phones 0 and 1 move to the silence between rings
    manager.start_call(0, 2)
    display.show_status(manager, False, 99)
    lines = lcd.lines()
    assert lines[2].strip() == "A:2 R:1 E:4"
    assert lines[3].strip() == "R A - - X X X X"
    assert len(lines[3]) == 20


def test_status_paused_line(display, lcd, manager):
    display.show_status(manager, True)
    assert lcd.lines()[3].strip() == "** PAUSED **"


def test_temp_message_shows_then_expires(display, lcd, manager, clock):
    display.show_relay_adjustment_direction(5, True)
    assert display.needs_update
    display.show_status(manager)
    assert lcd.lines()[1].rstrip() == "Relays +1 (5)"
    clock.now = 800
    display.show_status(manager)
    assert lcd.lines()[1] == " " * 20
    assert not display.showing_temp_message


def test_other_temp_messages(display):
    display.show_relay_adjustment_direction(3, False)
    assert display.temp_message == "Relays -1 (3)"
    display.show_relay_adjustment_message(7)
    assert display.temp_message == "Relays: 7"
    display.show_save_exit_message()
    assert display.temp_message == "Settings Saved!"


def test_update_respects_interval(display, lcd, manager):
    display.update(0, False, manager, 4)
    assert lcd.lines()[2].strip() == "A:0 R:0 E:8 M:4"
    lcd.clear()
    display.update(50, False, manager, 4)
    assert lcd.lines() == [" " * 20] * 4
    display.update(100, False, manager, 4)
    assert lcd.lines()[2].strip() == "A:0 R:0 E:8 M:4"


def test_update_paused_shows_pause_screen(display, lcd, manager):
    display.update(0, True, manager)
    assert lcd.lines()[1].rstrip() == "** SYSTEM PAUSED **"
    assert lcd.lines()[3] == "PRESS PAUSE TO CONT."


def test_animation_advances_frames(display, lcd, manager, clock):
    clock.now = 250
    display.update(250, False, manager)
    assert display.animation_frame == 1
    assert lcd.custom_chars[1] == STORM_FRAMES[1]
    for step in range(2, 5):
        clock.now = 250 * step
        display.update(clock.now, False, manager)
    assert display.animation_frame == 0
    assert lcd.custom_chars[1] == STORM_FRAMES[0]


def test_resume_and_chaos_block(display, lcd, sleeps):
    display.show_resume_message()
    assert lcd.lines()[1] == "** SYSTEM RESUMED **"
    display.show_chaos_message()
    assert [line.strip() for line in lcd.lines()] == [
        "Prepare For",
        "** MAXIMUM CHAOS **",
        "Max Settings Engaged",
        "BRACE FOR IMPACT!",
    ]
    assert sleeps == [1000, 3000]
    assert display.needs_update


def test_brightness_controls_backlight(display, lcd):
    display.set_brightness(0)
    assert lcd.backlight is False
    display.set_brightness(8)
    assert lcd.backlight is True


def test_clear_requests_redraw(display, lcd, manager):
    display.update(0, False, manager)
    assert not display.needs_update
    display.clear()
    assert display.needs_update
    assert lcd.lines() == [" " * 20] * 4


def test_missing_lcd_is_ignored(clock, sleeps, manager):
    display = DisplayManager(None, clock, sleeps.append)
    assert not display.lcd_available
    display.show_message("hello")
    display.update(0, False, manager)
    display.show_chaos_message()
    display.show_resume_message()
    assert sleeps == [1000]
    assert display.needs_update