"""Status and menu screens for a 20x4 character LCD."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from callstorm.ringer import Clock, _elapsed
from callstorm.ringer_manager import RingerManager
from callstorm.stringutils import center_string, pad_string

LCD_COLS = 20
LCD_ROWS = 4

NORMAL_UPDATE_INTERVAL_MS = 500  # while paused
FAST_UPDATE_INTERVAL_MS = 100    # while running
TEMP_MESSAGE_DURATION_MS = 800
ANIMATION_FRAME_MS = 250
STORM_CHAR_SLOT = 1
STORM_CHAR = chr(STORM_CHAR_SLOT)
_PHONE_SLOTS = 8

Sleep = Callable[[int], None]

# Four 5x8 frames of the storm icon; one byte per pixel row.
STORM_FRAMES: tuple[tuple[int, ...], ...] = (
    (0b00000, 0b00100, 0b01110, 0b11111, 0b10101, 0b01110, 0b00100, 0b00000),
    (0b00000, 0b00010, 0b00111, 0b01101, 0b11011, 0b00110, 0b01000, 0b00000),
    (0b00000, 0b01000, 0b01100, 0b11011, 0b01101, 0b00111, 0b00010, 0b00000),
    (0b00000, 0b10000, 0b01000, 0b11100, 0b10110, 0b00100, 0b00001, 0b00000),
)


class LcdScreen:
    """An in-memory character LCD: a grid of characters, a cursor and a backlight."""

    CUSTOM_CHAR_SLOTS = 8
    CHAR_ROWS = 8
    CHAR_COLS = 5

    def __init__(self, cols: int = LCD_COLS, rows: int = LCD_ROWS) -> None:
        if cols <= 0 or rows <= 0:
            raise ValueError("LCD dimensions must be positive")
        self.cols = cols
        self.rows = rows
        self.backlight = True
        self.custom_chars: dict[int, tuple[int, ...]] = {}
        self._grid = [[" "] * cols for _ in range(rows)]
        self._col = 0
        self._row = 0

    @property
    def cursor(self) -> tuple[int, int]:
        return self._col, self._row

    def clear(self) -> None:
        """Blank every cell and home the cursor."""
        self._grid = [[" "] * self.cols for _ in range(self.rows)]
        self._col = 0
        self._row = 0

    def set_cursor(self, col: int, row: int) -> None:
        if not (0 <= col < self.cols and 0 <= row < self.rows):
            raise ValueError(f"cursor ({col}, {row}) outside {self.cols}x{self.rows} screen")
        self._col = col
        self._row = row

    def write(self, text: str) -> None:
        """Write ``text`` at the cursor; characters past the row end are dropped."""
        row = self._grid[self._row]
        for char in text:
            if self._col < self.cols:
                row[self._col] = char
            self._col += 1
        self._col = min(self._col, self.cols)

    def create_char(self, slot: int, bitmap: Sequence[int]) -> None:
        """Define custom character ``slot`` from eight 5-bit pixel rows."""
        if not 0 <= slot < self.CUSTOM_CHAR_SLOTS:
            raise ValueError(f"custom character slot {slot} out of range")
        rows = tuple(bitmap)
        if len(rows) != self.CHAR_ROWS:
            raise ValueError("a custom character needs exactly 8 rows")
        if any(not 0 <= value < (1 << self.CHAR_COLS) for value in rows):
            raise ValueError("custom character rows must be 5-bit values")
        self.custom_chars[slot] = rows

    def set_backlight(self, on: bool) -> None:
        self.backlight = bool(on)

    def lines(self) -> list[str]:
        """Return the screen contents, one string per row."""
        return ["".join(row) for row in self._grid]


class DisplayManager:
    """Draws the CallStorm screens on an LCD.

    With ``lcd`` set to None the display is treated as absent and drawing
    calls do nothing; blocking pauses still go through ``sleep``.
    """

    def __init__(
        self,
        lcd: Optional[LcdScreen],
        clock: Clock,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._lcd = lcd
        self._clock = clock
        self._sleep: Sleep = sleep if sleep is not None else (lambda ms: None)
        self._last_update = 0
        self._needs_update = True
        self._showing_temp_message = False
        self._temp_message_start = 0
        self._temp_message = ""
        self.animation_enabled = True
        self._last_animation_update = 0
        self._animation_frame = 0

        if self._lcd is not None:
            self._lcd.clear()
            self._initialize_storm_animation()
            self.show_startup_message()

    @property
    def lcd_available(self) -> bool:
        return self._lcd is not None

    @property
    def needs_update(self) -> bool:
        return self._needs_update

    @property
    def animation_frame(self) -> int:
        return self._animation_frame

    @property
    def showing_temp_message(self) -> bool:
        return self._showing_temp_message

    @property
    def temp_message(self) -> str:
        return self._temp_message

    def update(
        self,
        current_time: int,
        system_paused: bool,
        ringer_manager: RingerManager,
        max_concurrent: int = -1,
    ) -> None:
        """Redraw the pause or status screen when it is due."""
        if self._lcd is None:
            return
        self._update_storm_animation()
        interval = NORMAL_UPDATE_INTERVAL_MS if system_paused else FAST_UPDATE_INTERVAL_MS
        if _elapsed(current_time, self._last_update) >= interval or self._needs_update:
            if system_paused:
                self.show_pause_message()
            else:
                self.show_status(ringer_manager, False, max_concurrent)
            self._last_update = current_time
            self._needs_update = False

    def set_brightness(self, brightness: int) -> None:
        """The backlight is on for any brightness above zero."""
        if self._lcd is None:
            return
        self._lcd.set_backlight(brightness > 0)

    def clear(self) -> None:
        if self._lcd is None:
            return
        self._lcd.clear()
        self._needs_update = True

    def _draw_lines(self, lines: Sequence[str], center_first: bool) -> None:
        lcd = self._lcd
        if lcd is None:
            return
        lcd.clear()
        for row, text in enumerate(lines):
            if not text:
                continue
            lcd.set_cursor(0, row)
            if row == 0 and center_first:
                lcd.write(center_string(text, LCD_COLS))
            else:
                lcd.write(pad_string(text, LCD_COLS))

    def show_message(
        self, line1: str, line2: str = "", line3: str = "", line4: str = ""
    ) -> None:
        """Show up to four left-aligned lines; empty lines stay blank."""
        self._draw_lines((line1, line2, line3, line4), center_first=False)

    def show_menu_message(
        self, line1: str, line2: str = "", line3: str = "", line4: str = ""
    ) -> None:
        """Like :meth:`show_message` but with the first line centred as a header."""
        self._draw_lines((line1, line2, line3, line4), center_first=True)

    def _timer_text(self) -> str:
        total_seconds = self._clock() // 1000
        minutes, seconds = divmod(total_seconds, 60)
        if minutes >= 100:
            hours, minutes = divmod(minutes, 60)
            return f"{hours % 100:02d}:{minutes:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def _temp_line(self) -> str:
        if self._showing_temp_message:
            if _elapsed(self._clock(), self._temp_message_start) < TEMP_MESSAGE_DURATION_MS:
                return pad_string(self._temp_message, LCD_COLS)
            self._showing_temp_message = False
        return " " * LCD_COLS

    def show_status(
        self,
        ringer_manager: RingerManager,
        paused: bool = False,
        max_concurrent: int = -1,
    ) -> None:
        """Draw the running status: timer, temporary message, counts and phone map."""
        lcd = self._lcd
        if lcd is None:
            return

        lcd.set_cursor(0, 0)
        lcd.write(pad_string(f"CallStorm {STORM_CHAR} 2K {self._timer_text()}", LCD_COLS))

        lcd.set_cursor(0, 1)
        lcd.write(self._temp_line())

        counts = (
            f"A:{ringer_manager.active_call_count()} "
            f"R:{ringer_manager.ringing_phone_count()} "
            f"E:{ringer_manager.active_phone_count()}"
        )
        if 0 < max_concurrent <= ringer_manager.total_phone_count():
            counts += f" M:{max_concurrent}"
        lcd.set_cursor(0, 2)
        lcd.write(center_string(counts, LCD_COLS))

        lcd.set_cursor(0, 3)
        if paused:
            lcd.write(center_string("** PAUSED **", LCD_COLS))
        else:
            enabled = ringer_manager.active_phone_count()
            marks = []
            for index in range(_PHONE_SLOTS):
                if index >= enabled:
                    marks.append("X")
                elif ringer_manager.is_phone_ringing(index):
                    marks.append("R")
                elif ringer_manager.is_phone_active(index):
                    marks.append("A")
                else:
                    marks.append("-")
            lcd.write(pad_string("  " + " ".join(marks), LCD_COLS))

    def show_startup_message(self) -> None:
        self.show_message(
            "CallStorm 2K V.1.0",
            "Call Center Chaos!",
            "",
            "WAIT System Testing",
        )

    def show_pause_message(self) -> None:
        self.show_message(
            "CallStorm 2K V.1.0",
            "** SYSTEM PAUSED **",
            "Ringers Denergized",
            "PRESS PAUSE TO CONT.",
        )

    def show_resume_message(self) -> None:
        """Show the resume notice for one second (blocking)."""
        self.show_message(
            "CallStorm 2K V.1.0",
            "** SYSTEM RESUMED **",
            "Calls Restarting...",
            "",
        )
        self._sleep(1000)
        self._needs_update = True

    def show_chaos_message(self) -> None:
        """Show the maximum-chaos banner for three seconds (blocking)."""
        lcd = self._lcd
        if lcd is None:
            return
        lcd.clear()
        banner = (
            "Prepare For",
            "** MAXIMUM CHAOS **",
            "Max Settings Engaged",
            "BRACE FOR IMPACT!",
        )
        for row, text in enumerate(banner):
            lcd.set_cursor(0, row)
            lcd.write(center_string(text, LCD_COLS))
        self._sleep(3000)
        self._needs_update = True

    def _start_temp_message(self, text: str) -> None:
        self._temp_message = text[:LCD_COLS]
        self._showing_temp_message = True
        self._temp_message_start = self._clock()
        self._needs_update = True

    def show_relay_adjustment_message(self, new_count: int) -> None:
        self._start_temp_message(f"Relays: {new_count}")

    def show_relay_adjustment_direction(self, new_count: int, increment: bool) -> None:
        sign = "+" if increment else "-"
        self._start_temp_message(f"Relays {sign}1 ({new_count})")

    def show_save_exit_message(self) -> None:
        self._start_temp_message("Settings Saved!")

    def _initialize_storm_animation(self) -> None:
        if self._lcd is None:
            return
        self._lcd.create_char(STORM_CHAR_SLOT, STORM_FRAMES[0])
        self._animation_frame = 0
        self._last_animation_update = self._clock()

    def _update_storm_animation(self) -> None:
        if self._lcd is None or not self.animation_enabled:
            return
        now = self._clock()
        if _elapsed(now, self._last_animation_update) >= ANIMATION_FRAME_MS:
            self._animation_frame = (self._animation_frame + 1) % len(STORM_FRAMES)
            self._lcd.create_char(STORM_CHAR_SLOT, STORM_FRAMES[self._animation_frame])
            self._last_animation_update = now
            self._needs_update = True