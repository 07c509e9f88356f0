"""Fixed-width text helpers for the 20-column character display."""

LCD_WIDTH = 20


def pad_string(text: str, length: int = LCD_WIDTH) -> str:
    """Return ``text`` truncated to ``length`` and padded with spaces on the right."""
    if length < 0:
        raise ValueError("length must not be negative")
    return text[:length].ljust(length)


def center_string(text: str, length: int = LCD_WIDTH) -> str:
    """Return ``text`` truncated to ``length`` and centred in a field of that width.

    When the free space is odd, the extra space goes on the right.
    """
    if length < 0:
        raise ValueError("length must not be negative")
    body = text[:length]
    left = (length - len(body)) // 2
    return (" " * left + body).ljust(length)