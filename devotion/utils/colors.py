"""Translation of issue tracker colour names to code host label colours."""

DEFAULT_LABEL_COLOR = "ededed"

# Notion select option colours -> GitHub label hex (no leading "#")
_TRACKER_COLORS: dict[str, str] = {
    "default": DEFAULT_LABEL_COLOR,
    "gray": "9b9a97",
    "brown": "64473a",
    "orange": "d9730d",
    "yellow": "dfab01",
    "green": "0f7b6c",
    "blue": "0b6e99",
    "purple": "6940a5",
    "pink": "ad1a72",
    "red": "e03e3e",
}


def tracker_color_to_hex(color: str | None) -> str:
    """Map a tracker colour name to a 6-digit hex colour.

    Unknown or missing colours map to the neutral default.

    Example:
        >>> tracker_color_to_hex("red")
        'e03e3e'
        >>> tracker_color_to_hex(None)
        'ededed'
    """
    if not color:
        return DEFAULT_LABEL_COLOR
    return _TRACKER_COLORS.get(color.lower(), DEFAULT_LABEL_COLOR)
