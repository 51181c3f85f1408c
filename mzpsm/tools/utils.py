import logging
import re
from typing import Dict, Optional, Tuple

from colorama import Fore, Style


# Placeholders that keep one color whatever the record's level
FIELD_COLORS: Tuple[Tuple[str, str], ...] = (
    (r"%\(asctime\)s", Fore.GREEN),
    (r"%\(name\)[-\d.]*s", Fore.BLUE),
)

LEVEL_PLACEHOLDER = r"%\(levelname\)[-\d.]*s"

LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: Style.DIM,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW + Style.BRIGHT,
    logging.ERROR: Fore.RED + Style.BRIGHT,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


def colorize_format(fmt: str, level_color: Optional[str]=None) -> str:
    """Wrap the placeholders of a :mod:`logging` format string in terminal color
    codes.

    Parameters
    ----------
    fmt : str
        A ``%``-style log format string
    level_color : str, optional
        The color of the ``levelname`` placeholder. Left plain if omitted.

    Returns
    -------
    str
    """
    fields = list(FIELD_COLORS)
    if level_color:
        fields.append((LEVEL_PLACEHOLDER, level_color))
    for pattern, color in fields:
        fmt = re.sub(pattern, lambda match: color + match.group(0) + Style.RESET_ALL, fmt)
    return fmt


class ColoringFormatter(logging.Formatter):
    """Render log records with the level name colored by severity.

    Levels without an entry in :attr:`level_colors` are rendered with the
    shared field colors only.
    """

    level_colors: Dict[int, str] = LEVEL_COLORS

    def __init__(self, fmt: str, datefmt: Optional[str]=None, **kwargs):
        super().__init__(colorize_format(fmt), datefmt=datefmt, **kwargs)
        self._by_level = {
            level: logging.Formatter(colorize_format(fmt, color), datefmt=datefmt, **kwargs)
            for level, color in self.level_colors.items()
        }

    def format(self, record: logging.LogRecord) -> str:
        formatter = self._by_level.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)


def parse_fixed_modification(value: str):
    """Split a ``NAME:RESIDUES`` command line value. Without residues, the
    modification's own target residues are used.
    """
    if ":" in value:
        name, residues = value.rsplit(":", 1)
        return name.strip(), list(residues.strip())
    return value.strip(), None
