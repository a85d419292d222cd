"""
Text formatting helpers for terminal and socket clients.
"""
from typing import Optional

from colorama import Fore, Style

COLORS = {
    'black': Fore.BLACK,
    'red': Fore.RED,
    'green': Fore.GREEN,
    'yellow': Fore.YELLOW,
    'blue': Fore.BLUE,
    'magenta': Fore.MAGENTA,
    'cyan': Fore.CYAN,
    'white': Fore.WHITE,
}


def colorize(text, color: Optional[str] = None) -> str:
    """Wrap text in ANSI colour codes. Unknown or missing colours leave it as is."""
    text = str(text)
    code = COLORS.get(color) if color else None
    if not code:
        return text
    return f"{code}{Style.BRIGHT}{text}{Style.RESET_ALL}"


def error_line(message: str) -> str:
    return f"{colorize('Error', 'red')}: {colorize(message, 'red')}"


def banner_lines(text: str, color: Optional[str] = None) -> list:
    """Render text as a framed banner."""
    text = str(text)
    rule = "=" * (len(text) + 4)
    return [
        colorize(rule, color),
        colorize(f"  {text.upper()}  ", color),
        colorize(rule, color),
    ]
