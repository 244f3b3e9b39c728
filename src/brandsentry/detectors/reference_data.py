"""Reference tables for offline typosquat candidate generation.

Keyboard maps list the physically adjacent keys for each letter. The ``es``
layout shares the US letter block; ``fr`` adds the AZERTY swaps for ``a``/``q``
and ``z``/``w``.
"""

from typing import Dict, Tuple

# Characters commonly substituted for lookalike letters and digits.
HOMOGLYPHS: Tuple[str, ...] = ("0", "1", "i", "l", "o")

# Tokens attached with a hyphen after the brand label.
HYPHEN_SUFFIXES: Tuple[str, ...] = ("auth", "billing", "login", "secure", "support", "update", "verify")

# Tokens attached with a hyphen before the brand label.
HYPHEN_PREFIXES: Tuple[str, ...] = ("login", "secure")

US_KEYBOARD: Dict[str, str] = {
    "q": "wa",
    "w": "qes",
    "e": "wrd",
    "r": "etf",
    "t": "ryg",
    "y": "tuh",
    "u": "yij",
    "i": "uok",
    "o": "ipl",
    "p": "o",
    "a": "qsz",
    "s": "awdx",
    "d": "sefc",
    "f": "drgv",
    "g": "fthb",
    "h": "gyjn",
    "j": "hukm",
    "k": "jil",
    "l": "ko",
    "z": "ax",
    "x": "zsc",
    "c": "xdv",
    "v": "cfb",
    "b": "vgn",
    "n": "bhm",
    "m": "nj",
}

_FR_EXTRAS: Dict[str, str] = {"a": "q", "z": "w"}

KEYBOARD_MAPS: Dict[str, Dict[str, str]] = {
    "us": US_KEYBOARD,
    "es": dict(US_KEYBOARD),
    "fr": {key: adjacent + _FR_EXTRAS.get(key, "") for key, adjacent in US_KEYBOARD.items()},
}
