from __future__ import annotations

import random
import re


WORDS: tuple[str, ...] = (
    "Cat",
    "House",
    "Tree",
    "Car",
    "Sun",
    "Dog",
    "Boat",
    "Phone",
    "Book",
    "Computer",
    "Mountain",
    "Beach",
    "Rocket",
    "Pizza",
)


def pick_word(words: tuple[str, ...] | list[str] = WORDS) -> str:
    return random.choice(words)


def normalize(text: object) -> str:
    """Trim, lowercase and collapse whitespace runs to a single space."""
    t = str(text or "").strip().lower()
    return re.sub(r"\s+", " ", t)
