"""Element enumeration shared by profiles and chores."""

from enum import StrEnum


class Element(StrEnum):
    """Thematic category of a profile or chore."""

    AIR = "air"
    WATER = "water"
    EARTH = "earth"
    FIRE = "fire"
