from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from gamescore.models import Detection

GamePlatform = Literal["mobile", "pc", "console", "controller", "unknown"]

REGIONS: dict[str, list[str]] = {
    # mobile
    "BGMI": ["India"],
    "PUBG Mobile": ["Global", "EU", "NA", "SA", "APAC"],
    "PUBG KR": ["Korea", "Japan"],
    "Game for Peace": ["China"],
    "Call of Duty Mobile": ["Global"],
    "Free Fire": ["Global", "India"],
    "Apex Legends Mobile": ["Global"],
    # pc
    "Counter-Strike 2": ["Global", "EU", "NA", "Asia", "CIS"],
    "Valorant": ["Global", "NA", "EU", "APAC", "LATAM", "BR"],
    "Overwatch 2": ["Global", "Americas", "Europe", "Asia"],
    "Fortnite (PC)": ["Global", "NA-East", "NA-West", "Europe", "Asia", "Brazil", "Oceania"],
    "Apex Legends (PC)": ["Global", "NA", "EU", "Asia"],
    "Call of Duty: Warzone": ["Global", "Americas", "Europe", "Asia"],
    # console
    "Halo Infinite": ["Global", "Xbox", "PC"],
    "Call of Duty: Modern Warfare": ["Global", "PlayStation", "Xbox"],
    "Fortnite (Console)": ["PlayStation", "Xbox", "Switch"],
    "Apex Legends (Console)": ["PlayStation", "Xbox", "Switch"],
    # controller-focused
    "Rainbow Six Siege": ["Global", "PC", "PlayStation", "Xbox"],
    "Destiny 2": ["Global", "PC", "PlayStation", "Xbox"],
    "Battlefield 2042": ["Global", "PC", "PlayStation", "Xbox"],
}

PLATFORM_BY_GAME: dict[str, GamePlatform] = {
    "BGMI": "mobile",
    "PUBG Mobile": "mobile",
    "PUBG KR": "mobile",
    "Game for Peace": "mobile",
    "Call of Duty Mobile": "mobile",
    "Free Fire": "mobile",
    "Apex Legends Mobile": "mobile",
    "Counter-Strike 2": "pc",
    "Valorant": "pc",
    "Overwatch 2": "pc",
    "Fortnite (PC)": "pc",
    "Apex Legends (PC)": "pc",
    "Call of Duty: Warzone": "pc",
    "Halo Infinite": "console",
    "Call of Duty: Modern Warfare": "console",
    "Fortnite (Console)": "console",
    "Apex Legends (Console)": "console",
    "Rainbow Six Siege": "controller",
    "Destiny 2": "controller",
    "Battlefield 2042": "controller",
}


def is_valid_region(game: str, region: str) -> bool:
    return region in REGIONS.get(game, [])


def expected_platform(game: str) -> GamePlatform:
    return PLATFORM_BY_GAME.get(game, "unknown")


def infer_platform(detections: Sequence[Detection]) -> GamePlatform:
    """Guess the capture platform from UI objects seen anywhere in the clip."""

    labels = {obj.label.lower() for detection in detections for obj in detection.objects}

    if labels & {"cell phone", "phone"}:
        return "mobile"
    if labels & {"keyboard", "mouse", "laptop"}:
        return "pc"
    if "tv" in labels:
        return "console"
    return "unknown"


def platform_mismatch(expected: GamePlatform, detected: GamePlatform) -> bool:
    """Whether the detected platform contradicts the one the selected game implies."""

    if expected == "unknown":
        return False
    if expected == "controller":
        # controller titles ship on console and pc alike
        return detected == "mobile"
    if expected == "mobile":
        return detected != "mobile"
    if expected == "pc":
        return detected in {"mobile", "console"}
    if expected == "console":
        return detected in {"mobile", "pc"}
    return False
