"""Engine strength tiers for analysis and bot play."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EngineStrengthProfile:
    name: str
    skill_level: int            # Stockfish "Skill Level", 0-20
    limit_strength: bool        # UCI_LimitStrength
    elo: int                    # UCI_Elo, only sent when limit_strength is on
    analysis_depth: int         # depth for position analysis at this tier
    move_depth: int             # depth for bot moves at this tier

    def uci_options(self) -> list[tuple[str, str]]:
        """(name, value) pairs for ``setoption`` in send order."""
        options = [
            ("Skill Level", str(self.skill_level)),
            ("UCI_LimitStrength", "true" if self.limit_strength else "false"),
        ]
        if self.limit_strength:
            options.append(("UCI_Elo", str(self.elo)))
        return options


STRENGTH_PROFILES: dict[str, EngineStrengthProfile] = {
    "easy":   EngineStrengthProfile("easy",    5, True,  1200,  8,  5),
    "medium": EngineStrengthProfile("medium", 10, True,  1500, 12, 10),
    "hard":   EngineStrengthProfile("hard",   15, True,  1800, 15, 15),
    "max":    EngineStrengthProfile("max",    20, False, 3000, 20, 20),
}

DEFAULT_PROFILE = "medium"


def get_profile(name: str) -> EngineStrengthProfile:
    """Look up a strength profile by name, falling back to the default."""
    return STRENGTH_PROFILES.get(name, STRENGTH_PROFILES[DEFAULT_PROFILE])
