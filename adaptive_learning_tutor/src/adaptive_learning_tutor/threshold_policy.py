"""
Mastery Threshold Policy

Maps a mastery score (0-1) to a difficulty level. Three call sites use
three different tables and each keeps its own cut points:

- SEEDING: picks the starting difficulty of a new session, per the
  learner's difficulty preference (adaptive / challenging / comfortable)
- ENGINE: the personalization engine's view of the learner's current level
- COMPLEXITY: the level an explanation is written at

ENGINE and COMPLEXITY currently share cut points but are separate tables
so one can change without dragging the other along.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class ThresholdTable:
    """
    Ordered mastery bands.

    Each band is (upper_bound, level): a mastery strictly below
    upper_bound maps to level. Anything at or above the last bound maps
    to top_level.
    """
    name: str
    bands: Tuple[Tuple[float, str], ...]
    top_level: str

    def classify(self, mastery: float) -> str:
        for upper_bound, level in self.bands:
            if mastery < upper_bound:
                return level
        return self.top_level


SEEDING_TABLES: Dict[str, ThresholdTable] = {
    "adaptive": ThresholdTable(
        name="seeding.adaptive",
        bands=((0.4, "beginner"), (0.7, "intermediate"), (0.9, "advanced")),
        top_level="expert",
    ),
    "challenging": ThresholdTable(
        name="seeding.challenging",
        bands=((0.3, "intermediate"), (0.6, "advanced")),
        top_level="expert",
    ),
    "comfortable": ThresholdTable(
        name="seeding.comfortable",
        bands=((0.5, "beginner"), (0.8, "intermediate")),
        top_level="advanced",
    ),
}

ENGINE_LEVEL_TABLE = ThresholdTable(
    name="engine",
    bands=((0.3, "beginner"), (0.6, "intermediate"), (0.8, "advanced")),
    top_level="expert",
)

EXPLANATION_COMPLEXITY_TABLE = ThresholdTable(
    name="complexity",
    bands=((0.3, "beginner"), (0.6, "intermediate"), (0.8, "advanced")),
    top_level="expert",
)

# Level used when a learner has never been assessed on a topic
UNASSESSED_LEVEL = "beginner"


class ThresholdPolicy:
    """Holds the three threshold tables; any of them can be swapped out."""

    def __init__(
        self,
        seeding_tables: Optional[Dict[str, ThresholdTable]] = None,
        engine_table: Optional[ThresholdTable] = None,
        complexity_table: Optional[ThresholdTable] = None,
        default_preference: str = "adaptive",
    ):
        self.seeding_tables = dict(seeding_tables or SEEDING_TABLES)
        self.engine_table = engine_table or ENGINE_LEVEL_TABLE
        self.complexity_table = complexity_table or EXPLANATION_COMPLEXITY_TABLE
        self.default_preference = default_preference

    def seed_difficulty(self, mastery: Optional[float], preference: Optional[str]) -> str:
        """Starting difficulty for a session. Unknown preferences fall back to adaptive."""
        if mastery is None:
            return UNASSESSED_LEVEL
        table = self.seeding_tables.get(preference or self.default_preference)
        if table is None:
            table = self.seeding_tables[self.default_preference]
        return table.classify(mastery)

    def engine_level(self, mastery: float) -> str:
        return self.engine_table.classify(mastery)

    def explanation_complexity(self, mastery: float) -> str:
        return self.complexity_table.classify(mastery)


DEFAULT_THRESHOLD_POLICY = ThresholdPolicy()
