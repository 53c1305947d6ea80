"""Semantic label rules for segmented instances."""

from __future__ import annotations

from dataclasses import dataclass

TABLE_THING = 60
TABLE_STUFF = 42
FLOOR_LABELS = frozenset({8, 43, 44})
FLOOR_LABEL = 8
CEILING_LABEL = 39
UNLABELED = 0
STRUCTURE_CONFIDENCE_SCALE = 0.1


def is_table_label(label: int, is_thing: bool) -> bool:
    """True for a table, either as a detected thing or as a stuff region."""
    return (label == TABLE_THING and is_thing) or (label == TABLE_STUFF and not is_thing)


def is_floor_label(label: int, is_thing: bool) -> bool:
    """True for floor-like stuff regions (floor, road, pavement)."""
    return label in FLOOR_LABELS and not is_thing


def normalize_detection(label: int, confidence: float, is_thing: bool) -> tuple[int, float, bool]:
    """Fold tables and floors into their stuff labels and damp their confidence."""
    if is_table_label(label, is_thing):
        confidence *= STRUCTURE_CONFIDENCE_SCALE
        label = TABLE_STUFF
        is_thing = False
    if is_floor_label(label, is_thing):
        confidence *= STRUCTURE_CONFIDENCE_SCALE
        label = FLOOR_LABEL
    return label, confidence, is_thing


@dataclass
class SegmentLabel:
    """The class label of a segmented instance."""

    label: int
    is_thing: bool
    confidence: float = 0.0

    @classmethod
    def from_detection(cls, label: int, confidence: float, is_thing: bool) -> "SegmentLabel":
        """Build a label from a raw detection, applying ``normalize_detection``."""
        label, confidence, is_thing = normalize_detection(label, confidence, is_thing)
        return cls(label=label, is_thing=is_thing, confidence=confidence)

    def is_table(self) -> bool:
        return is_table_label(self.label, self.is_thing)

    def is_floor(self) -> bool:
        return is_floor_label(self.label, self.is_thing)

    def is_ceiling(self) -> bool:
        return self.label == CEILING_LABEL and not self.is_thing

    def is_object(self) -> bool:
        return self.is_thing or self.label == UNLABELED

    def is_static(self) -> bool:
        return self.is_table() or self.is_floor() or self.is_ceiling()