"""Linking segmented instances between two frames from shared point matches."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Mapping, NamedTuple

from objslam.labels import SegmentLabel

# Pairs of instances sharing fewer matches than this are never linked.
MIN_LINK_COUNT = 5
# Share of one instance's matches that must fall on the other to split off a new instance.
SPLIT_RATIO = 0.9


class LinkCounts(NamedTuple):
    """Match counts per previous instance, per current instance and per instance pair."""

    prev: Counter
    curr: Counter
    links: Counter


def count_links(pairs: Iterable[tuple[int, int]]) -> LinkCounts:
    """Count how often each instance id and each ``(prev_id, curr_id)`` pair occurs."""
    prev: Counter = Counter()
    curr: Counter = Counter()
    links: Counter = Counter()
    for prev_id, curr_id in pairs:
        prev[prev_id] += 1
        curr[curr_id] += 1
        links[(prev_id, curr_id)] += 1
    return LinkCounts(prev, curr, links)


@dataclass
class LinkResult:
    """Outcome of linking the instances of a previous frame to those of a current frame.

    ``assignments`` maps a previous instance id to the current one it is linked to.
    ``changed`` maps an original ``(prev_id, curr_id)`` pair to the pair used after a
    new instance id was created on one side. ``scores`` holds the thresholded
    overlap of every pair that had enough matches to be considered.
    """

    assignments: dict[int, int] = field(default_factory=dict)
    changed: dict[tuple[int, int], tuple[int, int]] = field(default_factory=dict)
    scores: dict[tuple[int, int], float] = field(default_factory=dict)
    prev_max_id: int = 0
    curr_max_id: int = 0


def link_instances(
    pairs: Iterable[tuple[int, int]],
    prev_labels: Mapping[int, SegmentLabel],
    curr_labels: Mapping[int, SegmentLabel],
    prev_max_id: int,
    curr_max_id: int,
    iou_threshold: float,
) -> LinkResult:
    """Link instances by the overlap of their matched points.

    A pair is linked when the shared matches over the union of both instances'
    matches reaches ``iou_threshold``. When an object is swallowed by a table on the
    other side, a new instance id is created on that side and the object is linked
    to it instead.
    """
    prev_counts, curr_counts, link_counts = count_links(pairs)
    result = LinkResult(prev_max_id=prev_max_id, curr_max_id=curr_max_id)

    for original_prev in sorted(prev_counts):
        pid = original_prev
        pcount = prev_counts[original_prev]
        prev_label = prev_labels[original_prev]
        prev_is_table = prev_label.is_table()

        for original_curr in sorted(curr_counts):
            cid = original_curr
            ccount = curr_counts[original_curr]
            curr_label = curr_labels[original_curr]
            curr_is_table = curr_label.is_table()

            count = link_counts.get((pid, cid), 0)
            if count < MIN_LINK_COUNT:
                continue

            union = pcount + ccount - count
            value = count / union
            prev_ratio = count / pcount
            curr_ratio = count / ccount
            not_same = value < iou_threshold
            split = False

            if (
                not_same
                and prev_ratio > SPLIT_RATIO
                and prev_label.is_thing
                and curr_is_table
                and not prev_is_table
            ):
                result.curr_max_id += 1
                cid = result.curr_max_id
                value = prev_ratio
                split = True

            if (
                not_same
                and curr_ratio > SPLIT_RATIO
                and curr_label.is_thing
                and prev_is_table
                and not curr_is_table
            ):
                result.prev_max_id += 1
                pid = result.prev_max_id
                value = curr_ratio
                split = True

            if split:
                result.changed[(original_prev, original_curr)] = (pid, cid)

            if value < iou_threshold:
                value = 0.0
            result.scores[(pid, cid)] = value
            if value > 0.0:
                result.assignments[pid] = cid

    return result