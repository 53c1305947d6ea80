import pytest

from objslam.labels import SegmentLabel
from objslam.linker import LinkResult, count_links, link_instances


def _thing(label=41):
    return SegmentLabel(label=label, is_thing=True)


def _table():
    return SegmentLabel(label=42, is_thing=False)


def test_count_links_tallies_ids_and_pairs():
    counts = count_links([(1, 2), (1, 2), (1, 3), (4, 2)])
    assert counts.prev == {1: 3, 4: 1}
    assert counts.curr == {2: 3, 3: 1}
    assert counts.links[(1, 2)] == 2
    assert counts.links[(4, 2)] == 1


def test_count_links_empty():
    counts = count_links([])
    assert not counts.prev and not counts.curr and not counts.links


def test_identical_instances_are_linked():
    pairs = [(1, 2)] * 10
    result = link_instances(pairs, {1: _thing()}, {2: _thing()}, 5, 5, 0.5)
    assert isinstance(result, LinkResult)
    assert result.assignments == {1: 2}
    assert result.scores[(1, 2)] == 1.0
    assert result.changed == {}
    assert (result.prev_max_id, result.curr_max_id) == (5, 5)


def test_too_few_matches_are_ignored():
    pairs = [(1, 2)] * 4
    result = link_instances(pairs, {1: _thing()}, {2: _thing()}, 2, 2, 0.5)
    assert result.assignments == {}
    assert result.scores == {}


def test_low_overlap_is_zeroed():
    pairs = [(1, 2)] * 5 + [(1, 3)] * 20
    result = link_instances(
        pairs, {1: _thing()}, {2: _thing(), 3: _thing()}, 3, 3, 0.5
    )
    assert result.scores[(1, 2)] == 0.0
    assert result.assignments == {1: 3}


def test_object_merged_into_current_table_gets_new_current_id():
    pairs = [(1, 3)] * 10 + [(2, 3)] * 30
    prev = {1: _thing(), 2: _thing(47)}
    curr = {3: _table()}
    result = link_instances(pairs, prev, curr, 2, 3, 0.5)
    assert result.curr_max_id == 4
    assert result.prev_max_id == 2
    assert result.changed == {(1, 3): (1, 4)}
    assert result.assignments[1] == 4
    assert result.scores[(1, 4)] == 1.0
    assert result.assignments[2] == 3


def test_object_merged_into_previous_table_gets_new_previous_id():
    pairs = [(3, 1)] * 10 + [(3, 2)] * 30
    prev = {3: _table()}
    curr = {1: _thing(), 2: _thing(47)}
    result = link_instances(pairs, prev, curr, 3, 2, 0.5)
    assert result.prev_max_id == 4
    assert result.changed == {(3, 1): (4, 1)}
    assert result.assignments[4] == 1


def test_table_on_both_sides_does_not_split():
    pairs = [(1, 2)] * 10 + [(3, 2)] * 30
    prev = {1: _table(), 3: _table()}
    curr = {2: _table()}
    result = link_instances(pairs, prev, curr, 3, 2, 0.5)
    assert result.changed == {}
    assert result.curr_max_id == 2
    assert result.assignments == {3: 2}


def test_missing_label_raises():
    with pytest.raises(KeyError):
        link_instances([(1, 2)] * 6, {}, {2: _thing()}, 1, 2, 0.5)