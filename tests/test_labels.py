import pytest

from objslam.labels import (
    SegmentLabel,
    is_floor_label,
    is_table_label,
    normalize_detection,
)


@pytest.mark.parametrize(
    "label,thing,expected",
    [(60, True, True), (60, False, False), (42, False, True), (42, True, False)],
)
def test_is_table_label(label, thing, expected):
    assert is_table_label(label, thing) is expected


@pytest.mark.parametrize(
    "label,thing,expected",
    [(8, False, True), (43, False, True), (44, False, True), (8, True, False), (39, False, False)],
)
def test_is_floor_label(label, thing, expected):
    assert is_floor_label(label, thing) is expected


def test_table_thing_becomes_table_stuff():
    label, conf, thing = normalize_detection(60, 0.9, True)
    assert label == 42
    assert thing is False
    assert conf / 0.9 == pytest.approx(0.1)


def test_floor_variant_becomes_floor():
    label, conf, thing = normalize_detection(44, 0.5, False)
    assert label == 8
    assert thing is False
    assert conf / 0.5 == pytest.approx(0.1)


def test_other_detection_unchanged():
    assert normalize_detection(5, 0.7, True) == (5, 0.7, True)


def test_from_detection_table_is_static_not_object():
    seg = SegmentLabel.from_detection(60, 0.8, True)
    assert seg.is_table()
    assert seg.is_static()
    assert not seg.is_object()


def test_ceiling():
    assert SegmentLabel(39, False).is_ceiling()
    assert SegmentLabel(39, False).is_static()
    assert not SegmentLabel(39, True).is_ceiling()


def test_is_object():
    assert SegmentLabel(5, True).is_object()
    assert SegmentLabel(0, False).is_object()
    assert not SegmentLabel(5, False).is_object()


def test_floor_is_static():
    seg = SegmentLabel(43, False)
    assert seg.is_floor()
    assert seg.is_static()
    assert not SegmentLabel(5, True).is_static()