from dataclasses import dataclass

import numpy as np
import pytest

from objslam.geometry import project_corners
from objslam.instance import BOX_STD_SCALE, NO_PROJECTION, GlobalInstance
from objslam.records import ObjectRecorder


@dataclass(eq=False)
class Point:
    position: tuple
    is_bad: bool = False


K = np.array([[100.0, 0.0, 50.0], [0.0, 100.0, 40.0], [0.0, 0.0, 1.0]])


def cloud(n=30, seed=1):
    rng = np.random.default_rng(seed)
    data = rng.normal(size=(n, 3)) * np.array([2.0, 1.0, 0.5]) + np.array([1.0, 2.0, 5.0])
    return [Point(tuple(row)) for row in data]


def test_ids_increase():
    a = GlobalInstance()
    b = GlobalInstance()
    assert b.id > a.id


def test_add_points_skips_invalid_and_duplicates():
    g = GlobalInstance()
    p = Point((1.0, 2.0, 3.0))
    added = g.add_points([p, p, None, Point((0, 0, 1), is_bad=True)])
    assert added == 1
    assert g.points == {p}
    assert g.add_points([p]) == 0


def test_update_position_is_mean():
    g = GlobalInstance()
    pts = cloud()
    g.add_points(pts)
    expected = np.mean([p.position for p in pts], axis=0)
    assert np.allclose(g.update_position(), expected)
    assert np.allclose(g.position, expected)


def test_update_position_without_points_is_zero():
    g = GlobalInstance()
    assert np.array_equal(g.update_position(), np.zeros(3))


def test_project_unknown_position():
    g = GlobalInstance()
    assert g.project_position(np.eye(4), K) == NO_PROJECTION


def test_project_position_matches_corner_projection():
    g = GlobalInstance()
    g.add_points([Point((1.0, 2.0, 4.0))])
    g.update_position()
    expected = project_corners([g.position], K, np.eye(4))[0]
    assert np.allclose(g.project_position(np.eye(4), K), expected)


def test_project_position_behind_camera():
    g = GlobalInstance()
    g.add_points([Point((1.0, 2.0, -4.0))])
    g.update_position()
    assert g.project_position(np.eye(4), K) == NO_PROJECTION


def test_calculate_bounding_box_centred_on_mean():
    g = GlobalInstance()
    pts = cloud()
    g.add_points(pts)
    corners = g.calculate_bounding_box()
    mean = np.mean([p.position for p in pts], axis=0)
    assert corners.shape == (8, 3)
    assert np.allclose(g.position, mean)
    assert np.allclose(corners.mean(axis=0), mean)
    assert BOX_STD_SCALE == 1.285


def test_calculate_bounding_box_without_points():
    g = GlobalInstance()
    corners = g.calculate_bounding_box()
    assert corners.shape == (0, 3)
    assert np.array_equal(g.position, np.zeros(3))


def test_update_with_too_few_points():
    g = GlobalInstance()
    g.add_points(cloud(2))
    assert len(g.update(1.0)) == 0
    assert np.array_equal(g.position, np.zeros(3))


def test_update_returns_the_points():
    g = GlobalInstance()
    pts = cloud()
    g.add_points(pts)
    restored = g.update(2.0)
    original = np.array([p.position for p in pts])
    assert len(restored) == len(original)
    assert np.allclose(np.sort(restored, axis=0), np.sort(original, axis=0))


def test_update_zero_scale_collapses_box():
    g = GlobalInstance()
    g.add_points(cloud())
    g.update(0.0)
    assert np.allclose(g.corners, np.repeat(g.position[None, :], 8, axis=0))


def test_project_bounding_box_matches_corners():
    g = GlobalInstance()
    g.add_points(cloud())
    g.calculate_bounding_box()
    assert np.allclose(g.project_bounding_box(K, np.eye(4)), project_corners(g.corners, K, np.eye(4)))


def test_project_bounding_box_empty():
    assert GlobalInstance().project_bounding_box(K, np.eye(4)).shape == (0, 2)


def test_connect_drops_bad_points_and_logs(tmp_path):
    recorder = ObjectRecorder(tmp_path / "res", tmp_path / "lat")
    g = GlobalInstance(recorder=recorder)
    stale = Point((0.0, 0.0, 1.0))
    g.add_points([stale])
    stale.is_bad = True
    fresh = Point((1.0, 1.0, 1.0))
    added = g.connect("frame-1", 3, [fresh])
    assert added == 1
    assert g.points == {fresh}
    assert g.connected == {"frame-1": 3}
    assert recorder.lines[-1].startswith(f"G::DelMP,{g.id},1,0")


def test_merge_keeps_larger_instance():
    big = GlobalInstance()
    small = GlobalInstance()
    big.connect("f1", 1, cloud(3, seed=2))
    big.connect("f2", 2, [])
    small_points = cloud(4, seed=3)
    small.connect("f3", 5, small_points)
    survivor = small.merge(big)
    assert survivor is big
    assert survivor.connected == {"f1": 1, "f2": 2, "f3": 5}
    assert set(small_points) <= survivor.points
    assert len(survivor.points) == 7


def test_merge_with_itself():
    g = GlobalInstance()
    g.connect("f", 1, cloud(3))
    assert g.merge(g) is g
    assert g.connected == {"f": 1}