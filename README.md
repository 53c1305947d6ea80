# objslam

Building blocks for object-level SLAM: linking segmented instances
between frames, fitting oriented bounding boxes to map points, matching
binary descriptors, triangulating matches between two views, refining a
camera pose from 2-D/3-D correspondences and keeping a covisibility graph
of observations.

Everything works on plain NumPy arrays and Python objects. Poses are 4x4
world-to-camera matrices `T`, intrinsics are 3x3 matrices `K` (or the
values `fx`, `fy`, `cx`, `cy`).

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `objslam.geometry`
  - `pca_frame(points)` returns the mean and the right-handed principal
    axes (as rows, strongest first) of at least three 3-D points.
  - `box_corners(min_coords, max_coords)` gives the eight corners of a
    box, bottom face first; `box_edges(projected_corners)` gives its
    twelve 2-D segments (an empty list unless there are eight corners).
  - `project_corners(corners, K, T)` projects 3-D points into an image.
  - `bounding_rect(points)` returns `(x, y, width, height)` of 2-D points,
    or zeros for fewer than two.
  - `OrientedBoundingBox` with `calculate(points)` (a tight box along the
    principal axes) and `project(K, T)`.
- `objslam.hungarian`: `hungarian_assignment(cost_matrix)` returns, for
  each row, the column of a minimum-cost assignment, or -1 for rows left
  unassigned.
- `objslam.labels`: `SegmentLabel` (`is_table`, `is_floor`, `is_ceiling`,
  `is_object`, `is_static`, and `SegmentLabel.from_detection`),
  `normalize_detection`, which folds tables and floors into their stuff
  labels and scales their confidence by 0.1, and `is_table_label`,
  `is_floor_label`.
- `objslam.similarity`: `rect_iou`, `mask_iou`, `point_in_polygon`,
  `polygon_coverage`, `check_static_object`; `convert_flow_point` and
  `shift_instance` read a quarter-resolution signed 8-bit flow field and
  move an instance's point, rectangle, contour and filled mask by it;
  `overlap_points`, `partial_similarity` and `jaccard_similarity` compare
  the map-point sets of two instances (points that are `None` or report
  `is_bad` are ignored).
- `objslam.linker`: `count_links(pairs)` and
  `link_instances(pairs, prev_labels, curr_labels, prev_max_id,
  curr_max_id, iou_threshold)` link instance ids of two frames from
  `(prev_id, curr_id)` pairs of matched points. Pairs need at least five
  shared matches; an object swallowed by a table on the other side gets a
  new instance id there. The outcome is a `LinkResult` with
  `assignments`, `changed`, `scores` and the new maximum ids.
- `objslam.records`: `ObjectRecorder(result_dir, latency_dir)` collects
  log lines (`log`), IoU values (`add_iou`) and latencies
  (`add_latency`). `save_association()` overwrites `res.csv` in
  `result_dir` with the object counts and log lines, then saves the
  `assoseg` and `assosam` latencies; `save_latency(keyword)` appends the
  latencies of one keyword to `<keyword>.csv` in `latency_dir` and clears
  them.
- `objslam.matcher`: `hamming_distance`, `match_descriptors` and
  `match_with_candidates` (distance and ratio tests, one match per target
  descriptor), and `match_by_projection`, which projects world points
  into a `ProjectionTarget` and matches each to the closest unmatched
  feature in a window (`ProjectionTarget.features_in_area`).
- `objslam.triangulation`: `CameraView` (with `center()`),
  `triangulate_matches(view1, view2, matches, check_scale)` returning one
  world point or `None` per match, and `initial_object_pose`, a pose at
  the mean of at least twenty points.
- `objslam.instance`: `GlobalInstance`, an object tracked across frames
  by its map points, with `add_points`, `connect`, `merge`,
  `update_position`, `calculate_bounding_box`, `update`,
  `project_position` and `project_bounding_box`. It can log to an
  `ObjectRecorder`.
- `objslam.covisibility`: `CovisibilityGraph` with `add_connection`,
  `update_connections`, `best_covisible`, `set_bad` (which re-parents the
  children of a removed node) and `local_nodes`.
- `objslam.optimizer`: `optimize_object_pose(image_points, object_points,
  pose, fx, fy, cx, cy)` refines a pose by Levenberg-Marquardt with a
  Huber kernel over up to four rounds of outlier rejection and returns
  `(inliers, pose, outliers)`.

## Example

```python
import numpy as np
from objslam.geometry import OrientedBoundingBox, box_edges

points = np.random.default_rng(0).normal(size=(50, 3))
box = OrientedBoundingBox()
box.calculate(points)

K = np.array([[500.0, 0, 320], [0, 500.0, 240], [0, 0, 1]])
T = np.eye(4)
T[2, 3] = 10.0
corners_2d = box.project(K, T)
print(box_edges(corners_2d))
```

## What the package does not do

It is a library of parts, not a running SLAM system. It has no command,
does not read images or camera streams, does not detect or segment
objects, does not compute optical flow (it only reads a flow field you
supply) and does not track the camera or build a map of its own. It does
not draw: `box_edges` returns the line segments for you to render.