# slamkit

Geometric building blocks for visual SLAM, written with NumPy: camera pose
from 3D-2D matches, similarity alignment between two keyframes, and a
min-cost-flow selection of map points and keyframes for a sparse local
optimisation.

## Modules

- `slamkit.epnp`
  - `EPnP(fu, fv, uc, vc)`: pose of a pinhole camera.
    `compute_pose(world_points, image_points)` takes arrays of shape `(n, 3)`
    and `(n, 2)` and returns `(R, t, mean_reprojection_error)`.
    `reprojection_error(R, t, world_points, image_points)` gives the mean pixel
    distance for any pose.
  - `qr_solve(A, b)`: Householder least-squares solve; raises
    `numpy.linalg.LinAlgError` on a singular matrix.
  - `mat_to_quat(R)`: quaternion `(x, y, z, w)` of a rotation matrix.
  - `relative_error(R_true, t_true, R_est, t_est)`: relative rotation and
    translation errors of an estimate.
- `slamkit.pnp_ransac`
  - `Correspondence(index, world_point, image_point, sigma2=1.0)`: one match,
    where `index` is its slot among all matches of the frame.
  - `PnPSolver(correspondences, n_matches, fx, fy, cx, cy, seed=None)`: RANSAC
    around EPnP. `set_ransac_parameters(...)` adapts thresholds to the number
    of correspondences (defaults: probability 0.99, 8 minimum inliers, 300
    iterations, sets of 4, epsilon 0.4, threshold 5.991 times `sigma2`).
    `iterate(n_iterations)` runs more iterations; `find()` runs the configured
    number.
  - `PnPResult`: `pose` (4x4 world-to-camera matrix or `None`), `inliers` (one
    flag per match slot), `n_inliers`, `no_more` and `success`.
- `slamkit.sim3`
  - `compute_sim3(P1, P2, fix_scale)`: closed-form similarity mapping the rows
    of `P2` onto `P1`, returned as a `Sim3Transform` with `rotation`,
    `translation`, `scale`, `matrix`, `inverse_matrix` and `apply(points)`.
  - `camera_to_image(points, K)` and `project(points, T, K)`: pinhole
    projection, the latter after a 4x4 transform.
- `slamkit.sim3_ransac`
  - `Sim3Match(index, point1, point2, sigma2_1=1.0, sigma2_2=1.0)`: a pair of
    matched points, each in its own camera frame.
  - `Sim3Solver(matches, n_matches, K1, K2, fix_scale, seed=None)`: RANSAC over
    three-point samples; a match is an inlier when its reprojection error in
    both images is under 9.210 times its `sigma2`. Has
    `set_ransac_parameters(...)`, `iterate(n_iterations)` and `find()`.
  - `Sim3Result`: `transform`, `pose`, `inliers`, `n_inliers`, `no_more`.
- `slamkit.flow`
  - `FlowGraph(map_point_count, covis_keyframe_count)`: residual network of
    `Edge` records with vertex 0 as source and the last vertex (`sink`) as
    sink. `add_edge(source, target, capacity, cost)` adds an edge and its
    reverse twin; `min_cost_max_flow(source, sink, flow_limit)` returns
    `(flow, cost)` using Bellman-Ford shortest paths and records the vertices
    of every augmenting path in `selected`.
- `slamkit.scores`
  - `func_point(n, m)` and `point_visibility(observations, max_visibility)`:
    visibility weight of a map point (lower is preferred).
  - `min_circle_radius(width, height)`, `point_diversity(n1, n2)` and
    `baseline_score(center_i, center_k)`.
- `slamkit.geometry`
  - `depth_penalty(world_pos, Tcw, avg_depth)`, `project_point(world_pos, Tcw,
    fx, fy, cx, cy)` (returns `(-1, -1)` behind the camera) and
    `neighbor_search_radius(scale_factor)`.
- `slamkit.selection`
  - `PointCandidate(observations, found, depth_penalty, diversity, baselines)`:
    a map point with its scores per ordered keyframe pair `(i, j)`.
  - `build_selection_graph(points, n_keyframes)` builds the flow network;
    `select_local_map(points, n_keyframes, flow_limit=10000)` solves it and
    returns a `Selection` with `map_points`, `keyframes`, `flow` and `cost`.
  - `average_sparsity(values)`: 0.55 times the mean of the non-zero values.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
import numpy as np
from slamkit.epnp import EPnP

solver = EPnP(fu=500.0, fv=500.0, uc=320.0, vc=240.0)
world = np.random.default_rng(0).uniform(-1, 1, size=(8, 3)) + [0, 0, 5]
image = np.column_stack([
    500.0 * world[:, 0] / world[:, 2] + 320.0,
    500.0 * world[:, 1] / world[:, 2] + 240.0,
])
R, t, err = solver.compute_pose(world, image)
```

Here `R` comes out close to the identity, `t` close to zero, and `err` is the
mean reprojection error in pixels.

## What it does not do

slamkit is a set of solvers, not a SLAM system. It extracts no image
features, tracks no camera over a video, keeps no map or keyframe database,
runs no bundle adjustment or pose-graph optimisation, draws nothing on
screen and writes no trajectory files. Callers supply the matched points,
calibration and scores themselves.