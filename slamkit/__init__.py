"""EPnP and Sim3 solvers with RANSAC, and min-cost-flow map-point selection for visual SLAM."""

__version__ = "0.1.0"
__all__ = [
    "epnp",
    "flow",
    "geometry",
    "pnp_ransac",
    "scores",
    "selection",
    "sim3",
    "sim3_ransac",
]