"""Object-level SLAM building blocks: instance linking, oriented boxes, matching, triangulation, pose refinement and covisibility graphs."""

__version__ = "0.1.0"