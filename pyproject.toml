[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "objslam"
version = "0.1.0"
description = "Object-level SLAM building blocks: instance association, oriented boxes, descriptor matching, triangulation and covisibility graphs"
requires-python = ">=3.10"
keywords = [
    "slam",
    "object slam",
    "instance segmentation",
    "triangulation",
    "bounding box",
    "computer vision",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["objslam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
