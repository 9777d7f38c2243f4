[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "voxtrace"
version = "0.1.0"
description = "A voxel-grid accelerated Monte Carlo path tracer for triangle meshes"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["path tracing", "ray tracing", "rendering", "voxel grid", "obj", "bmp"]
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
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
voxtrace = "voxtrace.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["voxtrace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
