# voxtrace

A small Monte Carlo path tracer for triangle meshes, written on top of
numpy. Each mesh is bucketed into a uniform 25 × 25 × 25 voxel grid and
rays step through the grid, so only the triangles in the voxels a ray
crosses are tested. Surfaces can be diffuse, metal, coat, reflective or
emissive. The accumulated image is saved as a 24-bit BMP.

## Installation

```
pip install .
```

The only runtime dependency is numpy.

## Command line

```
voxtrace
```

This builds the demo scene from the Wavefront OBJ files
`enclosing_box.obj`, `ceiling_light.obj` and `blender_monkey.obj` in the
data directory (`Input data` by default), runs the render loop, prints the
time each iteration took, and writes the image to `Render.bmp`.

Options:

- `--data-dir DIR` – directory holding the OBJ meshes
- `--output FILE` – BMP file to write
- `--width N`, `--height N` – image size in pixels (default 1000 × 800)
- `--iterations N` – number of samples accumulated per pixel (default 500)

If a mesh cannot be read, the command prints `Error loading mesh: ...` and
exits with status 1. Everything runs on the CPU in Python, so the full
default size and iteration count take a long time; smaller values such as
`voxtrace --width 100 --height 80 --iterations 4` give a quick preview.

## Library use

```python
import numpy as np
from voxtrace.primitives import Material, MaterialType
from voxtrace.scene import Scene
from voxtrace.mathutil import scaling, translation
from voxtrace.renderer import Renderer

scene = Scene()
mesh = scene.add_mesh_from_file("cube.obj")
scene.add_model(
    mesh,
    translation((0.0, 0.0, 100.0)) @ scaling((0.1, 0.1, 0.1)),
    Material(MaterialType.DIFFUSE, color=np.array([0.9, 0.9, 0.9])),
)
scene.build_grids()

renderer = Renderer(scene, width=100, height=80, iterations=4)
renderer.render_loop()
renderer.write_image("Render.bmp")
```

`Scene.build_grids()` must be called after the last model is added;
intersection raises `ValueError` for a model without a grid.

The modules:

- `voxtrace.primitives` – the data classes (`Vertex`, `Triangle`,
  `BoundingBox`, `Mesh`, `Model`, `Material`, `Grid`, `Voxel`, `Ray`,
  `IntersectionData`), the `MaterialType` and `EntityType` enums, and the
  default constants (resolution, grid size, iteration count, `EPSILON`).
- `voxtrace.scene` – `load_obj` reads a triangulated OBJ file whose face
  corners carry normals (`v//vn` or `v/vt/vn`) into positions, normals and
  faces, scaled by 1000 by default, raising `ObjFormatError` otherwise;
  `Scene` holds the geometry pools and builds the voxel grids;
  `compute_voxel_range` gives the voxels a triangle's box covers;
  `default_scene` builds the demo scene.
- `voxtrace.intersect` – ray–box, ray–triangle, voxel, grid-traversal and
  whole-scene intersection (`intersect_ray_scene`).
- `voxtrace.experiment` – an alternative intersection pass,
  `compute_ray_scene_intersection`, that culls rays by bounding box first,
  reorders them so the candidates come first, and compares triangle hits by
  world-space distance using flat face normals.
- `voxtrace.mathutil` – the seeded `MinStdRand` engine and
  `make_seeded_random_engine`, tolerance comparisons, transform helpers
  (`scaling`, `translation`, `rotation`, `transform_position`, ...) and the
  hemisphere, metal and coat scattering samplers.
- `voxtrace.renderer` – `Renderer`, `shade_ray` and `encode_bmp`, which
  turns accumulated pixel colours into BMP bytes.

Rendering is deterministic: each random stream is seeded from the
iteration, the ray's index among the rays still in flight and the bounce
depth, so the same scene always gives the same image.

## What it does not do

- There is no interactive window or debug viewer; the only output is a
  BMP file (or its bytes from `Renderer.image_bytes()`).
- `SPECULAR` and `REFRACTIVE` materials exist as types but are not shaded:
  a ray hitting them keeps its direction and colour and just loses a bounce.
- Meshes are read only from triangulated OBJ files with vertex normals;
  materials in `.mtl` files and textures are ignored.
- There is no GPU or multiprocess rendering.

## Running the tests

```
pip install .[test]
pytest
```