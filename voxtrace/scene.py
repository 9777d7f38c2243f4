"""Scene assembly: mesh loading, model placement and uniform voxel grids."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import numpy as np

from voxtrace.mathutil import clamp, rotation, scaling, translation
from voxtrace.primitives import (
    BASE_MODEL_SCALE,
    GRID_X,
    GRID_Y,
    GRID_Z,
    BoundingBox,
    EntityType,
    Grid,
    IndexRange,
    Material,
    MaterialType,
    Mesh,
    Model,
    Triangle,
    Vertex,
    Voxel,
)

PathLike = Union[str, "os.PathLike[str]"]
VoxelIndex = Tuple[int, int, int]

_GRID_DIMS = (GRID_X, GRID_Y, GRID_Z)


class ObjFormatError(ValueError):
    """Raised when a Wavefront OBJ file cannot be turned into a triangle mesh."""


def _resolve_index(token: str, count: int, kind: str, lineno: int) -> int:
    try:
        raw = int(token)
    except ValueError as exc:
        raise ObjFormatError(f"line {lineno}: bad {kind} index {token!r}") from exc
    if raw == 0:
        raise ObjFormatError(f"line {lineno}: {kind} index 0 is not valid")
    index = raw - 1 if raw > 0 else count + raw
    if not 0 <= index < count:
        raise ObjFormatError(f"line {lineno}: {kind} index {raw} out of range")
    return index


def _parse_floats(parts: Sequence[str], lineno: int) -> List[float]:
    if len(parts) < 3:
        raise ObjFormatError(f"line {lineno}: expected three coordinates")
    try:
        return [float(p) for p in parts[:3]]
    except ValueError as exc:
        raise ObjFormatError(f"line {lineno}: bad coordinate") from exc


def load_obj(path: PathLike, scale: float = BASE_MODEL_SCALE):
    """Read a triangulated OBJ file.

    Returns ``(positions, normals, faces)``: two float arrays of shape (N, 3)
    and an int array of shape (M, 3) indexing into them. Positions and
    normals are both multiplied by ``scale``.
    """
    source_positions: List[List[float]] = []
    source_normals: List[List[float]] = []
    corner_lookup = {}
    positions: List[List[float]] = []
    normals: List[List[float]] = []
    faces: List[List[int]] = []

    with open(path, "r", encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            parts = line.split("#", 1)[0].split()
            if not parts:
                continue
            keyword, args = parts[0], parts[1:]
            if keyword == "v":
                source_positions.append(_parse_floats(args, lineno))
            elif keyword == "vn":
                source_normals.append(_parse_floats(args, lineno))
            elif keyword == "f":
                if len(args) != 3:
                    raise ObjFormatError(
                        f"line {lineno}: face has {len(args)} corners, expected 3"
                    )
                face = []
                for corner in args:
                    fields = corner.split("/")
                    vi = _resolve_index(fields[0], len(source_positions), "vertex", lineno)
                    if len(fields) < 3 or not fields[2]:
                        raise ObjFormatError(f"line {lineno}: face corner has no normal")
                    ni = _resolve_index(fields[2], len(source_normals), "normal", lineno)
                    key = (vi, ni)
                    if key not in corner_lookup:
                        corner_lookup[key] = len(positions)
                        positions.append(source_positions[vi])
                        normals.append(source_normals[ni])
                    face.append(corner_lookup[key])
                faces.append(face)

    if not faces:
        raise ObjFormatError(f"{os.fspath(path)}: no faces found")

    return (
        np.asarray(positions, dtype=float) * scale,
        np.asarray(normals, dtype=float) * scale,
        np.asarray(faces, dtype=int),
    )


def _cell(offset: float, width: float, limit: int) -> int:
    if width <= 0.0:
        return 0
    return clamp(math.floor(abs(offset) / width), 0, limit - 1)


def compute_voxel_range(bounding_box: BoundingBox, voxel_width, triangle) -> Tuple[VoxelIndex, VoxelIndex]:
    """Return the inclusive (min, max) voxel indices covered by a triangle's box."""
    t_box = BoundingBox()
    for point in triangle:
        t_box.update(point)
    width = np.asarray(voxel_width, dtype=float)
    low = tuple(
        _cell(bounding_box.min[axis] - t_box.min[axis], width[axis], _GRID_DIMS[axis])
        for axis in range(3)
    )
    high = tuple(
        _cell(bounding_box.min[axis] - t_box.max[axis], width[axis], _GRID_DIMS[axis])
        for axis in range(3)
    )
    return low, high


@dataclass
class Scene:
    """Flat pools of geometry plus the models that place it in the world."""

    models: List[Model] = field(default_factory=list)
    meshes: List[Mesh] = field(default_factory=list)
    vertices: List[Vertex] = field(default_factory=list)
    triangles: List[Triangle] = field(default_factory=list)
    grids: List[Grid] = field(default_factory=list)
    voxels: List[Voxel] = field(default_factory=list)
    voxel_entities: List[int] = field(default_factory=list)

    def add_mesh(self, positions, normals, faces) -> int:
        """Append a mesh to the pools and return its index."""
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        normals = np.asarray(normals, dtype=float).reshape(-1, 3)
        faces = np.asarray(faces, dtype=int).reshape(-1, 3)
        if len(positions) != len(normals):
            raise ValueError("positions and normals must have the same length")
        if faces.size and (faces.min() < 0 or faces.max() >= len(positions)):
            raise IndexError("face refers to a vertex outside the mesh")

        mesh = Mesh()
        base = len(self.vertices)
        mesh.vertex_range.start = base
        for position, normal in zip(positions, normals):
            self.vertices.append(Vertex(position=position, normal=normal))
            mesh.bounding_box.update(position)
        mesh.vertex_range.end = len(self.vertices)

        mesh.triangle_range.start = len(self.triangles)
        self.triangles.extend(
            Triangle(tuple(base + int(i) for i in face)) for face in faces
        )
        mesh.triangle_range.end = len(self.triangles)

        self.meshes.append(mesh)
        return len(self.meshes) - 1

    def add_mesh_from_file(self, path: PathLike) -> int:
        """Load an OBJ file at the base model scale and add it as a mesh."""
        return self.add_mesh(*load_obj(path, BASE_MODEL_SCALE))

    def add_model(self, mesh_index: int, model_to_world, material: Material) -> int:
        """Place an instance of a mesh and return the model's index."""
        if not 0 <= mesh_index < len(self.meshes):
            raise IndexError(f"no mesh with index {mesh_index}")
        self.models.append(
            Model(mesh_index=mesh_index, model_to_world=model_to_world, material=material)
        )
        return len(self.models) - 1

    def build_grids(self) -> None:
        """Build one voxel grid per distinct mesh and link every model to it."""
        self.grids.clear()
        self.voxels.clear()
        self.voxel_entities.clear()
        grid_of_mesh = {}

        for imodel, model in enumerate(self.models):
            if model.mesh_index in grid_of_mesh:
                model.grid_index = grid_of_mesh[model.mesh_index]
                continue

            grid_of_mesh[model.mesh_index] = len(self.grids)
            model.grid_index = len(self.grids)
            mesh = self.meshes[model.mesh_index]
            box = mesh.bounding_box

            grid = Grid(
                voxel_width=box.extent / np.array(_GRID_DIMS, dtype=float),
                entity_type=EntityType.MODEL,
                entity_index=imodel,
            )

            buckets: List[List[int]] = [[] for _ in range(GRID_X * GRID_Y * GRID_Z)]
            for itriangle in mesh.triangle_range:
                corners = [
                    self.vertices[i].position
                    for i in self.triangles[itriangle].vertex_indices
                ]
                low, high = compute_voxel_range(box, grid.voxel_width, corners)
                for z in range(low[2], high[2] + 1):
                    for y in range(low[1], high[1] + 1):
                        for x in range(low[0], high[0] + 1):
                            buckets[x + y * GRID_X + GRID_X * GRID_Y * z].append(itriangle)

            grid.voxel_range.start = len(self.voxels)
            for bucket in buckets:
                start = len(self.voxel_entities)
                self.voxel_entities.extend(bucket)
                self.voxels.append(
                    Voxel(
                        entity_range=IndexRange(start, len(self.voxel_entities)),
                        entity_type=EntityType.TRIANGLE,
                    )
                )
            grid.voxel_range.end = len(self.voxels)
            self.grids.append(grid)


_DEFAULT_MESHES = ("enclosing_box.obj", "ceiling_light.obj", "blender_monkey.obj")

_DEFAULT_MODELS = (
    # mesh, scale, rotation about y (degrees), translation, colour, material
    (2, (0.08, 0.08, 0.08), 45.0, (-50.0, -25.0, 150.0), (0.001, 0.99, 0.2), MaterialType.METAL),
    (2, (0.1, 0.1, 0.1), -40.0, (75.0, 100.0, 0.0), (0.99, 0.99, 0.001), MaterialType.COAT),
    (2, (0.1, 0.1, 0.1), 0.0, (325.0, 45.0, 0.0), (0.99, 0.99, 0.75), MaterialType.REFLECTIVE),
    (0, (0.1, 0.1, 0.1), 180.0, (25.0, -120.0, 0.0), (0.99, 0.99, 0.99), MaterialType.DIFFUSE),
    (1, (0.1, 0.1, 0.1), 45.0, (325.0, -120.0, 0.0), (0.99, 0.50, 0.60), MaterialType.DIFFUSE),
    (1, (0.1, 0.1, 0.1), 45.0, (-225.0, 8.0, 0.0), (0.40, 0.10, 0.99), MaterialType.COAT),
    (1, (0.1, 0.1, 0.1), 30.0, (75.0, -90.0, 0.0), (0.99, 0.05, 0.10), MaterialType.METAL),
    (1, (0.2, 0.1, 0.2), 0.0, (0.0, 850.0, -100.0), (0.99, 0.99, 0.99), MaterialType.EMISSIVE),
    (1, (0.2, 0.2, 0.1), 0.0, (0.0, 375.0, 950.0), (0.99, 0.99, 0.99), MaterialType.EMISSIVE),
    (1, (0.1, 0.2, 0.2), 0.0, (-520.0, 375.0, 0.0), (0.99, 0.99, 0.99), MaterialType.EMISSIVE),
    (1, (0.1, 0.2, 0.2), 0.0, (550.0, 375.0, 0.0), (0.99, 0.99, 0.99), MaterialType.EMISSIVE),
)


def default_scene(data_dir: PathLike) -> Scene:
    """Build the standard demo scene from the OBJ files in ``data_dir``."""
    scene = Scene()
    for name in _DEFAULT_MESHES:
        scene.add_mesh_from_file(os.path.join(data_dir, name))

    y_axis = (0.0, 1.0, 0.0)
    for mesh_index, scale, angle, offset, color, kind in _DEFAULT_MODELS:
        model_to_world = translation(offset) @ rotation(angle, y_axis) @ scaling(scale)
        scene.add_model(mesh_index, model_to_world, Material(material_type=kind, color=color))

    scene.build_grids()
    return scene