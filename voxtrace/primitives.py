"""Geometry, scene and camera primitives shared by the renderer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

import numpy as np

EPSILON = 0.005
FLOAT_MAX = 9999999.0
FLOAT_MIN = -9999990.0

GRID_X = 25
GRID_Y = 25
GRID_Z = 25

RESOLUTION_X = 1000
RESOLUTION_Y = 800
SAMPLES_X = 1
SAMPLES_Y = 1

BASE_MODEL_SCALE = 1000

ITERATIONS = 500


def _vec3(values=(0.0, 0.0, 0.0)) -> np.ndarray:
    """Return a fresh float vector of three components."""
    array = np.array(values, dtype=float)
    if array.shape != (3,):
        raise ValueError(f"expected three components, got shape {array.shape}")
    return array


def _vec2(values=(0.0, 0.0)) -> np.ndarray:
    array = np.array(values, dtype=float)
    if array.shape != (2,):
        raise ValueError(f"expected two components, got shape {array.shape}")
    return array


def _mat4(values=None) -> np.ndarray:
    array = np.identity(4) if values is None else np.array(values, dtype=float)
    if array.shape != (4, 4):
        raise ValueError(f"expected a 4x4 matrix, got shape {array.shape}")
    return array


@dataclass
class IndexRange:
    """Half-open range [start, end) into a flat pool."""

    start: int = 0
    end: int = 0

    def __len__(self) -> int:
        return max(0, self.end - self.start)

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end))


@dataclass
class Vertex:
    position: np.ndarray = field(default_factory=_vec3)
    normal: np.ndarray = field(default_factory=_vec3)
    uv: np.ndarray = field(default_factory=_vec2)

    def __post_init__(self) -> None:
        self.position = _vec3(self.position)
        self.normal = _vec3(self.normal)
        self.uv = _vec2(self.uv)


@dataclass(frozen=True)
class Triangle:
    vertex_indices: Tuple[int, int, int]

    def __post_init__(self) -> None:
        indices = tuple(int(i) for i in self.vertex_indices)
        if len(indices) != 3:
            raise ValueError("a triangle needs exactly three vertex indices")
        object.__setattr__(self, "vertex_indices", indices)


@dataclass
class BoundingBox:
    """Axis-aligned box; starts empty and grows with update()."""

    min: np.ndarray = field(default_factory=lambda: _vec3((FLOAT_MAX,) * 3))
    max: np.ndarray = field(default_factory=lambda: _vec3((FLOAT_MIN,) * 3))

    def __post_init__(self) -> None:
        self.min = _vec3(self.min)
        self.max = _vec3(self.max)

    def update(self, vertex) -> None:
        """Grow the box so that it contains the point."""
        point = _vec3(vertex)
        self.min = np.minimum(self.min, point)
        self.max = np.maximum(self.max, point)

    @property
    def extent(self) -> np.ndarray:
        return self.max - self.min


class MaterialType(enum.Enum):
    DIFFUSE = 0
    SPECULAR = 1
    REFLECTIVE = 2
    REFRACTIVE = 3
    EMISSIVE = 4
    COAT = 5
    METAL = 6


@dataclass
class Material:
    material_type: MaterialType = MaterialType.DIFFUSE
    refractive_index: float = 0.0
    reflectivity: float = 0.0
    color: np.ndarray = field(default_factory=_vec3)

    def __post_init__(self) -> None:
        self.color = _vec3(self.color)


@dataclass
class Mesh:
    vertex_range: IndexRange = field(default_factory=IndexRange)
    triangle_range: IndexRange = field(default_factory=IndexRange)
    bounding_box: BoundingBox = field(default_factory=BoundingBox)


@dataclass
class Model:
    """A placed instance of a mesh; world_to_model defaults to the inverse."""

    mesh_index: int = 0
    model_to_world: np.ndarray = field(default_factory=_mat4)
    material: Material = field(default_factory=Material)
    grid_index: int = -1
    world_to_model: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.model_to_world = _mat4(self.model_to_world)
        if self.world_to_model is None:
            self.world_to_model = np.linalg.inv(self.model_to_world)
        else:
            self.world_to_model = _mat4(self.world_to_model)


class EntityType(enum.Enum):
    MODEL = 0
    SCENE = 1
    TRIANGLE = 2
    SPHERE = 3


@dataclass
class Voxel:
    entity_range: IndexRange = field(default_factory=IndexRange)
    entity_type: EntityType = EntityType.TRIANGLE


@dataclass
class Grid:
    voxel_range: IndexRange = field(default_factory=IndexRange)
    voxel_width: np.ndarray = field(default_factory=_vec3)
    entity_type: EntityType = EntityType.MODEL
    entity_index: int = 0

    def __post_init__(self) -> None:
        self.voxel_width = _vec3(self.voxel_width)


@dataclass
class Ray:
    """A ray in world space plus its copy in the current model's space."""

    origin: np.ndarray = field(default_factory=_vec3)
    direction: np.ndarray = field(default_factory=_vec3)
    local_origin: np.ndarray = field(default_factory=_vec3)
    local_direction: np.ndarray = field(default_factory=_vec3)
    inv_direction: np.ndarray = field(default_factory=_vec3)
    ipixel: int = 0
    remaining_bounces: int = 0
    color: np.ndarray = field(default_factory=lambda: _vec3((1.0, 1.0, 1.0)))

    def __post_init__(self) -> None:
        self.origin = _vec3(self.origin)
        self.direction = _vec3(self.direction)
        self.local_origin = _vec3(self.local_origin)
        self.local_direction = _vec3(self.local_direction)
        self.inv_direction = _vec3(self.inv_direction)
        self.color = _vec3(self.color)


@dataclass
class IntersectionData:
    impact_distance: float = FLOAT_MAX
    impact_normal: np.ndarray = field(default_factory=_vec3)
    impact_material: Material = field(default_factory=Material)
    ipixel: int = 0

    def __post_init__(self) -> None:
        self.impact_normal = _vec3(self.impact_normal)

    @property
    def has_hit(self) -> bool:
        return self.impact_distance < FLOAT_MAX