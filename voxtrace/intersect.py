"""Ray intersection against boxes, triangles, voxel grids and whole scenes."""

from __future__ import annotations

import math
from typing import List, Optional

import numpy as np

from voxtrace.mathutil import (
    is_equal,
    is_less_than,
    is_more_than,
    normalize,
    transform_direction,
    transform_normal,
    transform_position,
)
from voxtrace.primitives import (
    EPSILON,
    FLOAT_MAX,
    FLOAT_MIN,
    GRID_X,
    GRID_Y,
    GRID_Z,
    BoundingBox,
    EntityType,
    IntersectionData,
    Model,
    Ray,
)

_GRID_DIMS = (GRID_X, GRID_Y, GRID_Z)


def transform_ray_to_model(ray: Ray, model: Model) -> None:
    """Fill the ray's model-space origin, direction and inverse direction."""
    ray.local_origin = transform_position(ray.origin, model.world_to_model)
    ray.local_direction = normalize(transform_direction(ray.direction, model.world_to_model))
    with np.errstate(divide="ignore", invalid="ignore"):
        ray.inv_direction = 1.0 / ray.local_direction


def intersect_ray_box(ray: Ray, bounding_box: BoundingBox) -> Optional[float]:
    """Return the entry distance of the model-space ray into the box, or None.

    An axis along which the ray does not move is treated as an unbounded slab.
    """
    near: List[float] = []
    far: List[float] = []
    for axis in range(3):
        if ray.local_direction[axis] == 0.0:
            t_low, t_high = FLOAT_MIN, FLOAT_MAX
        else:
            inv = ray.inv_direction[axis]
            origin = ray.local_origin[axis]
            t_low = float((bounding_box.min[axis] - origin) * inv)
            t_high = float((bounding_box.max[axis] - origin) * inv)
        near.append(min(t_low, t_high))
        far.append(max(t_low, t_high))

    t_min = max(near)
    t_max = min(far)
    if t_max < 0 or t_min > t_max:
        return None
    return t_min


def intersect_ray_triangle(scene, ray: Ray, hit: IntersectionData, itriangle: int) -> bool:
    """Test one triangle; keep the closer hit (model-space distance) in ``hit``."""
    triangle = scene.triangles[itriangle]
    v0, v1, v2 = (scene.vertices[i] for i in triangle.vertex_indices)

    edge1 = v1.position - v0.position
    edge2 = v2.position - v0.position
    pvec = np.cross(ray.local_direction, edge2)
    det = float(np.dot(edge1, pvec))
    if is_equal(det, 0.0):
        return False
    inv_det = 1.0 / det

    tvec = ray.local_origin - v0.position
    u = float(np.dot(tvec, pvec)) * inv_det
    if is_less_than(u, 0.0) or is_more_than(u, 1.0):
        return False

    qvec = np.cross(tvec, edge1)
    v = float(np.dot(ray.local_direction, qvec)) * inv_det
    if is_less_than(v, 0.0) or is_more_than(u + v, 1.0):
        return False

    t = float(np.dot(edge2, qvec)) * inv_det
    if is_less_than(t, 0.0):
        return False

    normal = normalize((v0.normal + v1.normal + v2.normal) * (1.0 / 3.0))
    if hit.impact_distance > t:
        hit.impact_distance = t
        hit.impact_normal = normal
    return True


def intersect_ray_voxel(scene, ray: Ray, hit: IntersectionData, ivoxel: int) -> bool:
    """Test every triangle listed in a voxel; True if any of them is hit."""
    voxel = scene.voxels[ivoxel]
    if voxel.entity_type is not EntityType.TRIANGLE:
        return False
    found = False
    for entry in voxel.entity_range:
        if intersect_ray_triangle(scene, ray, hit, scene.voxel_entities[entry]):
            found = True
    return found


def _start_cell(offset: float, width: float, limit: int) -> int:
    with np.errstate(divide="ignore", invalid="ignore"):
        value = abs(offset + EPSILON) / width if width != 0.0 else math.inf
    if not math.isfinite(value):
        return 0
    return min(max(int(value), 0), limit - 1)


def intersect_ray_grid(scene, ray: Ray, hit: IntersectionData, igrid: int) -> bool:
    """Walk the model-space ray through a uniform voxel grid.

    Traversal stops once the ray is more than two cells past the last voxel
    that produced a hit, or when it leaves the grid.
    """
    grid = scene.grids[igrid]
    if grid.entity_type is not EntityType.MODEL:
        raise ValueError(f"grid {igrid} does not belong to a model")
    model = scene.models[grid.entity_index]
    box = scene.meshes[model.mesh_index].bounding_box

    t_box = intersect_ray_box(ray, box)
    if t_box is None:
        return False

    entry = ray.local_origin + ray.local_direction * t_box
    offset = entry - box.min
    if np.any(offset < -EPSILON):
        return False

    direction = ray.local_direction
    width = grid.voxel_width
    cell = [_start_cell(float(offset[a]), float(width[a]), _GRID_DIMS[a]) for a in range(3)]

    step: List[int] = []
    out: List[int] = []
    t_max: List[float] = []
    delta: List[float] = []
    for axis, dim in enumerate(_GRID_DIMS):
        positive = direction[axis] > 0.0
        step.append(1 if positive else -1)
        out.append(dim if positive else -1)
        if direction[axis] != 0.0:
            next_index = cell[axis] + 1 if positive else cell[axis]
            next_pos = box.min[axis] + next_index * width[axis]
            inv = ray.inv_direction[axis]
            delta.append(float(abs(width[axis] * inv)))
            t_max.append(float((next_pos - entry[axis]) * inv))
        else:
            delta.append(FLOAT_MAX)
            t_max.append(FLOAT_MAX)

    hit_cell = None
    while True:
        ivoxel = grid.voxel_range.start + cell[0] + cell[1] * GRID_X + cell[2] * GRID_X * GRID_Y
        if intersect_ray_voxel(scene, ray, hit, ivoxel):
            hit_cell = tuple(cell)

        if hit_cell is not None and any(abs(h - c) > 2 for h, c in zip(hit_cell, cell)):
            return True

        if t_max[0] < t_max[1] and t_max[0] < t_max[2]:
            axis = 0
        elif t_max[1] < t_max[2]:
            axis = 1
        else:
            axis = 2

        cell[axis] += step[axis]
        if cell[axis] == out[axis] or t_max[axis] >= FLOAT_MAX:
            return hit_cell is not None
        t_max[axis] += delta[axis]


def intersect_ray_scene(scene, ray: Ray, hit: IntersectionData) -> bool:
    """Find the nearest hit over all models, in world-space distance.

    ``hit`` receives the distance, world normal and material of the nearest
    hit when one is closer than what it already held. Returns whether the
    record now holds a hit.
    """
    best_distance = hit.impact_distance
    best_normal = hit.impact_normal
    best_material = hit.impact_material

    for imodel, model in enumerate(scene.models):
        if model.grid_index < 0:
            raise ValueError(f"model {imodel} has no voxel grid; build the grids first")
        transform_ray_to_model(ray, model)
        hit.impact_distance = FLOAT_MAX

        if intersect_ray_grid(scene, ray, hit, model.grid_index):
            local_point = ray.local_origin + normalize(ray.local_direction) * hit.impact_distance
            world_point = transform_position(local_point, model.model_to_world)
            hit.impact_distance = float(np.linalg.norm(world_point - ray.origin))

            if best_distance > hit.impact_distance:
                best_distance = hit.impact_distance
                best_material = model.material
                best_normal = normalize(transform_normal(hit.impact_normal, model.model_to_world))

    if best_distance < FLOAT_MAX:
        hit.impact_distance = best_distance
        hit.impact_normal = best_normal
        hit.impact_material = best_material
        return True
    return False