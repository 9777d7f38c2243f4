"""Bounding-box culled intersection pass that measures hits in world space.

Rays are first tested against each model's bounding box. Only the rays that
enter it are walked through the model's voxel grid. Triangle hits are
compared by their distance in world space, and the flat face normal is used.
"""

from __future__ import annotations

import math
from typing import List, MutableSequence, Optional, Tuple

import numpy as np

from voxtrace.intersect import intersect_ray_box, transform_ray_to_model
from voxtrace.mathutil import (
    is_equal,
    is_less_than,
    is_more_than,
    normalize,
    transform_normal,
    transform_position,
)
from voxtrace.primitives import (
    EPSILON,
    FLOAT_MAX,
    GRID_X,
    GRID_Y,
    GRID_Z,
    EntityType,
    IntersectionData,
    Mesh,
    Model,
    Ray,
)

_GRID_DIMS = (GRID_X, GRID_Y, GRID_Z)


def intersect_triangle_world(
    scene, ray: Ray, hit: IntersectionData, itriangle: int, model: Model
) -> bool:
    """Test one triangle of ``model``; keep the hit if it is closer in world space.

    The recorded normal is the triangle's face normal taken to world space.
    The material is the model's material.
    """
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

    face_normal = np.cross(edge1, edge2)
    local_point = ray.local_origin + ray.local_direction * t
    world_point = transform_position(local_point, model.model_to_world)
    distance = float(np.linalg.norm(world_point - ray.origin))

    if hit.impact_distance > distance:
        hit.impact_distance = distance
        hit.impact_normal = normalize(transform_normal(face_normal, model.model_to_world))
        hit.impact_material = model.material
    return True


def intersect_voxel_world(
    scene, ray: Ray, hit: IntersectionData, ivoxel: int, model: Model
) -> bool:
    """Test every triangle listed in a voxel against the ray; True if any is hit."""
    voxel = scene.voxels[ivoxel]
    if voxel.entity_type is not EntityType.TRIANGLE:
        return False
    found = False
    for entry in voxel.entity_range:
        if intersect_triangle_world(scene, ray, hit, scene.voxel_entities[entry], model):
            found = True
    return found


def bounding_box_entry(
    ray: Ray, model: Model, mesh: Mesh, hit: IntersectionData
) -> Optional[float]:
    """Return where the model-space ray enters the mesh's box, or None on a miss.

    A ray that enters the box stays a candidate even when ``hit`` already
    records a nearer surface.
    """
    return intersect_ray_box(ray, mesh.bounding_box)


def _start_cell(offset: float, width: float, limit: int) -> int:
    if width == 0.0:
        return 0
    value = abs(offset + EPSILON) / width
    if not math.isfinite(value):
        return 0
    return min(max(int(value), 0), limit - 1)


def traverse_grid(scene, ray: Ray, hit: IntersectionData, imodel: int, t_box: float) -> bool:
    """Walk the ray through the model's voxel grid from the box entry ``t_box``.

    Traversal stops once the ray is more than two cells past the last voxel
    that produced a hit, or when it leaves the grid. Returns whether any
    triangle was hit.
    """
    model = scene.models[imodel]
    grid = scene.grids[model.grid_index]
    box = scene.meshes[model.mesh_index].bounding_box

    direction = ray.local_direction
    width = grid.voxel_width
    entry = ray.local_origin + direction * t_box
    offset = entry - box.min
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

    hit_cell: Optional[Tuple[int, ...]] = None
    while True:
        ivoxel = grid.voxel_range.start + cell[0] + cell[1] * GRID_X + cell[2] * GRID_X * GRID_Y
        if intersect_voxel_world(scene, ray, hit, ivoxel, model):
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


def compute_ray_scene_intersection(
    scene, rays: MutableSequence[Ray], hits: MutableSequence[IntersectionData]
) -> int:
    """Intersect every ray with every model, culling by bounding box first.

    For each model the rays (and their hit records alongside) are stably
    reordered in place so that those entering the model's box come first;
    only those are walked through the grid. Returns how many hit records
    hold a hit afterwards.
    """
    if len(rays) != len(hits):
        raise ValueError("rays and hits must have the same length")

    pairs = list(zip(rays, hits))
    for imodel, model in enumerate(scene.models):
        if model.grid_index < 0:
            raise ValueError(f"model {imodel} has no voxel grid; build the grids first")
        mesh = scene.meshes[model.mesh_index]

        inside = []
        outside = []
        for ray, hit in pairs:
            transform_ray_to_model(ray, model)
            t_box = bounding_box_entry(ray, model, mesh, hit)
            if t_box is None:
                outside.append((ray, hit))
            else:
                inside.append(((ray, hit), t_box))

        pairs = [pair for pair, _ in inside] + outside
        for (ray, hit), t_box in inside:
            traverse_grid(scene, ray, hit, imodel, t_box)

    rays[:] = [ray for ray, _ in pairs]
    hits[:] = [hit for _, hit in pairs]
    return sum(1 for hit in hits if hit.has_hit)