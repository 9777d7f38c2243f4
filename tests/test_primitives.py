import numpy as np
import pytest

from voxtrace.primitives import (
    FLOAT_MAX,
    FLOAT_MIN,
    BoundingBox,
    EntityType,
    Grid,
    IndexRange,
    IntersectionData,
    Material,
    MaterialType,
    Mesh,
    Model,
    Ray,
    Triangle,
    Vertex,
    Voxel,
)


def test_empty_bounding_box_uses_float_limits():
    box = BoundingBox()
    assert np.allclose(box.min, [9999999.0, 9999999.0, 9999999.0])
    assert np.allclose(box.max, [-9999990.0, -9999990.0, -9999990.0])
    box.update((1.5, -2.5, 3.5))
    assert np.allclose(box.min, [1.5, -2.5, 3.5])
    assert np.allclose(box.max, [1.5, -2.5, 3.5])


def test_bounding_box_update_contains_all_points():
    points = [(1.0, -2.0, 3.0), (-4.0, 5.0, 0.5), (2.0, 2.0, -7.0)]
    box = BoundingBox()
    for p in points:
        box.update(p)
    arr = np.array(points)
    assert np.allclose(box.min, arr.min(axis=0))
    assert np.allclose(box.max, arr.max(axis=0))
    assert np.allclose(box.extent, arr.max(axis=0) - arr.min(axis=0))


def test_bounding_box_single_point_is_degenerate():
    box = BoundingBox()
    box.update((3.0, 4.0, 5.0))
    assert np.array_equal(box.min, box.max)


def test_bounding_box_rejects_bad_vector():
    with pytest.raises(ValueError):
        BoundingBox().update((1.0, 2.0))


def test_index_range_len_and_iteration():
    rng = IndexRange(3, 7)
    assert len(rng) == 4
    assert list(rng) == [3, 4, 5, 6]
    assert len(IndexRange(5, 2)) == 0


def test_triangle_requires_three_indices():
    assert Triangle((0, 1, 2)).vertex_indices == (0, 1, 2)
    with pytest.raises(ValueError):
        Triangle((0, 1))


def test_vertex_copies_inputs():
    pos = [1.0, 2.0, 3.0]
    v = Vertex(pos, (0.0, 1.0, 0.0))
    pos[0] = 99.0
    assert v.position[0] == 1.0
    assert np.array_equal(v.uv, np.zeros(2))


def test_model_inverse_matrix():
    m = np.identity(4)
    m[0, 0] = 2.0
    m[:3, 3] = (5.0, -3.0, 1.0)
    model = Model(mesh_index=1, model_to_world=m)
    assert np.allclose(model.model_to_world @ model.world_to_model, np.identity(4))
    assert model.grid_index == -1


def test_material_type_order_matches_source():
    expected = [
        "DIFFUSE", "SPECULAR", "REFLECTIVE", "REFRACTIVE", "EMISSIVE", "COAT", "METAL",
    ]
    materials = [Material(MaterialType[name]) for name in expected]
    assert [m.material_type.name for m in materials] == expected
    assert [t.name for t in MaterialType] == expected
    assert [t.name for t in EntityType] == ["MODEL", "SCENE", "TRIANGLE", "SPHERE"]


def test_intersection_default_is_miss():
    hit = IntersectionData()
    assert hit.impact_distance == FLOAT_MAX
    assert hit.has_hit is False
    hit.impact_distance = 10.0
    assert hit.has_hit is True


def test_ray_defaults_to_white():
    ray = Ray(origin=(0.0, 0.0, 1.0), direction=(0.0, 0.0, -1.0))
    assert np.array_equal(ray.color, np.ones(3))
    assert ray.remaining_bounces == 0
    assert np.array_equal(ray.direction, np.array([0.0, 0.0, -1.0]))


def test_containers_defaults():
    voxel = Voxel()
    assert voxel.entity_type is EntityType.TRIANGLE
    assert len(voxel.entity_range) == 0
    grid = Grid(voxel_width=(1.0, 2.0, 3.0))
    assert grid.entity_type is EntityType.MODEL
    assert np.array_equal(grid.voxel_width, np.array([1.0, 2.0, 3.0]))
    mesh = Mesh()
    assert np.all(mesh.bounding_box.min == FLOAT_MAX)
    assert np.all(mesh.bounding_box.max == FLOAT_MIN)
    mat = Material(MaterialType.METAL, color=(0.5, 0.5, 0.5))
    assert mat.material_type is MaterialType.METAL
    assert np.allclose(mat.color, 0.5)