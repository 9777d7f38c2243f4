import numpy as np
import pytest

from voxtrace.primitives import (
    BASE_MODEL_SCALE,
    GRID_X,
    GRID_Y,
    GRID_Z,
    BoundingBox,
    EntityType,
    Material,
    MaterialType,
)
from voxtrace.scene import (
    ObjFormatError,
    Scene,
    compute_voxel_range,
    default_scene,
    load_obj,
)

TETRA_OBJ = """\
# tetrahedron
v 0 0 0
v 1 0 0
v 0 1 0
v 0 0 1
vn 0 0 1
f 1//1 2//1 3//1
f 1//1 2//1 4//1
f 1//1 3//1 4//1
f 2//1 3//1 4//1
"""


def _write(tmp_path, name, text=TETRA_OBJ):
    path = tmp_path / name
    path.write_text(text)
    return path


def _tetra_scene(tmp_path):
    scene = Scene()
    scene.add_mesh_from_file(_write(tmp_path, "tetra.obj"))
    return scene


def test_load_obj_scales_and_dedupes(tmp_path):
    positions, normals, faces = load_obj(_write(tmp_path, "t.obj"), 2.0)
    assert positions.shape == (4, 3)
    assert faces.shape == (4, 3)
    assert np.allclose(positions.max(axis=0), [2.0, 2.0, 2.0])
    assert np.allclose(normals[0], [0.0, 0.0, 2.0])


def test_load_obj_negative_indices(tmp_path):
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 1\nf -3//-1 -2//-1 -1//-1\n"
    positions, _, faces = load_obj(_write(tmp_path, "n.obj", text), 1.0)
    assert faces.tolist() == [[0, 1, 2]]
    assert np.allclose(positions[faces[0][1]], [1.0, 0.0, 0.0])


def test_load_obj_rejects_quads(tmp_path):
    text = "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\nvn 0 0 1\nf 1//1 2//1 3//1 4//1\n"
    with pytest.raises(ObjFormatError):
        load_obj(_write(tmp_path, "q.obj", text), 1.0)


def test_load_obj_requires_normals(tmp_path):
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n"
    with pytest.raises(ObjFormatError):
        load_obj(_write(tmp_path, "nn.obj", text), 1.0)


def test_load_obj_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_obj(tmp_path / "absent.obj", 1.0)


def test_add_mesh_offsets_indices_and_bounds(tmp_path):
    scene = _tetra_scene(tmp_path)
    second = scene.add_mesh_from_file(_write(tmp_path, "b.obj"))
    assert second == 1
    mesh = scene.meshes[1]
    assert mesh.vertex_range.start == 4
    assert len(mesh.triangle_range) == 4
    for itri in mesh.triangle_range:
        assert all(i in mesh.vertex_range for i in scene.triangles[itri].vertex_indices)
    assert np.allclose(mesh.bounding_box.max, [BASE_MODEL_SCALE] * 3)
    assert np.allclose(mesh.bounding_box.min, [0.0, 0.0, 0.0])


def test_add_mesh_rejects_bad_face():
    with pytest.raises(IndexError):
        Scene().add_mesh([[0, 0, 0]], [[0, 0, 1]], [[0, 0, 5]])


def test_add_model_checks_mesh_index(tmp_path):
    scene = _tetra_scene(tmp_path)
    with pytest.raises(IndexError):
        scene.add_model(3, np.identity(4), Material())
    index = scene.add_model(0, np.identity(4), Material(material_type=MaterialType.METAL))
    assert index == 0
    assert scene.models[0].material.material_type is MaterialType.METAL


def test_compute_voxel_range_and_clamping():
    box = BoundingBox()
    box.update((0.0, 0.0, 0.0))
    box.update((25.0, 25.0, 25.0))
    low, high = compute_voxel_range(box, (1.0, 1.0, 1.0), [(0.5, 0.5, 0.5), (2.5, 0.5, 0.5), (0.5, 2.5, 0.5)])
    assert low == (0, 0, 0)
    assert high == (2, 2, 0)
    _, far = compute_voxel_range(box, (1.0, 1.0, 1.0), [(0, 0, 0), (100, 0, 0), (0, 100, 0)])
    assert far[0] == GRID_X - 1
    assert far[1] == GRID_Y - 1


def test_build_grids_shares_grid_per_mesh(tmp_path):
    scene = _tetra_scene(tmp_path)
    scene.add_mesh_from_file(_write(tmp_path, "b.obj"))
    scene.add_model(0, np.identity(4), Material())
    scene.add_model(1, np.identity(4), Material())
    scene.add_model(0, np.identity(4), Material())
    scene.build_grids()

    assert len(scene.grids) == 2
    assert [m.grid_index for m in scene.models] == [0, 1, 0]
    assert scene.grids[1].entity_index == 1
    assert scene.grids[1].voxel_range.start == scene.grids[0].voxel_range.end
    assert len(scene.voxels) == 2 * GRID_X * GRID_Y * GRID_Z


def test_build_grids_voxel_contents(tmp_path):
    scene = _tetra_scene(tmp_path)
    scene.add_model(0, np.identity(4), Material())
    scene.build_grids()
    grid = scene.grids[0]
    mesh = scene.meshes[0]

    assert grid.entity_type is EntityType.MODEL
    assert np.allclose(grid.voxel_width * np.array([GRID_X, GRID_Y, GRID_Z]), mesh.bounding_box.extent)

    origin_voxel = scene.voxels[grid.voxel_range.start]
    contents = scene.voxel_entities[origin_voxel.entity_range.start:origin_voxel.entity_range.end]
    assert sorted(contents) == list(mesh.triangle_range)

    seen = set()
    for voxel in scene.voxels[grid.voxel_range.start:grid.voxel_range.end]:
        assert voxel.entity_type is EntityType.TRIANGLE
        seen.update(scene.voxel_entities[voxel.entity_range.start:voxel.entity_range.end])
    assert seen == set(mesh.triangle_range)


def test_build_grids_is_repeatable(tmp_path):
    scene = _tetra_scene(tmp_path)
    scene.add_model(0, np.identity(4), Material())
    scene.build_grids()
    first = len(scene.voxel_entities)
    scene.build_grids()
    assert len(scene.voxel_entities) == first
    assert len(scene.grids) == 1


def test_default_scene(tmp_path):
    for name in ("enclosing_box.obj", "ceiling_light.obj", "blender_monkey.obj"):
        _write(tmp_path, name)
    scene = default_scene(tmp_path)

    assert len(scene.meshes) == 3
    assert len(scene.models) == 11
    assert len(scene.grids) == 3
    assert [m.mesh_index for m in scene.models[:4]] == [2, 2, 2, 0]
    emissive = [m for m in scene.models if m.material.material_type is MaterialType.EMISSIVE]
    assert len(emissive) == 4
    for model in scene.models:
        assert np.allclose(model.model_to_world @ model.world_to_model, np.identity(4))
        assert scene.grids[model.grid_index].voxel_range.end > scene.grids[model.grid_index].voxel_range.start


def test_default_scene_missing_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        default_scene(tmp_path)