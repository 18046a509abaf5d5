"""End-to-end and ingestion tests for the AGX to USD converter."""

import numpy as np
import pytest
from pxr import Sdf, Usd, UsdGeom

from agx_converter import AGXToUSDConverter, ConversionState
from conftest import QUAD_INDICES, QUAD_POINTS, encode_agx, param
from core.errors import ConversionError, DocumentCreateError, HeaderReadError, SourceOpenError, StreamReadError
from core.param_data import TypeTag
from readers import MemoryReader

SHIFTED_POINTS = QUAD_POINTS + np.float32([0.0, 1.0, 0.0])


def open_mesh(path):
    stage = Usd.Stage.Open(str(path))
    return stage, UsdGeom.Mesh(stage.GetPrimAtPath("/Geometry/mesh"))


def convert_memory(tmp_path, constants=(), time_steps=(), name="out.usda", **kwargs):
    messages = []
    converter = AGXToUSDConverter(progress_callback=messages.append, quiet=True, **kwargs)
    reader = MemoryReader(constants, time_steps)
    result = converter.convert_reader(reader, tmp_path / name)
    return converter, result, messages


def test_end_to_end_quad(tmp_path, quad_agx):
    output = tmp_path / "quad.usdc"
    converter = AGXToUSDConverter(quiet=True)

    result = converter.convert(quad_agx, output)

    assert result['success']
    assert result['time_range'] == (0.0, 1.0)
    assert converter.state is ConversionState.SAVED

    stage, mesh = open_mesh(output)
    assert (stage.GetStartTimeCode(), stage.GetEndTimeCode()) == (0.0, 1.0)
    assert list(mesh.GetFaceVertexIndicesAttr().Get()) == QUAD_INDICES
    assert list(mesh.GetFaceVertexCountsAttr().Get()) == [3, 3]
    assert mesh.GetFaceVertexIndicesAttr().GetTimeSamples() == []

    points = mesh.GetPointsAttr()
    assert points.GetTimeSamples() == [0.0, 1.0]
    assert np.array_equal(np.array(points.Get(0.0)), QUAD_POINTS)
    assert np.array_equal(np.array(points.Get(1.0)), SHIFTED_POINTS)


def test_points_match_input_bytes(tmp_path):
    points = np.random.default_rng(7).random((25, 3), dtype=np.float32)
    convert_memory(tmp_path, time_steps=[[param("vertex.position", TypeTag.FLOAT32_VEC3, points)]],
                   name="out.usdc")

    _, mesh = open_mesh(tmp_path / "out.usdc")
    written = np.array(mesh.GetPointsAttr().Get(0.0), dtype=np.float32)
    assert written.shape == (25, 3)
    assert written.tobytes() == points.tobytes()


def test_time_codes_follow_step_index(tmp_path):
    steps = [[param("positions", TypeTag.FLOAT32_VEC3, QUAD_POINTS * i)] for i in range(3)]
    convert_memory(tmp_path, time_steps=steps)

    stage, mesh = open_mesh(tmp_path / "out.usda")
    assert mesh.GetPointsAttr().GetTimeSamples() == [0.0, 1.0, 2.0]
    assert (stage.GetStartTimeCode(), stage.GetEndTimeCode()) == (0.0, 2.0)
    assert np.array_equal(np.array(mesh.GetPointsAttr().Get(2.0)), QUAD_POINTS * 2)


def test_position_synonyms_have_same_effect(tmp_path):
    for name in ("vertex.positions", "position"):
        convert_memory(tmp_path, time_steps=[[param(name, TypeTag.FLOAT32_VEC3, QUAD_POINTS)]],
                       name=f"{name}.usda")

    first_stage, first = open_mesh(tmp_path / "vertex.positions.usda")
    second_stage, second = open_mesh(tmp_path / "position.usda")
    assert np.array_equal(np.array(first.GetPointsAttr().Get(0.0)),
                          np.array(second.GetPointsAttr().Get(0.0)))


def test_position_with_wrong_type_is_skipped(tmp_path):
    steps = [[param("position", TypeTag.FLOAT32_VEC2, [[0, 0], [1, 1]])]]
    converter, result, messages = convert_memory(tmp_path, time_steps=steps)

    assert result['success']
    assert converter.summary.skipped == 1
    assert any("Skipping position" in m for m in messages)
    _, mesh = open_mesh(tmp_path / "out.usda")
    assert not mesh.GetPointsAttr().HasAuthoredValue()


def test_conversion_is_idempotent(tmp_path, quad_agx):
    AGXToUSDConverter(quiet=True).convert(quad_agx, tmp_path / "a.usda")
    AGXToUSDConverter(quiet=True).convert(quad_agx, tmp_path / "b.usda")

    stage_a, mesh_a = open_mesh(tmp_path / "a.usda")
    stage_b, mesh_b = open_mesh(tmp_path / "b.usda")
    assert stage_a.GetEndTimeCode() == stage_b.GetEndTimeCode()
    for attr in ("GetPointsAttr", "GetFaceVertexIndicesAttr", "GetFaceVertexCountsAttr"):
        a, b = getattr(mesh_a, attr)(), getattr(mesh_b, attr)()
        assert a.GetTimeSamples() == b.GetTimeSamples()
        assert np.array_equal(np.array(a.Get(0.0)), np.array(b.Get(0.0)))


def test_constant_vec3_indices(tmp_path):
    constants = [param("indices", TypeTag.UINT32_VEC3, [[0, 1, 2], [1, 2, 3]])]
    convert_memory(tmp_path, constants=constants)

    _, mesh = open_mesh(tmp_path / "out.usda")
    assert list(mesh.GetFaceVertexIndicesAttr().Get()) == QUAD_INDICES
    assert list(mesh.GetFaceVertexCountsAttr().Get()) == [3, 3]


def test_constant_indices_not_divisible_by_three(tmp_path):
    constants = [param("index", TypeTag.UINT32, [0, 1, 2, 3])]
    convert_memory(tmp_path, constants=constants)

    _, mesh = open_mesh(tmp_path / "out.usda")
    assert list(mesh.GetFaceVertexIndicesAttr().Get()) == [0, 1, 2, 3]
    assert not mesh.GetFaceVertexCountsAttr().HasAuthoredValue()


def test_constants_are_cached_by_name(tmp_path, quad_constants):
    constants = quad_constants + [param("vertex.color", TypeTag.FLOAT32_VEC3, QUAD_POINTS)]
    converter, _, _ = convert_memory(tmp_path, constants=constants)

    assert set(converter.constants) == {"primitive.index", "vertex.color"}
    assert converter.constants["vertex.color"] == QUAD_POINTS.tobytes()
    assert converter.summary.constants == 2


def test_per_step_topology(tmp_path, quad_constants):
    steps = [
        [param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS)],
        [param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS),
         param("primitive.index", TypeTag.UINT32_VEC3, [[0, 1, 3]])],
    ]
    convert_memory(tmp_path, constants=quad_constants, time_steps=steps)

    _, mesh = open_mesh(tmp_path / "out.usda")
    indices = mesh.GetFaceVertexIndicesAttr()
    counts = mesh.GetFaceVertexCountsAttr()
    assert list(indices.Get(Usd.TimeCode.Default())) == QUAD_INDICES
    assert indices.GetTimeSamples() == [1.0]
    assert list(indices.Get(1.0)) == [0, 1, 3]
    assert list(counts.Get(1.0)) == [3]


def test_normals_texcoords_and_attribute0(tmp_path):
    normals = np.tile(np.float32([0, 0, 1]), (4, 1))
    uvs = np.float32([[0, 0], [1, 0], [0, 1], [1, 1]])
    steps = [[
        param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS),
        param("vertex.normal", TypeTag.FLOAT32_VEC3, normals),
        param("uv", TypeTag.FLOAT32_VEC2, uvs),
        param("vertex.attribute0", TypeTag.FLOAT32_VEC4, np.ones((4, 4))),
    ]]
    convert_memory(tmp_path, time_steps=steps)

    _, mesh = open_mesh(tmp_path / "out.usda")
    primvars = UsdGeom.PrimvarsAPI(mesh)
    assert mesh.GetNormalsInterpolation() == UsdGeom.Tokens.vertex
    assert np.array_equal(np.array(mesh.GetNormalsAttr().Get(0.0)), normals)
    assert np.array_equal(np.array(primvars.GetPrimvar("st").Get(0.0)), uvs)
    assert primvars.GetPrimvar("attribute0").GetTypeName() == Sdf.ValueTypeNames.Float4Array


def test_attribute0_arity_change_keeps_first_declaration(tmp_path):
    steps = [
        [param("attribute0", TypeTag.FLOAT32, [0.0, 0.5, 1.0, 0.25])],
        [param("attribute0", TypeTag.FLOAT32_VEC3, np.zeros((4, 3)))],
        [param("attribute0", TypeTag.FLOAT32, [1.0, 1.0, 1.0, 1.0])],
    ]
    converter, result, _ = convert_memory(tmp_path, time_steps=steps)

    assert result['success']
    assert converter.summary.skipped == 1
    _, mesh = open_mesh(tmp_path / "out.usda")
    primvar = UsdGeom.PrimvarsAPI(mesh).GetPrimvar("attribute0")
    assert primvar.GetTypeName() == Sdf.ValueTypeNames.FloatArray
    assert primvar.GetAttr().GetTimeSamples() == [0.0, 2.0]


def test_duplicate_names_last_write_wins(tmp_path):
    steps = [[
        param("position", TypeTag.FLOAT32_VEC3, QUAD_POINTS),
        param("positions", TypeTag.FLOAT32_VEC3, SHIFTED_POINTS),
    ]]
    convert_memory(tmp_path, time_steps=steps)

    _, mesh = open_mesh(tmp_path / "out.usda")
    assert np.array_equal(np.array(mesh.GetPointsAttr().Get(0.0)), SHIFTED_POINTS)


def test_time_and_custom_params_have_no_output(tmp_path):
    steps = [[
        param("time", TypeTag.UNKNOWN, is_array=False),
        param("vertex.color", TypeTag.FLOAT32_VEC3, QUAD_POINTS),
    ]]
    converter, _, messages = convert_memory(tmp_path, time_steps=steps)

    assert converter.summary.custom_arrays == ["vertex.color"]
    assert any("Custom array: vertex.color" in m for m in messages)
    _, mesh = open_mesh(tmp_path / "out.usda")
    assert not UsdGeom.PrimvarsAPI(mesh).HasPrimvar("vertex_color")


def test_custom_primvars_option(tmp_path):
    constants = [param("vertex.weight", TypeTag.FLOAT32, [0.1, 0.2, 0.3, 0.4])]
    steps = [[param("vertex.color", TypeTag.FLOAT32_VEC3, QUAD_POINTS)]]
    convert_memory(tmp_path, constants=constants, time_steps=steps, emit_custom_primvars=True)

    _, mesh = open_mesh(tmp_path / "out.usda")
    primvars = UsdGeom.PrimvarsAPI(mesh)
    weight = primvars.GetPrimvar("vertex_weight")
    color = primvars.GetPrimvar("vertex_color")
    assert weight.GetAttr().GetTimeSamples() == []
    assert len(weight.Get()) == 4
    assert color.GetTypeName() == Sdf.ValueTypeNames.Float3Array
    assert color.GetAttr().GetTimeSamples() == [0.0]


def test_missing_input_is_open_error(tmp_path):
    with pytest.raises(SourceOpenError):
        AGXToUSDConverter(quiet=True).convert(tmp_path / "missing.agx", tmp_path / "out.usda")


def test_bad_header_fails_without_output(tmp_path):
    path = tmp_path / "bad.agx"
    path.write_bytes(b"NOPE" + encode_agx()[4:])
    converter = AGXToUSDConverter(quiet=True)

    with pytest.raises(HeaderReadError):
        converter.convert(path, tmp_path / "out.usda")
    assert converter.state is ConversionState.FAILED
    assert not (tmp_path / "out.usda").exists()


def test_truncated_time_step_fails_and_removes_output(tmp_path, quad_constants, quad_steps):
    image = encode_agx(quad_constants, quad_steps)
    path = tmp_path / "truncated.agx"
    path.write_bytes(image[:-8])
    output = tmp_path / "out.usda"
    converter = AGXToUSDConverter(quiet=True)

    with pytest.raises(StreamReadError) as excinfo:
        converter.convert(path, output)
    assert isinstance(excinfo.value, ConversionError)
    assert converter.state is ConversionState.FAILED
    assert not output.exists()


def test_bad_output_path_is_document_error(tmp_path, quad_agx):
    with pytest.raises(DocumentCreateError):
        AGXToUSDConverter(quiet=True).convert(quad_agx, tmp_path / "out.txt")


def test_progress_log(tmp_path, quad_agx):
    messages = []
    AGXToUSDConverter(progress_callback=messages.append, quiet=True).convert(quad_agx, tmp_path / "log.usda")

    assert "  Time Steps: 2" in messages
    assert "  Subtype: triangle" in messages
    assert "    -> Set as mesh topology (2 triangles)" in messages
    assert "Time step 1 (1 parameters)" in messages
    assert "  -> Set 4 vertex positions at time 1" in messages
    assert "Time range: 0 to 1" in messages


def test_failed_run_keeps_previous_output(tmp_path, quad_agx, quad_constants, quad_steps):
    output = tmp_path / "keep.usda"
    AGXToUSDConverter(quiet=True).convert(quad_agx, output)
    before = output.read_bytes()

    truncated = tmp_path / "truncated.agx"
    truncated.write_bytes(encode_agx(quad_constants, quad_steps)[:-8])
    with pytest.raises(StreamReadError):
        AGXToUSDConverter(quiet=True).convert(truncated, output)

    assert output.read_bytes() == before
    assert sorted(p.name for p in tmp_path.iterdir()) == ["keep.usda", "quad.agx", "truncated.agx"]


def test_vec3_indices_with_leftover_bytes_get_no_counts(tmp_path):
    constants = [param("indices", TypeTag.UINT32_VEC3, [0, 1, 2, 3])]
    assert constants[0].element_count == 1 and len(constants[0].payload) == 16
    _, _, messages = convert_memory(tmp_path, constants=constants)

    _, mesh = open_mesh(tmp_path / "out.usda")
    assert list(mesh.GetFaceVertexIndicesAttr().Get()) == [0, 1, 2, 3]
    assert not mesh.GetFaceVertexCountsAttr().HasAuthoredValue()
    assert not any("Set as mesh topology" in m for m in messages)


def test_time_message_only_for_untyped_scalar(tmp_path):
    _, _, untyped = convert_memory(tmp_path, time_steps=[[param("time", TypeTag.UNKNOWN, is_array=False)]],
                                   name="untyped.usda")
    _, _, typed = convert_memory(tmp_path, time_steps=[[param("time", TypeTag.FLOAT32, 0.5, is_array=False)]],
                                 name="typed.usda")

    assert "  -> Time value parameter" in untyped
    assert "  -> Time value parameter" not in typed


def test_custom_primvar_does_not_take_over_texcoords(tmp_path):
    uvs = np.float32([[0, 0], [1, 0], [0, 1], [1, 1]])
    steps = [[
        param("st", TypeTag.FLOAT32, [0.1, 0.2, 0.3, 0.4]),
        param("uv", TypeTag.FLOAT32_VEC2, uvs),
    ]]
    converter, _, _ = convert_memory(tmp_path, time_steps=steps, emit_custom_primvars=True)

    assert converter.summary.skipped == 0
    _, mesh = open_mesh(tmp_path / "out.usda")
    primvars = UsdGeom.PrimvarsAPI(mesh)
    assert primvars.GetPrimvar("st").GetTypeName() == Sdf.ValueTypeNames.TexCoord2fArray
    assert np.array_equal(np.array(primvars.GetPrimvar("st").Get(0.0)), uvs)
    assert primvars.GetPrimvar("custom_st").GetTypeName() == Sdf.ValueTypeNames.FloatArray


def test_header_log_names_format_and_subtype(tmp_path):
    messages = []
    reader = MemoryReader(subtype="quad")
    AGXToUSDConverter(progress_callback=messages.append, quiet=True).convert_reader(reader, tmp_path / "h.usda")

    assert "  Format: AGX (memory)" in messages
    assert "  Subtype: quad" in messages
