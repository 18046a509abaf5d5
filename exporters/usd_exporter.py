#!/usr/bin/env python3
"""
USD Exporter Module
Builds a time-sampled USD mesh (.usdc binary or .usda text) one value at a time

The converter drives this exporter with one setter call per (role, time code)
pair. Every setter accepts `time=None` for a time-invariant (default) value.
Setting the same attribute twice at the same time code keeps the last value.
"""

import os

from .base_exporter import BaseExporter
from core.errors import ConversionError, DocumentCreateError
from core.param_data import MeshTopology, StageSettings

ATTRIBUTE0_NAME = "attribute0"
TEXCOORD_NAME = "st"


class USDExporter(BaseExporter):
    """USD mesh builder with time-sampled attributes

    Creates a stage holding a single root Xform (the default prim) and one
    UsdGeom.Mesh below it, then exposes role-specific setters for points,
    normals, topology and vertex primvars.

    Primvar types are fixed by the first value written: a later value of a
    different type for the same primvar is rejected (the setter returns False).
    """

    def __init__(self, progress_callback=None, settings=None, quiet=False):
        super().__init__(progress_callback, quiet)
        self.settings = settings or StageSettings()
        self.stage = None
        self.mesh = None
        self.output_file = None
        self._primvar_types = {}

        # Lazy import USD - only import when actually creating exporter instance
        try:
            from pxr import Usd, UsdGeom, Sdf, Vt
            self.Usd = Usd
            self.UsdGeom = UsdGeom
            self.Sdf = Sdf
            self.Vt = Vt
        except ImportError as e:
            raise ImportError(
                f"USD Python library (pxr) not found: {e}\n"
                "Install with: pip install usd-core"
            )

    def get_format_name(self):
        return "USD"

    # === STAGE LIFETIME ===

    def create_stage(self, output_file, header):
        """Create the stage, its metadata and the mesh prim

        Args:
            output_file: Path of the USD file to create (.usdc, .usda or .usd)
            header: AGXHeader; its timestep count fixes the stage time range

        Returns:
            Usd.Stage: The new stage

        Raises:
            DocumentCreateError: If the stage cannot be created
        """
        try:
            path = self.validate_output_path(output_file)
        except ValueError as e:
            raise DocumentCreateError(str(e)) from e

        if self.Sdf.FileFormat.FindByExtension(path.suffix.lstrip('.')) is None:
            raise DocumentCreateError(f"Not a USD file extension: {path.suffix or '(none)'} ({path})")

        # Authored in memory; the target file is only touched by save()
        try:
            stage = self.Usd.Stage.CreateInMemory(path.name)
        except Exception as e:
            raise DocumentCreateError(f"Failed to create USD stage {path}: {e}") from e
        if not stage:
            raise DocumentCreateError(f"Failed to create USD stage {path}")

        self.stage = stage
        self.output_file = path
        self._primvar_types = {}

        settings = self.settings
        up_axis = self.UsdGeom.Tokens.z if settings.up_axis.upper() == "Z" else self.UsdGeom.Tokens.y
        self.UsdGeom.SetStageUpAxis(stage, up_axis)
        self.UsdGeom.SetStageMetersPerUnit(stage, settings.meters_per_unit)

        # Time range is fixed here; later samples never widen it
        start_time = 0.0
        end_time = header.end_time_code
        stage.SetStartTimeCode(start_time)
        stage.SetEndTimeCode(end_time)
        stage.SetTimeCodesPerSecond(settings.fps)
        stage.SetFramesPerSecond(settings.fps)

        root_xform = self.UsdGeom.Xform.Define(stage, settings.root_path)
        stage.SetDefaultPrim(root_xform.GetPrim())
        self.mesh = self.UsdGeom.Mesh.Define(stage, settings.mesh_path)

        self.log(f"Stage setup: {path.name}, time range {start_time:g}-{end_time:g} "
                 f"@ {settings.fps:g} fps, {up_axis}-up, mesh {settings.mesh_path}")
        return stage

    def _temp_path(self):
        path = self.output_file
        return path.with_name(f".{path.stem}.partial{path.suffix}")

    def save(self):
        """Write the stage to the output path

        The layer is exported next to the target first and then moved over it,
        so an existing output file is replaced only by a complete document.

        Raises:
            ConversionError: If no stage exists or the layer cannot be written
        """
        if self.stage is None:
            raise ConversionError("No USD stage to save")
        self.log(f"\nSaving {self.get_format_name()} file to: {self.output_file}")

        temp_path = self._temp_path()
        try:
            if not self.stage.GetRootLayer().Export(str(temp_path)):
                raise ConversionError(f"Failed to save USD file: {self.output_file}")
            os.replace(temp_path, self.output_file)
        except OSError as e:
            raise ConversionError(f"Failed to save USD file: {self.output_file} ({e})") from e
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def close(self):
        """Release the stage after a successful save"""
        self.stage = None
        self.mesh = None

    def discard(self):
        """Release the stage without writing anything

        The output path keeps whatever it held before the run.
        """
        output_file = self.output_file
        self.close()
        if output_file is not None:
            self.log(f"Discarded unsaved output: {output_file}")

    # === HELPERS ===

    def _time_code(self, time):
        if time is None:
            return self.Usd.TimeCode.Default()
        return self.Usd.TimeCode(float(time))

    def _to_vt(self, values):
        """Convert a decoded numpy array to the matching Vt array type"""
        if values.dtype.kind in 'iu':
            return self.Vt.IntArray.FromNumpy(values.astype('int32'))
        arity = 1 if values.ndim == 1 else values.shape[1]
        vt_type = {
            1: self.Vt.FloatArray,
            2: self.Vt.Vec2fArray,
            3: self.Vt.Vec3fArray,
            4: self.Vt.Vec4fArray,
        }[arity]
        return vt_type.FromNumpy(values.astype('float32'))

    def _value_type_name(self, values):
        if values.dtype.kind in 'iu':
            return self.Sdf.ValueTypeNames.IntArray
        arity = 1 if values.ndim == 1 else values.shape[1]
        return {
            1: self.Sdf.ValueTypeNames.FloatArray,
            2: self.Sdf.ValueTypeNames.Float2Array,
            3: self.Sdf.ValueTypeNames.Float3Array,
            4: self.Sdf.ValueTypeNames.Float4Array,
        }[arity]

    # === ROLE SETTERS ===

    def set_points(self, points, time=None):
        """Set vertex positions (N x 3 float32) and the matching extent"""
        vt_points = self._to_vt(points)
        time_code = self._time_code(time)
        self.mesh.GetPointsAttr().Set(vt_points, time_code)

        extent = self.UsdGeom.PointBased.ComputeExtent(vt_points)
        if extent is not None:
            self.mesh.GetExtentAttr().Set(extent, time_code)

    def set_normals(self, normals, time=None):
        """Set per-vertex normals (N x 3 float32)"""
        self.mesh.GetNormalsAttr().Set(self._to_vt(normals), self._time_code(time))
        self.mesh.SetNormalsInterpolation(self.UsdGeom.Tokens.vertex)

    def set_face_vertex_indices(self, indices, time=None):
        self.mesh.GetFaceVertexIndicesAttr().Set(self._to_vt(indices), self._time_code(time))

    def set_face_vertex_counts(self, counts, time=None):
        self.mesh.GetFaceVertexCountsAttr().Set(self._to_vt(counts), self._time_code(time))

    def set_topology(self, topology: MeshTopology, time=None):
        """Set face-vertex counts and indices together"""
        self.set_face_vertex_counts(topology.face_vertex_counts, time)
        self.set_face_vertex_indices(topology.face_vertex_indices, time)

    def set_vertex_primvar(self, name, values, time=None, type_name=None):
        """Create (or reuse) a vertex-interpolated primvar and set its value

        Args:
            name: Primvar name without the "primvars:" namespace
            values: Decoded numpy array (float32 N or N x 2/3/4, or int32 N)
            time: Time code, or None for a time-invariant value
            type_name: Sdf value type (default: derived from the array shape)

        Returns:
            bool: False if the primvar was already declared with another type
        """
        if type_name is None:
            type_name = self._value_type_name(values)

        declared = self._primvar_types.get(name)
        if declared is not None and declared != type_name:
            return False

        primvars_api = self.UsdGeom.PrimvarsAPI(self.mesh)
        primvar = primvars_api.CreatePrimvar(name, type_name, self.UsdGeom.Tokens.vertex)
        primvar.Set(self._to_vt(values), self._time_code(time))
        self._primvar_types[name] = type_name
        return True

    def set_attribute0(self, values, time=None):
        """Set the generic vertex attribute (float32 scalar, vec2, vec3 or vec4)"""
        return self.set_vertex_primvar(ATTRIBUTE0_NAME, values, time)

    def set_texcoords(self, uvs, time=None):
        """Set the standard "st" texture coordinates (N x 2 float32)"""
        return self.set_vertex_primvar(TEXCOORD_NAME, uvs, time,
                                       type_name=self.Sdf.ValueTypeNames.TexCoord2fArray)

    def declared_primvar_type(self, name):
        """Sdf value type a primvar was declared with, or None"""
        return self._primvar_types.get(name)
