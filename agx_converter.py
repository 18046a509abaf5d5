#!/usr/bin/env python3
"""
AGX to USD Converter - Main Orchestrator Module
Converts animated geometry from AGX streams to a time-sampled USD mesh

The conversion is a single sequential pass:
1. Read the AGX header and configure the USD stage from it
2. Ingest constant parameters ONCE (static topology lands here)
3. Ingest timesteps in source order, one time code per timestep
4. Save the stage
"""

from enum import Enum

from core.decoding import (
    ShapeMismatch,
    decode_constant_indices,
    decode_custom_array,
    decode_float_tuples,
    decode_triangle_indices,
    float_arity,
)
from core.errors import AGXConversionError, ConversionError
from core.name_resolver import make_valid_attr_name, resolve_role
from core.param_data import ConversionSummary, MeshTopology, Role, StageSettings, TypeTag
from exporters.usd_exporter import ATTRIBUTE0_NAME, TEXCOORD_NAME, USDExporter
from readers import create_reader

# Primvar names written by role setters; custom arrays never take them over
RESERVED_PRIMVAR_NAMES = (ATTRIBUTE0_NAME, TEXCOORD_NAME)


class ConversionState(Enum):
    """Run state of a single conversion"""
    UNINITIALIZED = "uninitialized"
    HEADER_READ = "header_read"
    STAGE_CONFIGURED = "stage_configured"
    CONSTANTS_INGESTED = "constants_ingested"
    TIMESTEP_BEGIN = "timestep_begin"
    TIMESTEP_PARAMS_INGESTED = "timestep_params_ingested"
    SAVED = "saved"
    FAILED = "failed"


class AGXToUSDConverter:
    """AGX to USD converter (orchestrator)

    Coordinates one reader and one USDExporter per run. Any read, header or
    stage error aborts the run, removes partial output and propagates as an
    AGXConversionError subclass. Parameters whose type does not fit their
    role are skipped with a log line and do not fail the run.
    """

    def __init__(self, progress_callback=None, settings=None, emit_custom_primvars=False, quiet=False):
        """Initialize converter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
            settings: StageSettings for the output stage (default: Y-up, 24 fps)
            emit_custom_primvars: Also write unrecognized arrays as vertex primvars
            quiet: If True, messages only go to the callback
        """
        self.progress_callback = progress_callback
        self.settings = settings or StageSettings()
        self.emit_custom_primvars = emit_custom_primvars
        self.quiet = quiet
        self.state = ConversionState.UNINITIALIZED
        self.constants = {}
        self.summary = ConversionSummary()

    def log(self, message):
        """Send progress updates to callback"""
        if self.progress_callback:
            self.progress_callback(message)
        if not self.quiet:
            print(message)

    def _advance(self, state):
        self.state = state

    # === ENTRY POINTS ===

    def convert(self, input_file, output_file):
        """Convert an AGX file to USD

        Args:
            input_file: Path to the AGX file
            output_file: Path to the USD file to create

        Returns:
            dict: Results with keys 'success', 'usd_file', 'time_range',
                  'time_steps', 'summary' and 'message'

        Raises:
            SourceOpenError: If the input cannot be opened
            ConversionError: On header, stage creation or stream read failure
        """
        self.log(f"Input:  {input_file}")
        self.log(f"Output: {output_file}\n")

        with create_reader(input_file) as reader:
            return self.convert_reader(reader, output_file)

    def convert_reader(self, reader, output_file):
        """Run the conversion on an already opened reader

        The reader is not closed here; the caller owns it.
        """
        self.state = ConversionState.UNINITIALIZED
        self.constants = {}
        self.summary = ConversionSummary()
        exporter = USDExporter(self.progress_callback, self.settings, self.quiet)

        try:
            header = reader.read_header()
            self._advance(ConversionState.HEADER_READ)
            self._log_header(reader, header)

            exporter.create_stage(output_file, header)
            self._advance(ConversionState.STAGE_CONFIGURED)

            self.ingest_constants(reader, exporter)
            self._advance(ConversionState.CONSTANTS_INGESTED)

            self.ingest_time_steps(reader, exporter)

            exporter.save()
            self._advance(ConversionState.SAVED)
        except AGXConversionError as e:
            self._advance(ConversionState.FAILED)
            self.log(f"ERROR: {e}")
            exporter.discard()
            raise
        except Exception as e:
            self._advance(ConversionState.FAILED)
            self.log(f"ERROR: {e}")
            exporter.discard()
            raise ConversionError(f"Conversion failed: {e}") from e

        output_path = exporter.output_file
        exporter.close()

        time_range = (0.0, header.end_time_code)
        self.log("Conversion complete!")
        self.log(f"Time range: {time_range[0]:g} to {time_range[1]:g}")
        if self.summary.skipped:
            self.log(f"Skipped parameters: {self.summary.skipped}")

        return {
            'success': True,
            'usd_file': str(output_path),
            'time_range': time_range,
            'time_steps': self.summary.time_steps,
            'summary': self.summary,
            'message': f"Converted {self.summary.time_steps} time steps to {output_path}",
        }

    def _log_header(self, reader, header):
        self.log("AGX File Info:")
        self.log(f"  Format: {reader.get_format_name()}")
        self.log(f"  Version: {header.version}")
        self.log(f"  Time Steps: {header.time_steps}")
        self.log(f"  Constants: {header.constant_param_count}")
        self.log(f"  Object Type: {header.object_type}")
        subtype = reader.get_subtype()
        if subtype:
            self.log(f"  Subtype: {subtype}")

    def _skip(self, role, reason):
        self.summary.skipped += 1
        self.log(f"  -> Skipping {role.value}: {reason}")

    # === CONSTANT PARAMETERS ===

    def ingest_constants(self, reader, exporter):
        """Read every constant once; set constant topology when present

        Array constants are copied into self.constants (name -> bytes) since
        their views are invalidated by the next read.
        """
        self.log("\nReading constant parameters...")

        for view in reader.iter_constants():
            self.summary.constants += 1
            self.log(f"  {view.name} ({view.describe()})")
            if not view.is_array:
                continue

            self.constants[view.name] = view.copy_data()
            role = resolve_role(view.name)

            if role is Role.INDEX:
                self._ingest_constant_indices(view, exporter)
            elif self.emit_custom_primvars and role is Role.CUSTOM:
                self._emit_custom(view, exporter, time=None)

    def _ingest_constant_indices(self, view, exporter):
        try:
            indices = decode_constant_indices(view)
        except ShapeMismatch as e:
            self._skip(Role.INDEX, e)
            return

        exporter.set_face_vertex_indices(indices)

        # Assume an all-triangle mesh when the indices allow it
        topology = MeshTopology.triangles(indices)
        if topology.is_consistent():
            exporter.set_face_vertex_counts(topology.face_vertex_counts)
            self.log(f"    -> Set as mesh topology ({len(topology.face_vertex_counts)} triangles)")

    # === TIMESTEPS ===

    def ingest_time_steps(self, reader, exporter):
        """Write every timestep's parameters at time code = step index"""
        self.log("\nProcessing time steps...")
        reader.reset_time_steps()

        while True:
            step = reader.begin_next_time_step()
            if step is None:
                break
            self._advance(ConversionState.TIMESTEP_BEGIN)
            self.summary.time_steps += 1
            self.log(f"Time step {step.step_index} ({step.param_count} parameters)")

            time = step.time_code
            for view in reader.iter_time_step_params():
                self.summary.parameters += 1
                self._ingest_param(view, time, exporter)
            self._advance(ConversionState.TIMESTEP_PARAMS_INGESTED)

    def _ingest_param(self, view, time, exporter):
        role = resolve_role(view.name)
        try:
            if role is Role.POSITION:
                points = decode_float_tuples(view, 3)
                exporter.set_points(points, time)
                self.log(f"  -> Set {len(points)} vertex positions at time {time:g}")

            elif role is Role.NORMAL:
                normals = decode_float_tuples(view, 3)
                exporter.set_normals(normals, time)
                self.log(f"  -> Set {len(normals)} normals at time {time:g}")

            elif role is Role.ATTRIBUTE0:
                self._ingest_attribute0(view, time, exporter)

            elif role is Role.TEXCOORD:
                uvs = decode_float_tuples(view, 2)
                exporter.set_texcoords(uvs, time)
                self.log(f"  -> Set {len(uvs)} UVs at time {time:g}")

            elif role is Role.INDEX:
                indices = decode_triangle_indices(view)
                exporter.set_topology(MeshTopology.triangles(indices), time)
                self.log(f"  -> Set mesh topology ({view.element_count} triangles) at time {time:g}")

            elif role is Role.TIME:
                if not view.is_array and view.element_type is TypeTag.UNKNOWN:
                    self.log("  -> Time value parameter")

            elif role is Role.CUSTOM:
                if view.is_array:
                    self.log(f"  -> Custom array: {view.name} "
                             f"(type={view.element_type.to_string()}, count={view.element_count})")
                    if view.name not in self.summary.custom_arrays:
                        self.summary.custom_arrays.append(view.name)
                    if self.emit_custom_primvars:
                        self._emit_custom(view, exporter, time)

        except ShapeMismatch as e:
            self._skip(role, e)

    def _ingest_attribute0(self, view, time, exporter):
        arity = float_arity(view)
        values = decode_float_tuples(view, arity)
        kind = "scalar" if arity == 1 else f"vec{arity}"
        if not exporter.set_attribute0(values, time):
            raise ShapeMismatch(
                f"attribute0 is {kind} at time {time:g} but was declared as "
                f"{exporter.declared_primvar_type('attribute0')}"
            )
        self.log(f"  -> Set {kind} attribute0 ({len(values)} values) at time {time:g}")

    def _emit_custom(self, view, exporter, time):
        attr_name = make_valid_attr_name(view.name)
        if attr_name in RESERVED_PRIMVAR_NAMES:
            attr_name = f"custom_{attr_name}"
        try:
            values = decode_custom_array(view)
        except ShapeMismatch as e:
            self.log(f"    -> Not written as primvar: {e}")
            return
        if exporter.set_vertex_primvar(attr_name, values, time):
            when = "constant" if time is None else f"at time {time:g}"
            self.log(f"    -> Written as primvar '{attr_name}' ({when})")
        else:
            self.log(f"    -> Not written as primvar: '{attr_name}' changed type")
