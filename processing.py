"""
End-to-end HCS evaluation run: validate the form, analyse the log and
write the report.
"""

import logging
import math
import os
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

import pandas as pd

from analysis import (
    CalculatedProperties, PhysicalInputs, ThermalMetrics,
    process_thermal_data,
)
from errors import HCSError, ReadError, ValidationError
from excel_io import LOG_COLUMN_INDEX, append_to_template, extract_column


logger = logging.getLogger(__name__)

REPORT_PREFIX = os.environ.get("HCS_REPORT_PREFIX", "HCS결과 요약")


@dataclass
class SampleForm:
    """Raw operator entries, as typed into the form."""
    sample_name: str = ""
    ref_temp: str = ""  # temperature at 60 s
    evaluation_date: str = ""
    remarks: str = ""
    thickness: str = ""
    weight_raw: str = ""
    width: str = ""
    length: str = ""
    heat_source_temp: str = ""
    pressure: str = ""

    # Uploaded files
    source_bytes: Optional[bytes] = None
    source_filename: str = ""
    template_bytes: Optional[bytes] = None
    template_filename: str = ""


@dataclass
class EvaluationResult:
    """Everything produced by one successful run."""
    sample_name: str
    thermal_metrics: ThermalMetrics
    physical_inputs: PhysicalInputs
    calculated_props: CalculatedProperties
    temperatures: pd.Series
    report_bytes: bytes
    filename: str


def _parse_number(text: str) -> Optional[float]:
    try:
        value = float(str(text).strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def validate_form(form: SampleForm) -> Tuple[PhysicalInputs, float]:
    """
    Check the form before any file is touched.
    Returns the physical inputs and the reference temperature.
    """
    if not form.source_bytes or not form.template_bytes:
        raise ValidationError("Please upload both the Source Log and Template files.")

    required = [
        form.sample_name, form.ref_temp, form.thickness, form.weight_raw,
        form.width, form.length, form.evaluation_date,
    ]
    if any(not str(v).strip() for v in required):
        raise ValidationError("Please fill in all sample details and parameters.")

    numbers = [
        _parse_number(v)
        for v in (form.ref_temp, form.thickness, form.weight_raw, form.width, form.length)
    ]
    if any(n is None for n in numbers):
        raise ValidationError("Please ensure numeric fields contain valid numbers.")

    ref_temp, thickness, weight_raw, width, length = numbers
    physical = PhysicalInputs(
        thickness=thickness,
        weight_raw=weight_raw,
        width=width,
        length=length,
        heat_source_temp=form.heat_source_temp,
        pressure=form.pressure,
        evaluation_date=form.evaluation_date,
        remarks=form.remarks,
    )
    return physical, ref_temp


def output_filename(today: date, prefix: str = REPORT_PREFIX) -> str:
    """Report file name, e.g. 'HCS결과 요약_261019.xlsx'."""
    return f"{prefix}_{today.strftime('%y%m%d')}.xlsx"


def read_upload(source) -> bytes:
    """Read a path or file-like upload into memory."""
    try:
        if isinstance(source, (str, os.PathLike)):
            with open(source, 'rb') as f:
                return f.read()
        if hasattr(source, 'getvalue'):
            return source.getvalue()
        source.seek(0)
        return source.read()
    except OSError as e:
        raise ReadError(f"Could not read file: {e}") from e


def run_evaluation(form: SampleForm, today: date) -> EvaluationResult:
    """
    Run the whole pipeline. Any failure aborts the run and propagates
    with its message unchanged; nothing partial is returned.
    """
    physical, ref_temp = validate_form(form)
    logger.info("Evaluating sample '%s' (reference %.2f °C at 60 s)", form.sample_name, ref_temp)

    try:
        calculated = physical.calculate()
        temperatures = extract_column(form.source_bytes, LOG_COLUMN_INDEX, form.source_filename)
        metrics = process_thermal_data(temperatures, ref_temp)
        report = append_to_template(
            form.template_bytes, form.sample_name, metrics, physical, calculated
        )
    except HCSError as e:
        logger.warning("Evaluation of '%s' failed: %s", form.sample_name, e)
        raise

    filename = output_filename(today)
    logger.info("Report ready: %s (anchor row %d)", filename, metrics.anchor_index)

    return EvaluationResult(
        sample_name=form.sample_name,
        thermal_metrics=metrics,
        physical_inputs=physical,
        calculated_props=calculated,
        temperatures=temperatures,
        report_bytes=report,
        filename=filename,
    )
