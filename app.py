"""
HCS Evaluation Analysis - Streamlit Web Application
Thermal data processing & physical properties for HCS sample reports
"""

import logging
import os
from datetime import date

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from analysis import (
    ThermalMetrics, CalculatedProperties, PhysicalInputs,
    TARGET_TEMPERATURES, SAMPLE_TIMES_S, REFERENCE_TIME_S,
    elapsed_time_axis, format_metric,
)
from errors import HCSError
from excel_io import REPORT_ROWS, build_report_column
from processing import SampleForm, EvaluationResult, read_upload, run_evaluation


logging.basicConfig(
    level=os.environ.get("HCS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger('streamlit.runtime.scriptrunner.script_run_context').setLevel(logging.ERROR)
logger = logging.getLogger(__name__)


# Page configuration
st.set_page_config(
    page_title="HCS Evaluation Analysis",
    page_icon="🌡️",
    layout="wide",
)


def init_session_state():
    """Initialize session state variables."""
    defaults = {
        'result': None,
        'error': None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def create_temperature_plot(temperatures: pd.Series, metrics: ThermalMetrics):
    """Temperature log on the synchronized time axis, anchor and thresholds marked."""
    t = elapsed_time_axis(temperatures, metrics.anchor_index)

    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=t, y=temperatures,
            name='Temperature',
            line=dict(color='#e74c3c', width=1.5),
            connectgaps=False,
            hovertemplate='Time: %{x}s<br>Temp: %{y:.1f} °C<extra></extra>'
        )
    )

    fig.add_vline(
        x=REFERENCE_TIME_S, line_dash="dash", line_color="#3498db",
        annotation_text=f"Anchor (row {metrics.anchor_index + 1})",
        annotation_position="top left"
    )
    for target in TARGET_TEMPERATURES:
        fig.add_hline(y=target, line_dash="dot", line_color="#95a5a6", line_width=1)

    fig.update_layout(
        title='Temperature Log',
        xaxis_title='Elapsed Time (s)',
        yaxis_title='Temperature (°C)',
        height=400,
        hovermode='x unified',
    )
    return fig


def results_to_dataframe(result: EvaluationResult) -> pd.DataFrame:
    """The appended report column as a two-column table."""
    values = build_report_column(
        result.sample_name, result.thermal_metrics,
        result.physical_inputs, result.calculated_props
    )
    return pd.DataFrame({
        'Parameter': list(REPORT_ROWS),
        'Value': [str(v) for v in values],
    })


# ==================== MAIN APPLICATION ====================

def main():
    init_session_state()

    st.title("🌡️ HCS 평가 Analysis")
    st.caption("Thermal Data Processing & Physical Properties")

    left, right = st.columns([5, 7])

    with left:
        form = render_input_form()

    with right:
        st.header("📂 Data Files")
        source_file = st.file_uploader(
            "1. Source Log", type=['xlsx', 'xls', 'csv'], key='source',
            help="Raw temperature data (Column D)"
        )
        template_file = st.file_uploader(
            "2. Template", type=['xlsx'], key='template',
            help="Report template file"
        )

    with left:
        if st.button("▶️ Run Analysis", type="primary", use_container_width=True):
            st.session_state['result'] = None
            st.session_state['error'] = None
            with st.spinner("Processing..."):
                try:
                    if source_file is not None:
                        form.source_bytes = read_upload(source_file)
                        form.source_filename = source_file.name
                    if template_file is not None:
                        form.template_bytes = read_upload(template_file)
                        form.template_filename = template_file.name
                    st.session_state['result'] = run_evaluation(form, date.today())
                except HCSError as e:
                    st.session_state['error'] = str(e)
                except Exception as e:
                    logger.exception("Unexpected failure while processing '%s'", form.sample_name)
                    st.session_state['error'] = str(e) or "An unknown error occurred during processing."

        if st.session_state['error']:
            st.error(st.session_state['error'])

    if st.session_state['result'] is not None:
        with right:
            render_results(st.session_state['result'])


def render_input_form() -> SampleForm:
    """Render the operator inputs and collect them as entered."""
    st.header("📝 Sample Info")
    evaluation_date = st.date_input("Evaluation Date", value=date.today())
    sample_name = st.text_input("Sample Name", placeholder="e.g. Sample-A1")

    col1, col2 = st.columns(2)
    with col1:
        heat_source_temp = st.text_input("Heat Source", placeholder="e.g. 200°C")
    with col2:
        pressure = st.text_input("Pressure", placeholder="e.g. 5 bar")
    remarks = st.text_area("Remarks", placeholder="Optional notes...", height=80)

    st.header("⚖️ Physical Params")
    col1, col2 = st.columns(2)
    with col1:
        weight_raw = st.text_input("Weight (g)", placeholder="0.00")
    with col2:
        thickness = st.text_input("Thickness (mm)", placeholder="0.00")

    col1, col2 = st.columns(2)
    with col1:
        width = st.text_input("Width W (mm)")
    with col2:
        length = st.text_input("Length L (mm)")

    st.header("⏱️ Sync Logic")
    ref_temp = st.text_input("Temp at 60s (°C)", placeholder="e.g. 25.5")
    st.caption("* Time synchronization reference point (t=60s).")

    return SampleForm(
        sample_name=sample_name,
        ref_temp=ref_temp,
        evaluation_date=evaluation_date.isoformat() if evaluation_date else "",
        remarks=remarks,
        thickness=thickness,
        weight_raw=weight_raw,
        width=width,
        length=length,
        heat_source_temp=heat_source_temp,
        pressure=pressure,
    )


def render_results(result: EvaluationResult):
    """Render the metrics, the curve and the download."""
    metrics = result.thermal_metrics
    calculated: CalculatedProperties = result.calculated_props
    physical: PhysicalInputs = result.physical_inputs

    st.header(f"🎯 Results: {result.sample_name}")

    st.subheader("Physical Properties")
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Weight", format_metric(calculated.weight_gsm, suffix=" g/m²"))
    col2.metric("Thickness", format_metric(physical.thickness, suffix=" mm"))
    col3.metric("Density", format_metric(calculated.density, suffix=" kg/m³"))
    col4.metric("Condition", f"{physical.heat_source_temp} / {physical.pressure}")

    st.subheader("Time to Reach Temperature")
    for col, target, value in zip(st.columns(4), TARGET_TEMPERATURES, metrics.times_to_reach):
        col.metric(f"{target}°C", format_metric(value, suffix="s"))

    st.subheader("Temperature at Time")
    for col, seconds, value in zip(st.columns(4), SAMPLE_TIMES_S, metrics.temps_at_time):
        col.metric(f"{seconds // 60} Min ({seconds}s)", format_metric(value, suffix="°C"))

    st.plotly_chart(create_temperature_plot(result.temperatures, metrics), width="stretch")

    with st.expander("📋 Appended Report Column"):
        st.dataframe(results_to_dataframe(result), use_container_width=True, hide_index=True)

    st.success("Ready to download your report.")
    st.download_button(
        "📥 Download",
        data=result.report_bytes,
        file_name=result.filename,
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        type="primary",
    )


if __name__ == "__main__":
    main()
