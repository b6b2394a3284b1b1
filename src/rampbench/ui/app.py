from __future__ import annotations

import asyncio

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from rampbench.analysis import breaking_point_regression, compare_runs
from rampbench.config import (
    AuthConfig,
    AuthType,
    BenchmarkConfig,
    HttpMethod,
    RampingConfig,
    RampingMode,
    ThresholdConfig,
    ensure_protocol,
    preset_names,
    resolve_user_agent,
)
from rampbench.errors import RampbenchError
from rampbench.loadgen.runner import run_suite
from rampbench.report import breaking_point_figure, format_duration
from rampbench.storage import default_storage


st.set_page_config(page_title="rampbench", layout="wide")

storage = default_storage()


@st.cache_data
def _load_runs() -> pd.DataFrame:
    return storage.list_runs()


def _render_header() -> None:
    st.title("rampbench")
    st.caption("Ramp an HTTP target through increasing rates and find where it breaks.")


def _auth_config() -> AuthConfig:
    auth_type = AuthType(st.selectbox("Auth", [a.value for a in AuthType]))
    if auth_type is AuthType.BASIC:
        return AuthConfig(
            auth_type=auth_type,
            username=st.text_input("Username"),
            password=st.text_input("Password", type="password"),
        )
    if auth_type is AuthType.BEARER:
        return AuthConfig(auth_type=auth_type, token=st.text_input("Token", type="password"))
    if auth_type is AuthType.HEADER:
        return AuthConfig(auth_type=auth_type, custom_header=st.text_input("Header", "X-API-Key: "))
    return AuthConfig()


def _build_config() -> BenchmarkConfig:
    with st.sidebar:
        st.header("Run Configuration")
        urls = st.text_area("Target URLs (one per line)", "https://httpbin.org/get")
        method = st.selectbox("Method", [m.value for m in HttpMethod])
        body = st.text_area("Body", "") if method in {"POST", "PUT", "PATCH"} else ""
        user_agent = st.selectbox("User-Agent", preset_names())
        headers = st.text_area("Extra headers (Name: value per line)", "")
        auth = _auth_config()
        notes = st.text_input("Notes", "")

        st.subheader("Ramping")
        mode = st.selectbox("Mode", [m.value for m in RampingMode])
        start_rate = st.number_input("Start rate (req/s)", min_value=1, value=50)
        max_rate = st.number_input("Max rate (req/s)", min_value=1, value=5000)
        step = st.number_input("Step (req/s)", min_value=1, value=50, disabled=mode == "exponential")
        duration = st.select_slider("Duration per step (sec)", [10, 15, 30, 60, 120], value=30)
        connections = st.slider("Connections", 1, 1000, 100)

        st.subheader("Thresholds")
        max_error_rate = st.number_input("Max error rate (%)", min_value=0.0, value=5.0)
        max_p99 = st.number_input("Max p99 (ms)", min_value=1, value=3000)
        warmup = st.select_slider("Warmup (sec)", [0, 5, 10, 30], value=0)
        cooldown = st.select_slider("Cooldown (sec)", [0, 5, 10, 30], value=0)

    return BenchmarkConfig(
        urls=tuple(ensure_protocol(u.strip()) for u in urls.splitlines() if u.strip()),
        method=HttpMethod(method),
        body=body or None,
        user_agent=resolve_user_agent(user_agent),
        auth=auth,
        headers=tuple(h.strip() for h in headers.splitlines() if h.strip()),
        ramping=RampingConfig(
            mode=RampingMode(mode),
            start_rate=int(start_rate),
            max_rate=int(max_rate),
            step=int(step),
            duration_seconds=int(duration),
            connections=int(connections),
        ),
        thresholds=ThresholdConfig(max_error_rate=float(max_error_rate), max_p99_ms=int(max_p99)),
        warmup_seconds=int(warmup),
        cooldown_seconds=int(cooldown),
        notes=notes,
    )


def _run_button(config: BenchmarkConfig) -> None:
    if st.sidebar.button("Start run", disabled=not config.urls):
        with st.spinner("Ramping..."):
            try:
                runs = asyncio.run(run_suite(config, storage=storage))
            except RampbenchError as exc:
                st.sidebar.error(str(exc))
                return
        for run in runs:
            st.sidebar.success(f"Run completed: {run.run_id}")
        st.cache_data.clear()


def _plot_requested_vs_achieved(steps: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=steps["target_rate"],
            y=steps["target_rate"],
            name="Target req/s",
            mode="lines",
            line=dict(dash="dot"),
        )
    )
    fig.add_trace(
        go.Scatter(
            x=steps["target_rate"],
            y=steps["actual_rate"],
            name="Actual req/s",
            mode="lines+markers",
        )
    )
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _plot_latency(steps: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for col, label in [("p50_latency_ms", "p50"), ("p90_latency_ms", "p90"), ("p99_latency_ms", "p99")]:
        fig.add_trace(go.Scatter(x=steps["target_rate"], y=steps[col], name=label, mode="lines+markers"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    return fig


def _render_summary(run_id: str) -> None:
    summary = storage.load_summary(run_id)
    if not summary:
        return
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Breaking point", summary["breaking_point_rate"] or "not reached")
    col2.metric("Last stable", summary["last_stable_rate"] or "-")
    col3.metric("Recommended", summary["recommended_rate"] or "-")
    col4.metric("Duration", format_duration(int(summary["total_duration_seconds"])))
    if summary["break_reason"]:
        st.warning(summary["break_reason"])
    if summary["aggregated_error_codes"]:
        codes = ", ".join(f"{code} ({count:,})" for code, count in summary["aggregated_error_codes"])
        st.caption(f"HTTP errors: {codes}")


def _render_run_view(run_id: str) -> None:
    steps = storage.load_steps(run_id)
    meta = storage.load_run_meta(run_id) or {}
    st.subheader(f"Run {run_id}")
    st.caption(f"{meta.get('url', '')} {meta.get('notes', '')}")
    if meta.get("error"):
        st.error(f"Run aborted: {meta['error']}")
    _render_summary(run_id)
    if steps.empty:
        st.info("This run has no completed steps")
        return

    thresholds = ThresholdConfig(**meta["thresholds"]) if "thresholds" in meta else ThresholdConfig()
    st.plotly_chart(breaking_point_figure({run_id: steps}, thresholds), use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(_plot_requested_vs_achieved(steps), use_container_width=True)
    with col2:
        st.plotly_chart(_plot_latency(steps), use_container_width=True)

    st.dataframe(steps.drop(columns=["run_id", "error_codes_json"]), use_container_width=True)


def _render_comparison() -> None:
    runs = _load_runs()
    if runs.empty:
        return
    run_ids = runs["run_id"].tolist()
    st.subheader("Run Comparison")
    base = st.selectbox("Baseline run", run_ids, index=0)
    candidate = st.selectbox("Candidate run", run_ids, index=min(1, len(run_ids) - 1))
    if base == candidate:
        st.info("Select two different runs for comparison")
        return
    base_df = storage.load_steps(base)
    cand_df = storage.load_steps(candidate)
    merged = base_df.merge(cand_df, on="target_rate", suffixes=("_base", "_cand"))

    fig = go.Figure()
    fig.add_trace(go.Scatter(x=merged["target_rate"], y=merged["p99_latency_ms_base"], name=f"{base} p99"))
    fig.add_trace(go.Scatter(x=merged["target_rate"], y=merged["p99_latency_ms_cand"], name=f"{candidate} p99"))
    fig.update_layout(height=300, margin=dict(l=10, r=10, t=30, b=10))
    st.plotly_chart(fig, use_container_width=True)

    regressions = compare_runs(base_df, cand_df)
    base_summary = storage.load_summary(base)
    cand_summary = storage.load_summary(candidate)
    if base_summary and cand_summary:
        breaking = breaking_point_regression(base_summary, cand_summary)
        if breaking is not None:
            regressions.append(breaking)
    if not regressions:
        st.success("No regressions detected")
    else:
        for reg in regressions:
            st.error(f"{reg.message} ({reg.delta_pct:.1f}% on {reg.metric})")


def main() -> None:
    _render_header()
    config = _build_config()
    _run_button(config)

    runs = _load_runs()
    if runs.empty:
        st.info("No runs yet. Start one from the sidebar.")
        return
    selected_run = st.selectbox("Select run", runs["run_id"].tolist())
    _render_run_view(selected_run)
    _render_comparison()


if __name__ == "__main__":
    main()
