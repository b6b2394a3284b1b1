from __future__ import annotations

from pathlib import Path
from typing import Mapping

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from rampbench.analysis import StepStatus, is_terminal
from rampbench.config import ThresholdConfig

ERROR_COLOR = "rgb(239, 68, 68)"
P99_COLOR = "rgb(59, 130, 246)"
THRESHOLD_DASH = "dash"


def _threshold_trace(x: pd.Series, y: float, name: str, color: str) -> go.Scatter:
    return go.Scatter(
        x=[x.min(), x.max()],
        y=[y, y],
        name=name,
        mode="lines",
        line=dict(color=color, dash=THRESHOLD_DASH, width=1),
        showlegend=False,
    )


def _breaking_step(steps: pd.DataFrame) -> pd.DataFrame:
    terminal = steps["status"].map(lambda value: is_terminal(StepStatus(value)))
    return steps[terminal].head(1)


def breaking_point_figure(runs: Mapping[str, pd.DataFrame], thresholds: ThresholdConfig) -> go.Figure:
    """Error rate and p99 latency against target rate, one panel per run.

    ``runs`` maps a panel title (URL or run id) to that run's step table.
    """
    labels = [label for label, steps in runs.items() if not steps.empty]
    if not labels:
        return go.Figure()
    fig = make_subplots(
        rows=len(labels),
        cols=1,
        specs=[[{"secondary_y": True}] for _ in labels],
        subplot_titles=labels,
    )
    for row, label in enumerate(labels, start=1):
        steps = runs[label]
        x = steps["target_rate"]
        fig.add_trace(
            go.Scatter(
                x=x,
                y=steps["error_rate"],
                name="Error rate %",
                mode="lines+markers",
                line=dict(color=ERROR_COLOR),
                showlegend=row == 1,
            ),
            row=row,
            col=1,
            secondary_y=False,
        )
        fig.add_trace(
            go.Scatter(
                x=x,
                y=steps["p99_latency_ms"],
                name="p99 ms",
                mode="lines+markers",
                line=dict(color=P99_COLOR),
                showlegend=row == 1,
            ),
            row=row,
            col=1,
            secondary_y=True,
        )
        fig.add_trace(
            _threshold_trace(x, thresholds.max_error_rate, "Max error rate", ERROR_COLOR),
            row=row,
            col=1,
            secondary_y=False,
        )
        fig.add_trace(
            _threshold_trace(x, thresholds.max_p99_ms, "Max p99", P99_COLOR),
            row=row,
            col=1,
            secondary_y=True,
        )
        breaking = _breaking_step(steps)
        if not breaking.empty:
            fig.add_trace(
                go.Scatter(
                    x=breaking["target_rate"],
                    y=breaking["error_rate"],
                    name="Breaking point",
                    mode="markers+text",
                    marker=dict(symbol="x", size=12, color="black"),
                    text=breaking["status"],
                    textposition="top center",
                    showlegend=row == 1,
                ),
                row=row,
                col=1,
                secondary_y=False,
            )
        fig.update_xaxes(title_text="Target rate (req/s)", row=row, col=1)
        fig.update_yaxes(title_text="Error rate (%)", row=row, col=1, secondary_y=False)
        fig.update_yaxes(title_text="p99 (ms)", row=row, col=1, secondary_y=True)
    fig.update_layout(height=320 * len(labels), margin=dict(l=10, r=10, t=40, b=10))
    return fig


def save_figure(fig: go.Figure, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(path), include_plotlyjs="cdn")
