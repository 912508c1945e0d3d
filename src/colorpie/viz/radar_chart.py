"""
Plotly radar chart of an archetype distribution.

Returns Plotly JSON for client-side rendering.
"""

from __future__ import annotations

from typing import List, Optional

import plotly.graph_objects as go

from ..core.model import ARCHETYPES, Archetype, Distribution

ARCHETYPE_LABELS = {
    Archetype.WHITE: "White",
    Archetype.BLUE: "Blue",
    Archetype.BLACK: "Black",
    Archetype.RED: "Red",
    Archetype.GREEN: "Green",
}

ARCHETYPE_COLORS = {
    Archetype.WHITE: "#F4E9C1",
    Archetype.BLUE: "#4A90D9",
    Archetype.BLACK: "#3D3A3A",
    Archetype.RED: "#E74C3C",
    Archetype.GREEN: "#3C9A5F",
}


def create_radar_chart(
    distribution: Distribution,
    previous: Optional[Distribution] = None,
    title: str = "Your Color Pie",
) -> str:
    """
    Create an interactive Plotly radar chart of a distribution.

    Args:
        distribution: Belief to plot (probabilities shown as percentages)
        previous: Optional earlier belief drawn as a dotted outline
        title: Chart title

    Returns:
        JSON string for Plotly.js rendering
    """
    labels = [ARCHETYPE_LABELS[a] for a in ARCHETYPES]
    labels_closed = labels + [labels[0]]

    fig = go.Figure()

    if previous is not None:
        prev_values = _percentages(previous)
        fig.add_trace(go.Scatterpolar(
            r=prev_values + [prev_values[0]],
            theta=labels_closed,
            fill=None,
            name="Before",
            line=dict(color="rgba(200, 200, 200, 0.6)", width=1, dash="dot"),
            hoverinfo="skip",
        ))

    values = _percentages(distribution)
    fig.add_trace(go.Scatterpolar(
        r=values + [values[0]],
        theta=labels_closed,
        fill="toself",
        name="Current",
        line=dict(color="#4A90D9", width=2),
        fillcolor="rgba(74, 144, 217, 0.25)",
        hovertemplate="%{theta}: %{r:.1f}%<extra></extra>",
    ))

    # Mark the leading archetype in its own color
    top = distribution.top()
    fig.add_trace(go.Scatterpolar(
        r=[distribution[top] * 100.0],
        theta=[ARCHETYPE_LABELS[top]],
        mode="markers",
        name="Strongest",
        marker=dict(color=ARCHETYPE_COLORS[top], size=12, symbol="diamond",
                    line=dict(color="#222222", width=1)),
        hovertemplate="%{theta}: %{r:.1f}% (strongest)<extra></extra>",
    ))

    radial_max = max(50.0, min(100.0, max(values) * 1.2))
    fig.update_layout(
        polar=dict(
            radialaxis=dict(
                visible=True,
                range=[0, radial_max],
                gridcolor="rgba(200, 200, 200, 0.3)",
                ticksuffix="%",
            ),
            angularaxis=dict(
                gridcolor="rgba(200, 200, 200, 0.3)",
            ),
            bgcolor="rgba(0, 0, 0, 0)",
        ),
        showlegend=True,
        legend=dict(
            orientation="h",
            yanchor="bottom",
            y=-0.15,
            xanchor="center",
            x=0.5,
        ),
        title=dict(text=title, x=0.5, font=dict(size=16)),
        paper_bgcolor="rgba(0, 0, 0, 0)",
        plot_bgcolor="rgba(0, 0, 0, 0)",
        margin=dict(t=60, b=60, l=60, r=60),
        height=450,
        width=500,
    )

    return fig.to_json()


def _percentages(distribution: Distribution) -> List[float]:
    return [distribution[a] * 100.0 for a in ARCHETYPES]
