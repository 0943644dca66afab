from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

PRIMARY_COLOR = "#0F4C75"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def ranked_bar_chart(df: pd.DataFrame, category: str, value: str, *, title: str) -> Optional[Dict[str, Any]]:
    if df.empty:
        return None
    chart = (
        alt.Chart(df)
        .mark_bar(color=PRIMARY_COLOR, cornerRadiusEnd=4)
        .encode(
            x=alt.X(f"{value}:Q", title="Positions", axis=alt.Axis(format="~s")),
            y=alt.Y(f"{category}:N", sort="-x", title=None),
            tooltip=[alt.Tooltip(f"{category}:N"), alt.Tooltip(f"{value}:Q", format=",")],
        )
        .properties(title=title)
    )
    return to_vega_spec(chart)


def share_donut_chart(df: pd.DataFrame, category: str, value: str, *, title: str) -> Optional[Dict[str, Any]]:
    if df.empty:
        return None
    chart = (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta(f"{value}:Q"),
            color=alt.Color(f"{category}:N", legend=alt.Legend(orient="left")),
            tooltip=[alt.Tooltip(f"{category}:N"), alt.Tooltip(f"{value}:Q", format=",")],
        )
        .properties(title=title)
    )
    return to_vega_spec(chart)
