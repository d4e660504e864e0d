from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def stacked_bar_spec(
    df: pd.DataFrame,
    *,
    x: str,
    value_vars: List[str],
    x_title: str,
    y_title: str,
    sort: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Grouped bars for one or more count columns; None when there is nothing to draw."""
    if df.empty or x not in df.columns:
        return None
    long_df = df.melt(id_vars=[x], value_vars=value_vars, var_name="metric", value_name="count")
    chart = (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X(f"{x}:N", title=x_title, sort=sort or list(df[x])),
            xOffset="metric:N",
            y=alt.Y("count:Q", title=y_title),
            color=alt.Color("metric:N", title="Metric"),
            tooltip=[alt.Tooltip(f"{x}:N", title=x_title), "metric:N", alt.Tooltip("count:Q", format=",")],
        )
    )
    return to_vega_spec(chart)
