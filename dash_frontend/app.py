"""
Live sorting-station dashboard.

Polls the Flask API every poll_interval_ms and redraws the metric cards, the
category breakdown, the time series and the most-detected items. The role and
organization it presents to the API come from the [server] config section.
"""

from typing import Any, Dict, List, Optional

import dash
import plotly.graph_objects as go
import requests
from dash import dcc, html
from dash.dependencies import Input, Output

from sharedUtils.config.loader import get_server_config
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

server_config = get_server_config()
API_BASE = server_config.api_base_url
REQUEST_TIMEOUT = 5

CATEGORY_COLORS = {"recycle": "#3b82f6", "compost": "#22c55e", "trash": "#6b7280"}
TIMEFRAMES = [
    {"label": "Today", "value": "D"},
    {"label": "Week", "value": "W"},
    {"label": "Month", "value": "M"},
    {"label": "Year", "value": "Y"},
]

session = requests.Session()
session.headers.update({"X-User-Role": server_config.dashboard_role})
if server_config.dashboard_organization_id:
    session.headers["X-Organization-Id"] = server_config.dashboard_organization_id


def fetch_json(path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
    """GET an API path; None when the API is unreachable or answers with an error."""
    try:
        response = session.get(f"{API_BASE}{path}", params=params, timeout=REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logger.warning("GET %s failed: %s", path, e)
        return None

    if response.status_code != 200:
        logger.warning("GET %s: HTTP %d - %s", path, response.status_code, response.text)
        return None
    return response.json()


def metric_cards(snapshot: Dict[str, Any]) -> List[html.Div]:
    cards = [
        ("Items Sorted", snapshot.get("total", 0)),
        ("Diversion Rate", snapshot.get("diversion_rate_display", "0%")),
        ("CO2 Saved", snapshot.get("co2_saved_display", "0.0 kg")),
        ("Items / Hour", snapshot.get("rate_per_hour", 0)),
        ("This Week", snapshot.get("this_week", 0)),
        ("Active Stations", snapshot.get("active_stations", 0)),
    ]
    return [
        html.Div([html.H4(title), html.H2(str(value))], className="metric-card")
        for title, value in cards
    ]


def category_figure(snapshot: Dict[str, Any]) -> go.Figure:
    labels = ["recycle", "compost", "trash"]
    values = [snapshot.get(label, 0) for label in labels]

    fig = go.Figure(go.Pie(
        labels=[label.title() for label in labels],
        values=values,
        hole=0.5,
        marker={"colors": [CATEGORY_COLORS[label] for label in labels]},
        sort=False,
    ))
    fig.update_layout(title="Category Breakdown")
    return fig


def series_figure(points: List[Dict[str, Any]]) -> go.Figure:
    x = [p.get("label") or "" for p in points]

    fig = go.Figure()
    for category in ("recycle", "compost", "trash"):
        fig.add_trace(go.Bar(
            x=x,
            y=[p.get(category, 0) for p in points],
            name=category.title(),
            marker_color=CATEGORY_COLORS[category],
        ))

    fig.update_layout(
        title="Items Over Time",
        barmode="stack",
        yaxis_title="Items",
    )
    return fig


def items_table(items: List[Dict[str, Any]]) -> html.Table:
    header = html.Tr([html.Th("Item"), html.Th("Category"), html.Th("Count"), html.Th("Share")])
    rows = [
        html.Tr([
            html.Td(item["name"]),
            html.Td(item["category"].title()),
            html.Td(item["count"]),
            html.Td(f"{item['percentage']:.1f}%"),
        ])
        for item in items
    ]
    return html.Table([header] + rows)


# Dash App
app = dash.Dash(__name__)
server = app.server  # Flask server inside Dash

app.layout = html.Div([
    html.H2("Live Sorting Metrics"),
    html.Div(id="refresh-status"),

    dcc.Interval(
        id="interval-component",
        interval=server_config.poll_interval_ms,
        n_intervals=0
    ),

    html.Div(id="metric-cards", style={"display": "flex", "gap": "1rem"}),

    dcc.Graph(id="category-breakdown"),

    dcc.RadioItems(id="timeframe", options=TIMEFRAMES, value="D", inline=True),
    dcc.Graph(id="category-timeseries"),

    html.H3("Most Detected Items"),
    html.Div(id="top-items"),
])


@app.callback(
    Output("metric-cards", "children"),
    Output("category-breakdown", "figure"),
    Output("refresh-status", "children"),
    Input("interval-component", "n_intervals")
)
def update_metrics(n):
    data = fetch_json("/api/metrics")
    if data is None:
        return metric_cards({}), category_figure({}), "API unavailable"

    snapshot = data.get("snapshot") or {}
    status = data.get("status", "")
    if data.get("error"):
        status = f"{status}: {data['error']}"
    return metric_cards(snapshot), category_figure(snapshot), status


@app.callback(
    Output("category-timeseries", "figure"),
    Input("interval-component", "n_intervals"),
    Input("timeframe", "value")
)
def update_series(n, timeframe):
    data = fetch_json("/api/metrics/series", {"timeframe": timeframe})
    return series_figure((data or {}).get("points", []))


@app.callback(
    Output("top-items", "children"),
    Input("interval-component", "n_intervals"),
    Input("timeframe", "value")
)
def update_top_items(n, timeframe):
    if timeframe not in ("D", "W", "M"):
        timeframe = "M"
    data = fetch_json("/api/metrics/items", {"timeframe": timeframe})
    return items_table((data or {}).get("items", []))


if __name__ == "__main__":
    app.run(debug=True, port=server_config.dashboard_port)
