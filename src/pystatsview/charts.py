"""Chart definitions and dashboard page rendering."""

import html
import json
import re
from dataclasses import dataclass
from string import Template

from pystatsview.config import Settings

PAGE_TITLE = "Statsview"

PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>$title</title>
    <script src="${assets_host}echarts.min.js"></script>
    <script src="${assets_host}themes/${theme}.js"></script>
    <style>
        .box { display: flex; flex-wrap: wrap; justify-content: center; }
        .item { margin: 8px; }
    </style>
</head>
<body>
<div class="box">
$charts
</div>
</body>
</html>
"""

CHART_TEMPLATE = """<div class="item" id="$view_id" style="width:600px;height:400px;"></div>
<script type="text/javascript">
    "use strict";
    let goecharts_$view_id = echarts.init(document.getElementById("$view_id"), "$theme");
    goecharts_$view_id.setOption($option);
$script
</script>"""


@dataclass(slots=True, frozen=True)
class ChartSpec:
    """Line chart declared by one metric source."""

    route: str
    title: str
    series: tuple[str, ...]
    y_axis: str
    index: int = 0  # Position on the page; keeps ids unique across equal routes

    @property
    def view_id(self) -> str:
        """JavaScript-safe identifier, unique per page position."""
        return f"view_{self.index}_" + re.sub(r"\W", "_", self.route)

    def option(self) -> dict:
        """ECharts option for an empty chart."""
        return {
            "title": {"text": self.title},
            "legend": {"show": True},
            "tooltip": {"show": True, "trigger": "axis"},
            "xAxis": [{"name": "Time", "data": []}],
            "yAxis": [{"name": self.y_axis}],
            "dataZoom": [{"type": "slider", "start": 0, "end": 100}],
            "series": [
                {"name": name, "type": "line", "smooth": True, "data": []}
                for name in self.series
            ],
        }

    def pull_script(self, settings: Settings) -> str:
        """Render the per-chart pull script from the configured template."""
        return Template(settings.template).substitute(
            view_id=self.view_id,
            interval=settings.interval_ms,
            max_points=settings.max_points,
            addr=settings.link_addr,
            prefix=settings.prefix,
            route=self.route,
        )


def render_chart(chart: ChartSpec, settings: Settings) -> str:
    return Template(CHART_TEMPLATE).substitute(
        view_id=chart.view_id,
        theme=settings.theme.value,
        option=json.dumps(chart.option()),
        script=chart.pull_script(settings),
    )


def render_page(charts: list[ChartSpec], settings: Settings) -> str:
    """Render the dashboard page holding every chart."""
    assets_host = settings.assets_host
    if not assets_host.endswith("/"):
        assets_host += "/"
    return Template(PAGE_TEMPLATE).substitute(
        title=html.escape(PAGE_TITLE),
        assets_host=html.escape(assets_host),
        theme=settings.theme.value,
        charts="\n".join(render_chart(chart, settings) for chart in charts),
    )
