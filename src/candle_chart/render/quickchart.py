"""QuickChart.io rendering client (Chart.js v3 + chartjs-chart-financial)."""

from __future__ import annotations

import httpx
import structlog

from candle_chart.chart.formatting import price_precision
from candle_chart.config import Settings
from candle_chart.errors import UnknownPipelineError, classify_http_status, wrap_exception
from candle_chart.models.chart_spec import ChartSpecification

logger = structlog.get_logger()

FONT_FAMILY = "Inter, sans-serif"


def _axis_style(spec: ChartSpecification) -> dict:
    return {
        "grid": {
            "display": True,
            "color": spec.palette.grid,
            "drawBorder": True,
            "borderColor": spec.palette.border,
        },
    }


def _dataset(spec: ChartSpecification) -> dict:
    data = [p.model_dump() for p in spec.data_points]
    colors = spec.color_policy
    if spec.series_type == "candlestick":
        return {
            "label": spec.label,
            "data": data,
            "color": {"up": colors.up, "down": colors.down, "unchanged": colors.unchanged},
            "borderColor": {"up": colors.up, "down": colors.down, "unchanged": colors.unchanged},
            "borderWidth": 2,
            "barPercentage": 0.8,
            "categoryPercentage": 0.9,
        }
    if spec.series_type == "line":
        first, last = data[0]["y"], data[-1]["y"]
        line_color = colors.up if last > first else colors.down if last < first else colors.unchanged
        return {
            "label": spec.label,
            "data": data,
            "borderColor": line_color,
            "borderWidth": 2,
            "pointRadius": 0,
            "tension": 0.1,
            "fill": False,
        }
    # bar: colour each volume bar by the direction of its neighbour delta
    bar_colors = [colors.unchanged]
    for prev, cur in zip(data, data[1:]):
        if cur["y"] > prev["y"]:
            bar_colors.append(colors.up)
        elif cur["y"] < prev["y"]:
            bar_colors.append(colors.down)
        else:
            bar_colors.append(colors.unchanged)
    return {
        "label": spec.label,
        "data": data,
        "backgroundColor": bar_colors,
        "borderColor": bar_colors,
        "borderWidth": 1,
    }


def to_chartjs_config(spec: ChartSpecification) -> dict:
    """Translate a ChartSpecification into the Chart.js config QuickChart renders."""
    palette = spec.palette
    tick_font = {"size": 10, "family": FONT_FAMILY}
    y_ticks = {"display": True, "color": palette.tick, "font": tick_font, "maxTicksLimit": 7}
    if spec.series_type != "bar":
        y_ticks["precision"] = price_precision(abs(spec.y_axis.max))

    return {
        "type": spec.series_type,
        "data": {"datasets": [_dataset(spec)]},
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "interaction": {"intersect": False, "mode": "index"},
            "scales": {
                "x": {
                    "type": "time",
                    "time": {
                        "unit": spec.x_axis.unit,
                        "displayFormats": spec.x_axis.display_formats,
                    },
                    **_axis_style(spec),
                    "ticks": {
                        "display": True,
                        "source": "auto",
                        "maxTicksLimit": spec.x_axis.max_ticks,
                        "color": palette.tick,
                        "font": tick_font,
                    },
                },
                "y": {
                    "type": "linear",
                    "position": "right",
                    "beginAtZero": spec.series_type == "bar",
                    "min": spec.y_axis.min,
                    "max": spec.y_axis.max,
                    **_axis_style(spec),
                    "ticks": y_ticks,
                },
            },
            "plugins": {
                "title": {"display": False},
                "legend": {"display": False},
                "tooltip": {"enabled": False},
            },
            "layout": {"padding": {"top": 5, "right": 50, "bottom": 5, "left": 5}},
            "backgroundColor": palette.background,
            "color": palette.text,
        },
    }


def build_request_body(spec: ChartSpecification) -> dict:
    return {
        "chart": to_chartjs_config(spec),
        "width": spec.dimensions.width,
        "height": spec.dimensions.height,
        "format": "png",
        "backgroundColor": spec.palette.background,
        "version": "3",
    }


class QuickChartClient:
    """Single synchronous render call per spec. Retrying is the caller's decision."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.url = settings.RENDER_URL

    async def render(self, spec: ChartSpecification) -> bytes:
        body = build_request_body(spec)
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.settings.RENDER_TIMEOUT_SECONDS,
            ) as http:
                response = await http.post(
                    self.url,
                    headers={
                        "Content-Type": "application/json",
                        "User-Agent": self.settings.RENDER_USER_AGENT,
                    },
                    json=body,
                )
        except httpx.HTTPError as e:
            raise wrap_exception(e, endpoint=self.url) from e

        if response.status_code >= 400:
            raise classify_http_status(response.status_code, response.text, endpoint=self.url)
        if not response.content:
            raise UnknownPipelineError("Renderer returned an empty image", endpoint=self.url)

        logger.debug(
            "chart_image_rendered",
            label=spec.label,
            bytes=len(response.content),
            width=spec.dimensions.width,
            height=spec.dimensions.height,
        )
        return response.content

    async def health_check(self) -> bool:
        probe = {
            "chart": {
                "type": "bar",
                "data": {"labels": ["Test"], "datasets": [{"data": [1]}]},
            },
            "width": 100,
            "height": 100,
            "format": "png",
        }
        try:
            async with httpx.AsyncClient(
                transport=self.transport,
                timeout=self.settings.RENDER_TIMEOUT_SECONDS,
            ) as http:
                response = await http.post(self.url, json=probe)
            return response.status_code < 400
        except httpx.HTTPError as e:
            logger.warning("renderer_health_check_failed", error=str(e))
            return False
