"""
tally.services.chart_renderer — Chart Rendering Boundary
=========================================================

Tally never draws pixels itself.  Each chart is described as a Chart.js
configuration and POSTed to a QuickChart-compatible service, which
returns a PNG::

    POST {chart_render_url}
    {"chart": {...}, "width": 1200, "height": 800,
     "format": "png", "backgroundColor": "white"}

The client is synchronous (``httpx.Client``) — cogs call it through
``run_db`` like any other blocking I/O.  Any transport error or non-2xx
response becomes :class:`ChartRenderError`; there are no retries.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from tally.config import DEFAULT_CHART_RENDER_URL, TallyConfig

logger = logging.getLogger(__name__)

BRAND_LINE = "rgb(99, 102, 241)"
BRAND_FILL = "rgba(99, 102, 241, 0.1)"
BRAND_BAR = "rgba(99, 102, 241, 0.7)"
HEATMAP_TITLE = "Activity Heatmap (24 Hours)"


class ChartRenderError(Exception):
    """The rendering service could not produce an image."""


# ---------------------------------------------------------------------------
# Chart.js configuration builders (pure)
# ---------------------------------------------------------------------------
def _title(text: str) -> dict[str, Any]:
    return {"display": True, "text": text, "font": {"size": 24}}


def line_chart_config(labels: Sequence[str], values: Sequence[int], title: str) -> dict[str, Any]:
    return {
        "type": "line",
        "data": {
            "labels": list(labels),
            "datasets": [{
                "label": "Messages",
                "data": list(values),
                "borderColor": BRAND_LINE,
                "backgroundColor": BRAND_FILL,
                "fill": True,
                "tension": 0.4,
            }],
        },
        "options": {
            "plugins": {"title": _title(title), "legend": {"display": True}},
            "scales": {"y": {"beginAtZero": True}},
        },
    }


def bar_chart_config(values: Sequence[int], labels: Sequence[str], title: str) -> dict[str, Any]:
    return {
        "type": "bar",
        "data": {
            "labels": list(labels),
            "datasets": [{
                "label": "Count",
                "data": list(values),
                "backgroundColor": BRAND_BAR,
                "borderColor": BRAND_LINE,
                "borderWidth": 2,
            }],
        },
        "options": {
            "plugins": {"title": _title(title)},
            "scales": {"y": {"beginAtZero": True}},
        },
    }


def heatmap_colors(values: Sequence[int]) -> list[str]:
    """Per-bar fill shaded by intensity relative to the busiest hour."""
    peak = max(values, default=0)
    if peak <= 0:
        return ["rgba(99, 102, 241, 0)" for _ in values]
    return [f"rgba(99, 102, 241, {round(v / peak, 3)})" for v in values]


def heatmap_config(values: Sequence[int]) -> dict[str, Any]:
    """24 bars, one per UTC hour; *values* must already be densified."""
    return {
        "type": "bar",
        "data": {
            "labels": [f"{h}:00" for h in range(len(values))],
            "datasets": [{
                "label": "Activity Level",
                "data": list(values),
                "backgroundColor": heatmap_colors(values),
                "borderColor": BRAND_LINE,
                "borderWidth": 1,
            }],
        },
        "options": {
            "plugins": {"title": _title(HEATMAP_TITLE), "legend": {"display": False}},
            "scales": {
                "y": {"beginAtZero": True, "title": {"display": True, "text": "Messages"}},
                "x": {"title": {"display": True, "text": "Hour of Day"}},
            },
        },
    }


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------
class ChartRenderer:
    """Thin synchronous client for a QuickChart-compatible endpoint.

    Parameters
    ----------
    url:
        Full render endpoint (``…/chart``).
    width, height:
        Output size in pixels.
    client:
        Optional pre-built ``httpx.Client`` (tests pass one backed by
        ``httpx.MockTransport``).
    """

    def __init__(
        self,
        url: str = DEFAULT_CHART_RENDER_URL,
        *,
        width: int = 1200,
        height: int = 800,
        timeout: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.width = width
        self.height = height
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_config(cls, cfg: TallyConfig) -> ChartRenderer:
        return cls(cfg.chart_render_url, width=cfg.chart_width, height=cfg.chart_height)

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def render_line_chart(self, labels: Sequence[str], values: Sequence[int], title: str) -> bytes:
        return self.render(line_chart_config(labels, values, title))

    def render_bar_chart(self, values: Sequence[int], labels: Sequence[str], title: str) -> bytes:
        return self.render(bar_chart_config(values, labels, title))

    def render_heatmap(self, values: Sequence[int]) -> bytes:
        return self.render(heatmap_config(values))

    def render(self, config: dict[str, Any]) -> bytes:
        """POST *config* and return the PNG body.

        Raises
        ------
        ChartRenderError
            On transport failure, a non-2xx status, or an empty body.
        """
        payload = {
            "chart": config,
            "width": self.width,
            "height": self.height,
            "format": "png",
            "backgroundColor": "white",
        }
        try:
            resp = self._client.post(self.url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ChartRenderError(
                f"Chart service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ChartRenderError(f"Chart service unreachable: {exc}") from exc

        if not resp.content:
            raise ChartRenderError("Chart service returned an empty image")

        logger.debug(
            "Rendered %s chart (%d bytes)", config.get("type"), len(resp.content),
        )
        return resp.content
