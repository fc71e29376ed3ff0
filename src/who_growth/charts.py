"""
Growth chart figures: WHO SD curves with a "you are here" marker.
"""

from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np
import plotly.graph_objects as go
from pydantic import BaseModel, ConfigDict, field_validator

from .config import CHART_HEIGHT, CHART_MARGINS, CHART_WIDTH, CURVE_COLORS, GRID_COLOR
from .evaluator import GrowthPoint, Translate
from .lms import lms_curve
from .types import AxisKind, Indicator, ReferenceDataset


class Margins(BaseModel):
    model_config = ConfigDict(frozen=True)

    top: int = CHART_MARGINS["top"]
    right: int = CHART_MARGINS["right"]
    bottom: int = CHART_MARGINS["bottom"]
    left: int = CHART_MARGINS["left"]


class CurveColors(BaseModel):
    model_config = ConfigDict(frozen=True)

    sd3neg: str = CURVE_COLORS["sd3neg"]
    sd2neg: str = CURVE_COLORS["sd2neg"]
    sd1neg: str = CURVE_COLORS["sd1neg"]
    sd0: str = CURVE_COLORS["sd0"]
    sd1: str = CURVE_COLORS["sd1"]
    sd2: str = CURVE_COLORS["sd2"]
    sd3: str = CURVE_COLORS["sd3"]


class ChartOptions(BaseModel):
    """
    Figure configuration with named defaults.

    Attributes:
        width, height: Figure size in pixels
        margins: Plot margins in pixels
        colors: Line colour per SD curve
        show_grid: Draw grid lines
        show_legend: Draw the curve legend
        title: Figure title, none by default
        x_label, y_label: Axis titles; defaults derive from the dataset
    """

    model_config = ConfigDict(frozen=True)

    width: int = CHART_WIDTH
    height: int = CHART_HEIGHT
    margins: Margins = Margins()
    colors: CurveColors = CurveColors()
    show_grid: bool = True
    show_legend: bool = True
    title: Optional[str] = None
    x_label: Optional[str] = None
    y_label: Optional[str] = None

    @field_validator("width", "height")
    @classmethod
    def positive_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Chart dimensions must be positive")
        return v

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "ChartOptions":
        """
        Copy with overrides applied field by field.

        Nested 'margins' and 'colors' mappings only replace the keys they name.
        """
        if not overrides:
            return self
        data = self.model_dump()
        for key, value in overrides.items():
            if key in ("margins", "colors") and isinstance(value, Mapping):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        return ChartOptions.model_validate(data)


class PointOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = "Measurement"
    color: str = "#000000"
    size: int = 10
    symbol: str = "circle"


class CurveSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    label: str
    z: float
    dash: Optional[str] = None


ZSCORE_CURVES: Sequence[CurveSpec] = (
    CurveSpec(field="sd3neg", label="-3 SD", z=-3),
    CurveSpec(field="sd2neg", label="-2 SD", z=-2, dash="dash"),
    CurveSpec(field="sd1neg", label="-1 SD", z=-1, dash="dot"),
    CurveSpec(field="sd0", label="Median", z=0),
    CurveSpec(field="sd1", label="+1 SD", z=1, dash="dot"),
    CurveSpec(field="sd2", label="+2 SD", z=2, dash="dash"),
    CurveSpec(field="sd3", label="+3 SD", z=3),
)

X_LABELS: Dict[AxisKind, str] = {
    AxisKind.WEEK: "Age (weeks)",
    AxisKind.MONTH: "Age (months)",
    AxisKind.LENGTH: "Length (cm)",
    AxisKind.HEIGHT: "Height (cm)",
}

Y_LABELS: Dict[Indicator, str] = {
    Indicator.WEIGHT_FOR_AGE: "Weight (kg)",
    Indicator.LENGTH_HEIGHT_FOR_AGE: "Length/height (cm)",
    Indicator.WEIGHT_FOR_LENGTH_HEIGHT: "Weight (kg)",
}

# Structured array field per curve field
_COLUMNS = {
    "sd3neg": "SD3neg",
    "sd2neg": "SD2neg",
    "sd1neg": "SD1neg",
    "sd0": "SD0",
    "sd1": "SD1",
    "sd2": "SD2",
    "sd3": "SD3",
}


def _label(text: str, translate: Optional[Translate]) -> str:
    return translate(text) if translate is not None else text


def build_growth_chart(
    dataset: ReferenceDataset,
    options: Optional[ChartOptions] = None,
    curves: Sequence[CurveSpec] = ZSCORE_CURVES,
    translate: Optional[Translate] = None,
    from_lms: bool = False,
) -> go.Figure:
    """
    Figure with the SD curves of a reference table.

    Parameters
    ----------
    dataset : ReferenceDataset
        Table whose SD columns are drawn against its independent variable
    options : ChartOptions, optional
        Figure configuration, defaults to ChartOptions()
    curves : sequence of CurveSpec
        Curves to draw, ZSCORE_CURVES by default
    translate : callable, optional
        Maps curve and axis labels to display text
    from_lms : bool
        Derive each curve from the L, M, S columns at the curve's z-score
        instead of drawing the published SD columns. Points where the
        transform is undefined are left as gaps.

    Returns
    -------
    go.Figure
        Plotly figure object; empty datasets give a figure without curves
    """
    options = options or ChartOptions()
    colors = options.colors.model_dump()
    x = dataset.x

    fig = go.Figure()
    for curve in curves:
        if from_lms:
            y = lms_curve(dataset, curve.z)
        else:
            y = np.asarray(dataset.column(_COLUMNS[curve.field]), dtype=np.float64)
        fig.add_trace(
            go.Scatter(
                x=x,
                y=y,
                mode="lines",
                name=_label(curve.label, translate),
                line=dict(color=colors[curve.field], width=2, dash=curve.dash),
                connectgaps=False,
                hoverinfo="skip",
            )
        )

    fig.update_layout(
        width=options.width,
        height=options.height,
        margin=dict(
            t=options.margins.top,
            r=options.margins.right,
            b=options.margins.bottom,
            l=options.margins.left,
        ),
        showlegend=options.show_legend,
        hovermode="closest",
        xaxis=dict(
            title=options.x_label or _label(X_LABELS[dataset.axis], translate),
            showgrid=options.show_grid,
            gridcolor=GRID_COLOR,
            zeroline=False,
        ),
        yaxis=dict(
            title=options.y_label or _label(Y_LABELS[dataset.indicator], translate),
            showgrid=options.show_grid,
            gridcolor=GRID_COLOR,
            zeroline=False,
        ),
    )
    if options.title:
        fig.update_layout(title=dict(text=options.title, x=0.5))

    return fig


def add_growth_point(
    fig: go.Figure,
    point: GrowthPoint,
    point_options: Optional[PointOptions] = None,
) -> go.Figure:
    """
    Add the "you are here" marker at the coordinates used for evaluation.

    Parameters
    ----------
    fig : go.Figure
        Figure from build_growth_chart
    point : GrowthPoint
        Point from resolve_point
    point_options : PointOptions, optional
        Marker appearance
    """
    point_options = point_options or PointOptions()
    fig.add_trace(
        go.Scatter(
            x=[point.x],
            y=[point.y],
            mode="markers",
            name=point_options.label,
            marker=dict(
                size=point_options.size,
                color=point_options.color,
                symbol=point_options.symbol,
                line=dict(color="white", width=2),
            ),
            hovertext=f"{point.x:g}, {point.y:g}",
            hoverinfo="text",
        )
    )
    return fig
