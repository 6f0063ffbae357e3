"""Serialize projected primitives to an SVG document."""
from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Iterable, Optional, Sequence, Tuple

from .projector import EdgePrimitive, NodePrimitive, Primitive
from .themes import Theme

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)

FONT_FAMILY = "sans-serif"
# Pulls the arrow tip back so it stops short of the node outline.
ARROW_REF_X = 28
DOUBLE_BORDER_INSET = 0.85


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def _fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def _points_attr(points: Iterable[Tuple[float, float]]) -> str:
    return " ".join(f"{_fmt(x)},{_fmt(y)}" for x, y in points)


def render_svg(
    primitives: Sequence[Primitive],
    theme: Theme,
    *,
    width: float,
    height: float,
    title: Optional[str] = None,
) -> str:
    root = ET.Element(
        _q("svg"),
        {"width": _fmt(width), "height": _fmt(height), "viewBox": f"0 0 {_fmt(width)} {_fmt(height)}"},
    )
    if title:
        ET.SubElement(root, _q("title")).text = title
    ET.SubElement(
        root,
        _q("rect"),
        {"x": "0", "y": "0", "width": _fmt(width), "height": _fmt(height), "fill": theme.bg_color},
    )

    marker_ids = sorted({p.marker_id for p in primitives if isinstance(p, EdgePrimitive)})
    if marker_ids:
        defs = ET.SubElement(root, _q("defs"))
        for marker_id in marker_ids:
            _emit_marker(defs, marker_id, theme.edge_color)

    edge_group = ET.SubElement(root, _q("g"), {"class": "edges"})
    node_group = ET.SubElement(root, _q("g"), {"class": "nodes"})
    for primitive in primitives:
        if isinstance(primitive, EdgePrimitive):
            _emit_edge(edge_group, primitive)
        else:
            _emit_node(node_group, primitive)

    return _pretty_xml(root)


def _emit_marker(defs: ET.Element, marker_id: str, color: str) -> None:
    marker = ET.SubElement(
        defs,
        _q("marker"),
        {
            "id": marker_id,
            "viewBox": "0 -5 10 10",
            "refX": str(ARROW_REF_X),
            "refY": "0",
            "markerWidth": "6",
            "markerHeight": "6",
            "orient": "auto",
        },
    )
    ET.SubElement(marker, _q("path"), {"d": "M0,-5L10,0L0,5", "fill": color})


def _emit_edge(group: ET.Element, edge: EdgePrimitive) -> None:
    attrs = {
        "x1": _fmt(edge.x1),
        "y1": _fmt(edge.y1),
        "x2": _fmt(edge.x2),
        "y2": _fmt(edge.y2),
        "stroke": edge.stroke,
        "stroke-width": _fmt(edge.stroke_width),
        "stroke-opacity": _fmt(edge.opacity),
        "marker-end": f"url(#{edge.marker_id})",
        "data-from": edge.source_id,
        "data-to": edge.target_id,
    }
    if edge.dasharray:
        attrs["stroke-dasharray"] = edge.dasharray
    ET.SubElement(group, _q("line"), attrs)
    if edge.label:
        label = ET.SubElement(
            group,
            _q("text"),
            {
                "x": _fmt(edge.label_x),
                "y": _fmt(edge.label_y),
                "text-anchor": "middle",
                "font-size": _fmt(edge.label_size),
                "font-family": FONT_FAMILY,
                "fill": edge.stroke,
            },
        )
        label.text = edge.label


def _emit_node(group: ET.Element, node: NodePrimitive) -> None:
    g = ET.SubElement(group, _q("g"), {"id": node.node_id, "class": f"node {node.shape.value}"})
    ET.SubElement(g, _q("title")).text = node.tooltip
    stroke = {"stroke": node.stroke, "stroke-width": _fmt(node.stroke_width)}

    if node.kind == "ellipse":
        ET.SubElement(
            g,
            _q("ellipse"),
            {
                "cx": _fmt(node.x),
                "cy": _fmt(node.y),
                "rx": _fmt(node.width / 2.0),
                "ry": _fmt(node.height / 2.0),
                "fill": node.fill,
                **stroke,
            },
        )
    elif node.kind == "polygon":
        ET.SubElement(g, _q("polygon"), {"points": _points_attr(node.points), "fill": node.fill, **stroke})
        if node.double_border:
            inner = [
                (node.x + (px - node.x) * DOUBLE_BORDER_INSET, node.y + (py - node.y) * DOUBLE_BORDER_INSET)
                for px, py in node.points
            ]
            ET.SubElement(
                g,
                _q("polygon"),
                {
                    "points": _points_attr(inner),
                    "fill": "none",
                    "stroke": node.stroke,
                    "stroke-width": _fmt(node.stroke_width / 3.0),
                },
            )
    else:
        ET.SubElement(
            g,
            _q("rect"),
            {
                "x": _fmt(node.x - node.width / 2.0),
                "y": _fmt(node.y - node.height / 2.0),
                "width": _fmt(node.width),
                "height": _fmt(node.height),
                "rx": _fmt(node.corner_radius),
                "fill": node.fill,
                **stroke,
            },
        )

    _emit_label(g, node)


def _emit_label(g: ET.Element, node: NodePrimitive) -> None:
    text = ET.SubElement(
        g,
        _q("text"),
        {
            "x": _fmt(node.x),
            "y": _fmt(node.y),
            "text-anchor": "middle",
            "font-size": _fmt(node.font_size),
            "font-family": FONT_FAMILY,
            "fill": node.font_color,
            "pointer-events": "none",
        },
    )
    # center the block of lines vertically on the node
    first_dy = -(len(node.lines) - 1) * node.line_height / 2.0 + node.font_size * 0.35
    for idx, line in enumerate(node.lines):
        tspan = ET.SubElement(
            text,
            _q("tspan"),
            {"x": _fmt(node.x), "dy": _fmt(first_dy if idx == 0 else node.line_height)},
        )
        tspan.text = line


def _pretty_xml(element: ET.Element) -> str:
    ET.indent(element, space="  ")
    return ET.tostring(element, encoding="unicode") + "\n"


__all__ = ["render_svg", "SVG_NS"]
