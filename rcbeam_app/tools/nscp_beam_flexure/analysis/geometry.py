from __future__ import annotations

from typing import List, Sequence, Tuple

Point = Tuple[float, float]  # (x_mm, y_mm), y upward

INTEGRATION_STEPS = 100


def polygon_edges(poly: Sequence[Point]) -> List[Tuple[Point, Point]]:
    return list(zip(poly, poly[1:])) + [(poly[-1], poly[0])]


def bounding_box(poly: Sequence[Point]) -> Tuple[float, float, float, float]:
    """(min_x, max_x, min_y, max_y)"""
    xs = [p[0] for p in poly]
    ys = [p[1] for p in poly]
    return min(xs), max(xs), min(ys), max(ys)


def area_and_centroid(poly: Sequence[Point]) -> Tuple[float, float, float]:
    """Shoelace area and centroid (area, cx, cy).

    The signed area carries the winding; its absolute value is returned as the
    area while the signed value is used in the centroid denominator, so either
    winding gives the same centroid.
    """
    n = len(poly)
    if n < 3:
        return 0.0, 0.0, 0.0

    signed = 0.0
    sum_x = 0.0
    sum_y = 0.0
    for (x1, y1), (x2, y2) in polygon_edges(poly):
        cross = x1 * y2 - x2 * y1
        signed += cross
        sum_x += (x1 + x2) * cross
        sum_y += (y1 + y2) * cross
    signed /= 2.0

    if signed == 0.0:
        return 0.0, 0.0, 0.0
    return abs(signed), sum_x / (6.0 * signed), sum_y / (6.0 * signed)


def intersections_at_y(poly: Sequence[Point], y: float, from_below: bool = True) -> List[float]:
    """x coordinates where the horizontal line at `y` crosses the outline, sorted.

    Edges are half-open in y so that a crossing through a vertex counts once and
    horizontal edges never count. With `from_below` an edge spans (y_lo, y_hi],
    which measures the section just below `y` (the top face is included);
    otherwise [y_lo, y_hi), the section just above `y`.
    """
    xs: List[float] = []
    for (x1, y1), (x2, y2) in polygon_edges(poly):
        lo, hi = (y1, y2) if y1 <= y2 else (y2, y1)
        crosses = (lo < y <= hi) if from_below else (lo <= y < hi)
        if not crosses:
            continue
        t = (y - y1) / (y2 - y1)
        xs.append(x1 + t * (x2 - x1))
    xs.sort()
    return xs


def width_at_y(poly: Sequence[Point], y: float, from_below: bool = True) -> float:
    """Total solid width at height y, summing every span (T, I and box-like outlines)."""
    xs = intersections_at_y(poly, y, from_below=from_below)
    total = 0.0
    for i in range(0, len(xs) - 1, 2):
        total += xs[i + 1] - xs[i]
    return total


def compression_block(poly: Sequence[Point], top_y: float, a: float, steps: int = INTEGRATION_STEPS) -> Tuple[float, float]:
    """Area and centroid depth (from `top_y`) of the region between `top_y` and `top_y - a`.

    Composite trapezoid over `steps` strips. Each strip uses the widths just
    inside its own edges, so a prismatic region is integrated exactly.
    Returns (0, a/2) for a zero-area block.
    """
    if a <= 0:
        return 0.0, a / 2.0

    dy = a / steps
    area = 0.0
    moment = 0.0
    for i in range(steps):
        y_top = top_y - i * dy
        y_bot = top_y - (i + 1) * dy
        w_top = width_at_y(poly, y_top, from_below=True)
        w_bot = width_at_y(poly, y_bot, from_below=False)
        dA = 0.5 * (w_top + w_bot) * dy
        area += dA
        moment += dA * (top_y - 0.5 * (y_top + y_bot))

    if area > 0:
        return area, moment / area
    return 0.0, a / 2.0


def segments_intersect(a1: Point, a2: Point, b1: Point, b2: Point) -> bool:
    def orient(p: Point, q: Point, r: Point) -> float:
        return (q[0] - p[0]) * (r[1] - p[1]) - (q[1] - p[1]) * (r[0] - p[0])

    def on_seg(p: Point, q: Point, r: Point) -> bool:
        return (
            min(p[0], r[0]) - 1e-12 <= q[0] <= max(p[0], r[0]) + 1e-12
            and min(p[1], r[1]) - 1e-12 <= q[1] <= max(p[1], r[1]) + 1e-12
        )

    o1 = orient(a1, a2, b1)
    o2 = orient(a1, a2, b2)
    o3 = orient(b1, b2, a1)
    o4 = orient(b1, b2, a2)

    if (o1 > 0) != (o2 > 0) and (o3 > 0) != (o4 > 0) and o1 != 0 and o2 != 0 and o3 != 0 and o4 != 0:
        return True

    if abs(o1) < 1e-12 and on_seg(a1, b1, a2):
        return True
    if abs(o2) < 1e-12 and on_seg(a1, b2, a2):
        return True
    if abs(o3) < 1e-12 and on_seg(b1, a1, b2):
        return True
    if abs(o4) < 1e-12 and on_seg(b1, a2, b2):
        return True

    return False


def is_simple_polygon(poly: Sequence[Point]) -> bool:
    """True when no two non-adjacent edges touch or cross."""
    edges = polygon_edges(poly)
    n = len(edges)
    for i in range(n):
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue  # first and last edges share a vertex
            if segments_intersect(edges[i][0], edges[i][1], edges[j][0], edges[j][1]):
                return False
    return True
