"""
3D visualization helpers for packed boxes.

Features:
- 3D box drawing with items as cuboids (fragile items in red).
- Item labels on top of each cuboid.
- Previous/Next buttons to navigate between the boxes of a plan.
- Text summary (box contents, weight, cost) inside the window.

Requires:
    matplotlib
"""

from typing import List, Optional

import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.widgets import Button
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .models import PackedBox, PackingPlan

ITEM_COLORS = [
    "tab:blue", "tab:orange", "tab:green", "tab:purple",
    "tab:brown", "tab:pink", "tab:gray", "tab:olive",
]
FRAGILE_COLOR = "tab:red"


def set_axis_equal(ax):
    """
    Set 3D plot axes to equal scale.
    """
    x_limits = ax.get_xlim3d()
    y_limits = ax.get_ylim3d()
    z_limits = ax.get_zlim3d()

    x_middle = sum(x_limits) / 2
    y_middle = sum(y_limits) / 2
    z_middle = sum(z_limits) / 2

    plot_radius = 0.5 * max(
        abs(x_limits[1] - x_limits[0]),
        abs(y_limits[1] - y_limits[0]),
        abs(z_limits[1] - z_limits[0]),
    )

    ax.set_xlim3d([x_middle - plot_radius, x_middle + plot_radius])
    ax.set_ylim3d([y_middle - plot_radius, y_middle + plot_radius])
    ax.set_zlim3d([z_middle - plot_radius, z_middle + plot_radius])


def _cuboid_faces(origin, size):
    """
    Return the 6 faces (4 vertices each) of an axis-aligned cuboid.
    """
    x0, y0, z0 = origin
    dx, dy, dz = size
    x1, y1, z1 = x0 + dx, y0 + dy, z0 + dz

    return [
        [(x0, y0, z0), (x1, y0, z0), (x1, y1, z0), (x0, y1, z0)],  # bottom
        [(x0, y0, z1), (x1, y0, z1), (x1, y1, z1), (x0, y1, z1)],  # top
        [(x0, y0, z0), (x1, y0, z0), (x1, y0, z1), (x0, y0, z1)],  # front
        [(x0, y1, z0), (x1, y1, z0), (x1, y1, z1), (x0, y1, z1)],  # back
        [(x0, y0, z0), (x0, y1, z0), (x0, y1, z1), (x0, y0, z1)],  # left
        [(x1, y0, z0), (x1, y1, z0), (x1, y1, z1), (x1, y0, z1)],  # right
    ]


def draw_container(ax, dims, color="lightgray", alpha=0.1):
    """
    Draw the outer box as a translucent cuboid.
    """
    faces = _cuboid_faces((0, 0, 0), dims)
    ax.add_collection3d(
        Poly3DCollection(faces, facecolors=color, linewidths=1, edgecolors="k", alpha=alpha)
    )


def draw_item(ax, position, dims, label: str, color="tab:blue", alpha=0.6):
    """
    Draw one item as a colored cuboid and write its label on top.
    """
    faces = _cuboid_faces(position, dims)
    ax.add_collection3d(
        Poly3DCollection(faces, facecolors=color, linewidths=0.5, edgecolors="k", alpha=alpha)
    )

    x0, y0, z0 = position
    l, w, h = dims
    ax.text(x0 + l / 2.0, y0 + w / 2.0, z0 + h + 0.3, label,
            ha="center", va="bottom", fontsize=8, color="black")


def draw_packed_box(ax, box: PackedBox, title: Optional[str] = None):
    """
    Draw a packed box and all of its placements on a 3D axis.

    Emergency boxes have no real placements; their items are drawn stacked
    at the origin exactly as recorded.
    """
    bt = box.box_type
    draw_container(ax, bt.dimensions)

    for idx, placed in enumerate(box.placements):
        color = FRAGILE_COLOR if placed.item.fragile else ITEM_COLORS[idx % len(ITEM_COLORS)]
        draw_item(ax, placed.position, placed.dimensions, placed.item.product_id, color=color)

    ax.set_xlim(0, bt.inner_length)
    ax.set_ylim(0, bt.inner_width)
    ax.set_zlim(0, bt.inner_height)
    ax.set_xlabel("X (length)")
    ax.set_ylabel("Y (width)")
    ax.set_zlabel("Z (height)")
    ax.set_title(title or f"{bt.name} ({box.volume_utilization:.1f}% full)")
    set_axis_equal(ax)


def render_packed_box(box: PackedBox, title: Optional[str] = None) -> Figure:
    """Draw one box on a fresh figure and return it (no window is shown)."""
    fig = plt.figure()
    ax = fig.add_subplot(111, projection="3d")
    draw_packed_box(ax, box, title)
    return fig


def _box_summary_text(box: PackedBox) -> str:
    bt = box.box_type
    lines: List[str] = [
        f"{bt.name}: {bt.inner_length}x{bt.inner_width}x{bt.inner_height}, ${bt.cost:.2f}",
        f"Weight: {box.weight_total:.2f} / {bt.max_weight} lbs",
        "Items:",
    ]
    for placed in box.placements:
        flag = " (fragile)" if placed.item.fragile else ""
        lines.append(f"  - {placed.item.name}{flag}")
    return "\n".join(lines)


def visualize_plan(plan: PackingPlan):
    """
    Show a single window with 'Previous' and 'Next' buttons
    to switch between the boxes of a plan, plus a text summary.
    """
    boxes = plan.boxes
    if not boxes:
        print("No boxes to visualize.")
        return

    state = {"i": 0, "text": None}

    fig = plt.figure()
    ax = fig.add_subplot(111, projection="3d")

    def redraw():
        ax.clear()
        box = boxes[state["i"]]
        draw_packed_box(
            ax, box, title=f"{box.box_type.name} ({state['i'] + 1}/{len(boxes)})"
        )

        if state["text"] is not None:
            state["text"].remove()
        summary = _box_summary_text(box) + f"\n\nPlan total: ${plan.total_cost:.2f}"
        state["text"] = fig.text(
            0.01, 0.01, summary,
            fontsize=8, va="bottom", ha="left",
            bbox=dict(facecolor="white", alpha=0.7, edgecolor="gray"),
        )
        fig.canvas.draw_idle()

    def step(delta):
        def handler(event):
            state["i"] = (state["i"] + delta) % len(boxes)
            redraw()
        return handler

    axprev = fig.add_axes([0.3, 0.02, 0.1, 0.05])
    axnext = fig.add_axes([0.6, 0.02, 0.1, 0.05])

    bprev = Button(axprev, "Previous")
    bprev.on_clicked(step(-1))
    bnext = Button(axnext, "Next")
    bnext.on_clicked(step(1))

    redraw()
    plt.show()
    return fig
