"""Visualization tools for metabridge (rendered by the engine)."""

from metabridge.visualization.forest import forest_plot_data, generate_forest_plot

__all__ = [
    "forest_plot_data",
    "generate_forest_plot",
]
