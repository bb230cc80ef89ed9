"""Conversion of project state into output manifests."""

from scorekit.convert.variables import RenderedVariables, render_variables

__all__ = ["RenderedVariables", "render_variables"]
