from .format import render_external_revenue, render_invoice, render_projection

__all__ = ["render_external_revenue", "render_invoice", "render_projection"]
