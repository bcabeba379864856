"""
Page Plunder: rebuild a rendered web page as editable HTML

Extracts the structure, typography and colors of a live page into a layout
plan, generates a self-contained HTML document from it and refines the plan
until the document's screenshots match the original within a mismatch budget.
"""

__version__ = "0.1.0"
