"""
SlideCraft

Turns a topic into an editable slide deck with a hosted text model and
exports the result as PPTX or PDF.
"""

__version__ = "1.0.0"
