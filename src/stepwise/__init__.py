"""
Stepwise: linear pipeline editing for node-based image generation graphs.

Compiles generation-server graphs into ordered step lists that are easy to
edit, reorder and diff, and generates graphs back from those steps.
"""

__version__ = "0.3.0"
