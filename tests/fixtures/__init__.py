# tests/fixtures/__init__.py
"""Shared builders for Stepwise tests.

    from tests.fixtures.factories import make_node, make_link, txt2img_graph
"""
