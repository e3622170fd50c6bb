"""
Renderers turn run data into text files using the package's Jinja2 templates.
"""

from ._env import make_env
from .shell_helpers import render as render_test_utils
from .summary import render as render_summary

__all__ = ["make_env", "render_summary", "render_test_utils"]
