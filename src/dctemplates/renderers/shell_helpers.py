"""Fallback test-utils.sh for test directories that do not ship their own."""

from typing import Optional

from jinja2 import Environment

from ._env import make_env


def render(env: Optional[Environment] = None) -> str:
    if env is None:
        env = make_env()
    return env.get_template("test-utils.sh.j2").render()
