"""Kida environment setup and template lookup.

The environment is created once when the app freezes and passed through
the request pipeline. ``locate_template`` answers "does this template
exist?" by looking at the search directories on disk, the same lookup
the template override of a rewrite rule relies on.
"""

from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

from kida import ChoiceLoader, Environment, FileSystemLoader

from rewrite_rules.config import AppConfig
from rewrite_rules.templating.returns import Template


def template_dirs(config: AppConfig) -> tuple[Path, ...]:
    """Template search directories, in lookup order."""
    return (Path(config.template_dir), *(Path(d) for d in config.component_dirs))


def create_environment(
    config: AppConfig,
    filters: dict[str, Callable[..., Any]],
    globals_: dict[str, Any],
) -> Environment:
    """Create a kida Environment from app configuration."""
    loader = ChoiceLoader([FileSystemLoader(str(d)) for d in template_dirs(config)])
    env = Environment(
        loader=loader,
        autoescape=config.autoescape,
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )
    if filters:
        env.update_filters(filters)
    for name, value in globals_.items():
        env.add_global(name, value)
    return env


def locate_template(names: str | Sequence[str], search_dirs: Iterable[Path]) -> str | None:
    """Return the first of *names* that exists in *search_dirs*, or ``None``."""
    if isinstance(names, str):
        names = (names,)
    dirs = tuple(search_dirs)
    for name in names:
        if not name:
            continue
        for directory in dirs:
            if (directory / name).is_file():
                return name
    return None


def render_template(env: Environment, tpl: Template) -> str:
    """Render a full template to string."""
    template = env.get_template(tpl.name)
    return template.render(tpl.context)
