"""Template collaborator: pre-rendered view templates and the application shell."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"
SHELL_TEMPLATE = "view.html"


def create_jinja_env(templates_directory: Path | None = None) -> Environment:
    """Jinja2 environment where application templates shadow the bundled assets."""

    loaders = []
    if templates_directory is not None and templates_directory.is_dir():
        loaders.append(FileSystemLoader(str(templates_directory)))
    loaders.append(FileSystemLoader(str(ASSETS_DIR)))
    return Environment(
        loader=ChoiceLoader(loaders),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


class Templates:
    """Holds the pre-rendered templates served under ``/templates/<name>``.

    Templates come from an explicit mapping and, once :meth:`load` ran, from
    every ``*.html`` file below ``directory``. The shell is rendered once from
    the application's ``view.html`` when it ships one, otherwise from the
    bundled default.
    """

    def __init__(
        self,
        templates: Mapping[str, str] | None = None,
        *,
        directory: str | Path | None = None,
        name: str = "ember",
        module_name: str = "app",
        stylesheets: Sequence[str] = (),
        scripts: Sequence[str] = (),
    ) -> None:
        self._templates: dict[str, str] = dict(templates or {})
        self.directory = Path(directory) if directory is not None else None
        self.name = name
        self.module_name = module_name
        self.stylesheets = tuple(stylesheets)
        self.scripts = tuple(scripts)
        self._env = create_jinja_env(self.directory)
        self._shell: str | None = None

    @property
    def env(self) -> Environment:
        return self._env

    def load(self) -> None:
        if self.directory is None:
            return
        if not self.directory.is_dir():
            logger.warning("Templates directory %s does not exist", self.directory)
            return
        count = 0
        for path in sorted(self.directory.rglob("*.html")):
            relative = path.relative_to(self.directory).as_posix()
            if relative == SHELL_TEMPLATE:
                continue
            self._templates.setdefault(relative, path.read_text(encoding="utf-8"))
            count += 1
        logger.debug("Loaded %d templates from %s", count, self.directory)

    def add(self, name: str, html: str) -> None:
        self._templates[name] = html

    def template(self, name: str) -> str | None:
        return self._templates.get(name.lstrip("/"))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lstrip("/") in self._templates

    def render_shell(self) -> str:
        if self._shell is None:
            self._shell = self._env.get_template(SHELL_TEMPLATE).render(
                name=self.name,
                module_name=self.module_name,
                stylesheets=self.stylesheets,
                scripts=self.scripts,
            )
        return self._shell


__all__ = ["ASSETS_DIR", "Templates", "create_jinja_env"]
