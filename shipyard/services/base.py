from __future__ import annotations

from shipyard.core.config import Config
from shipyard.core.project import Project
from shipyard.output.console import ConsoleProtocol


class BaseService:
    """Common wiring for pipeline services."""

    def __init__(
        self,
        *,
        project: Project,
        config: Config,
        console: ConsoleProtocol,
    ) -> None:
        self._project = project
        self._config = config
        self._console = console

    @property
    def product(self) -> str:
        return self._config.product
