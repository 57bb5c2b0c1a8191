"""Layered settings for one fmctl invocation.

Sources, highest priority first:

1. keyword arguments (the CLI flags that were actually given)
2. ``FMCTL_*`` environment variables, ``__`` separating nested sections
   (``FMCTL_BOUNDS__MAX_FILES=50``)
3. the config file: ``fmctl.toml`` or ``[tool.fmctl]`` in ``pyproject.toml``
4. defaults baked into :mod:`fmctl.config.models`
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from fmctl.config.discovery import ConfigError, find_config, read_config_table
from fmctl.config.models import BoundsConfig, OutputConfig, PipelineConfig

logger = logging.getLogger(__name__)


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings table of the discovered config file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._table = read_config_table(path) if path is not None else {}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._table.get(field_name), field_name, field_name in self._table

    def __call__(self) -> dict[str, Any]:
        known = self.settings_cls.model_fields
        unknown = sorted(set(self._table) - set(known))
        if unknown:
            logger.debug("Ignoring unknown config keys in %s: %s", self.path, unknown)
        return {key: value for key, value in self._table.items() if key in known}


class FmSettings(BaseSettings):
    """Resolved settings, held by the CLI's ``AppContext``.

    ``workspace_root`` is where relative inputs resolve: the directory of the
    config file when one is in effect, the CWD otherwise.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        env_prefix="FMCTL_",
        env_nested_delimiter="__",
    )

    workspace_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    bounds: BoundsConfig = Field(default_factory=BoundsConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The config file is chosen before construction and arrives as an init kwarg.
        init_kwargs: dict[str, Any] = getattr(init_settings, "init_kwargs", {})
        return (
            init_settings,
            env_settings,
            ConfigFileSource(settings_cls, init_kwargs.get("config_path")),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        workspace_root: Path | None = None,
        **cli_flags: Any,
    ) -> FmSettings:
        """Discover the config file and build settings with *cli_flags* on top.

        An explicit *config_path* must exist; otherwise discovery walks up
        from *workspace_root* (or the CWD).

        Raises:
            ConfigError: The explicit file is missing or a config file is
                not valid TOML.
        """
        path: Path | None
        if config_path:
            path = Path(config_path).resolve()
            if not path.is_file():
                msg = f"Config file not found: {config_path}"
                raise ConfigError(msg)
        else:
            path = find_config(workspace_root)

        if workspace_root is None:
            workspace_root = path.parent if path is not None else Path.cwd()
        return cls(workspace_root=workspace_root, config_path=path, **cli_flags)
