from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Type

import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from filesort.exceptions import ConfigurationError, InvalidPathStrategyError
from filesort.loggers import logger
from filesort.sort.strategies import PathStrategy

DEFAULT_CONFIG_FILE = Path("filesort.yaml")

# YAML file read by the current ``from_yaml`` call, if any
_config_file: ContextVar[Path | None] = ContextVar("filesort_config_file", default=None)


class SortServiceSettings(BaseSettings):
    """
    Configuration of the file sort service.

    Values are read, highest priority first, from keyword arguments,
    ``FILESORT_*`` environment variables and a YAML file
    (``filesort.yaml`` in the working directory unless another file is
    given to :meth:`from_yaml`).

    Examples
    --------
    >>> settings = SortServiceSettings(
    ...     input_dir="incoming",
    ...     output_dir="sorted",
    ...     unknown_dir="unknown",
    ...     path_strategy="dicom_uzg",
    ... )
    >>> settings.path_strategy
    <PathStrategy.UZG: 'dicom_uzg'>
    """

    input_dir: Path = Field(
        description="Directory that is watched for incoming files.",
        title="Input Directory",
        examples=["/data/incoming"],
    )
    output_dir: Path = Field(
        description="Root of the sorted output tree.",
        title="Output Directory",
        examples=["/data/sorted"],
    )
    unknown_dir: Path = Field(
        description="Directory receiving files that cannot be sorted.",
        title="Unknown Data Directory",
        examples=["/data/unknown"],
    )
    path_strategy: PathStrategy = Field(
        default=PathStrategy.DEFAULT,
        description="Layout of the output tree. One of: "
        + ", ".join(PathStrategy.choices()),
        title="Path Strategy",
    )
    scan_interval: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to sleep between two scans of the input directory.",
    )
    io_timeout: float = Field(
        default=10.0,
        ge=0,
        description="Seconds a single copy attempt or directory listing may take. 0 waits forever.",
    )
    retry_delay: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to wait between two copy or remove attempts.",
    )
    copy_attempts: int = Field(
        default=100,
        ge=1,
        description="Copy attempts per file and cycle before the file is deferred.",
    )
    remove_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts to delete a source file after it was copied.",
    )
    min_idle_time: float = Field(
        default=10.0,
        ge=0,
        description="Seconds a file must be unmodified before it is processed. 0 processes files on first sight.",
    )
    max_collision_suffixes: int = Field(
        default=1000,
        ge=0,
        description="Number of `_N` suffixes tried when a destination name is taken.",
    )
    max_files_per_cycle: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of files processed in one cycle.",
    )
    file_extension: str = Field(
        default="dcm",
        min_length=1,
        description="Extension of the sorted files, without the leading dot.",
    )
    remove_empty_dirs: bool = Field(
        default=True,
        description="Remove empty sub-directories of the input directory after each cycle.",
    )
    create_dirs: bool = Field(
        default=True,
        description="Create missing input, output and unknown directories at start-up.",
    )

    model_config = SettingsConfigDict(
        env_prefix="FILESORT_",
        yaml_file=DEFAULT_CONFIG_FILE,
        # logging variables share the prefix
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        config_file = _config_file.get()
        yaml_settings = (
            YamlConfigSettingsSource(settings_cls)
            if config_file is None
            else YamlConfigSettingsSource(settings_cls, yaml_file=config_file)
        )
        return (init_settings, env_settings, yaml_settings)

    @field_validator("path_strategy", mode="before")
    @classmethod
    def _validate_path_strategy(cls, v: Any) -> PathStrategy:
        try:
            return PathStrategy.validate(v)
        except InvalidPathStrategyError as e:
            raise ValueError(str(e)) from e

    @field_validator("file_extension")
    @classmethod
    def _strip_extension_dot(cls, v: str) -> str:
        v = v.strip().lstrip(".")
        if not v:
            msg = "file_extension must not be empty"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _validate_roots(self) -> "SortServiceSettings":
        input_dir = self.input_dir.resolve()
        output_dir = self.output_dir.resolve()
        unknown_dir = self.unknown_dir.resolve()

        if len({input_dir, output_dir, unknown_dir}) != 3:
            msg = "input_dir, output_dir and unknown_dir must be distinct directories"
            raise ValueError(msg)

        for name, root in (("output_dir", output_dir), ("unknown_dir", unknown_dir)):
            if root.is_relative_to(input_dir):
                msg = f"{name} ({root}) must not be inside input_dir ({input_dir})"
                raise ValueError(msg)
        return self

    @classmethod
    def load(cls, **overrides: Any) -> SortServiceSettings:
        """Build settings from the default sources.

        Raises
        ------
        ConfigurationError
            If a required value is missing or a value is invalid.
        """
        try:
            return cls(**overrides)
        except ValidationError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e
        except (OSError, yaml.YAMLError) as e:
            msg = f"Failed to read configuration file: {e}"
            raise ConfigurationError(msg) from e

    @classmethod
    def from_yaml(cls, path: Path, **overrides: Any) -> SortServiceSettings:
        """Load settings with ``path`` in place of ``filesort.yaml``.

        The file keeps the lowest priority: ``FILESORT_*`` environment
        variables and ``overrides`` both take precedence over it.

        Raises
        ------
        ConfigurationError
            If the file is missing, unreadable or holds invalid values.
        """
        if not path.is_file():
            msg = f"Configuration file not found: {path}"
            raise ConfigurationError(msg)
        logger.debug("Loading configuration file", path=path)
        token = _config_file.set(path)
        try:
            return cls.load(**overrides)
        finally:
            _config_file.reset(token)

    def to_yaml(self, path: Path) -> None:
        """Write the settings to ``path`` as YAML."""
        model = self.model_dump(mode="json")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w") as f:
                yaml.dump(model, f, sort_keys=False)
        except OSError as e:
            msg = f"Failed to save settings to {path}: {e}"
            raise ConfigurationError(msg) from e

    def prepare_directories(self) -> None:
        """Make sure the three root directories exist.

        Missing directories are created when ``create_dirs`` is set.

        Raises
        ------
        ConfigurationError
            If a root is missing and may not be created, cannot be created,
            or is not a directory.
        """
        for name in ("input_dir", "output_dir", "unknown_dir"):
            root: Path = getattr(self, name)
            if not root.exists():
                if not self.create_dirs:
                    msg = f"{name} does not exist: {root}"
                    raise ConfigurationError(msg)
                try:
                    root.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    msg = f"Failed to create {name} {root}: {e}"
                    raise ConfigurationError(msg) from e
                logger.info("Created directory", name=name, path=root)
            if not root.is_dir():
                msg = f"{name} is not a directory: {root}"
                raise ConfigurationError(msg)
