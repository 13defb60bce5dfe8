"""
Run configuration.

A frozen value passed into each dump; nothing here is global or mutated after
validation. JSON files are accepted as a convenience for the CLI.
"""

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .domain.errors import ConfigurationError
from .models import ObjectKind, OutputMode

DEFAULT_CONFIG_PATH = Path(".schemasnap") / "config.json"

DIALECTS = ("postgresql", "mysql", "sqlite")

KIND_TOGGLES: dict[ObjectKind, str] = {
    ObjectKind.EXTENSION: "include_extensions",
    ObjectKind.TYPE: "include_types",
    ObjectKind.SEQUENCE: "include_sequences",
    ObjectKind.TABLE: "include_tables",
    ObjectKind.INDEX: "include_indexes",
    ObjectKind.FOREIGN_KEY: "include_foreign_keys",
    ObjectKind.VIEW: "include_views",
    ObjectKind.FUNCTION: "include_functions",
    ObjectKind.TRIGGER: "include_triggers",
}

# Kinds that cannot be emitted without the table they attach to
TABLE_ATTACHED_TOGGLES = ("include_indexes", "include_foreign_keys", "include_triggers")


class RunConfiguration(BaseModel):
    """Immutable per-run settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    output_path: Path = Path("db/structure.sql")
    output_mode: OutputMode = OutputMode.SINGLE_FILE
    dialect: Literal["auto", "postgresql", "mysql", "sqlite"] = "auto"
    namespace: str | None = None

    include_extensions: bool = True
    include_types: bool = True
    include_sequences: bool = True
    include_tables: bool = True
    include_indexes: bool = True
    include_foreign_keys: bool = True
    include_views: bool = True
    include_functions: bool = True
    include_triggers: bool = True

    retention_limit: int = Field(default=10, ge=1)
    store_path: Path = Path(".schemasnap")

    indent_size: int = Field(default=2, ge=0, le=8)
    max_lines_per_file: int = Field(default=500, ge=1)
    overflow_threshold: float = Field(default=1.1, ge=1.0)
    generate_manifest: bool = True

    @model_validator(mode="before")
    @classmethod
    def _infer_output_mode(cls, data: Any) -> Any:
        """Directory-like output paths (no suffix) imply multi-file output."""
        if not isinstance(data, dict) or data.get("output_mode") is not None:
            return data
        data = dict(data)
        output_path = Path(data.get("output_path") or "db/structure.sql")
        data["output_mode"] = (
            OutputMode.SINGLE_FILE if output_path.suffix else OutputMode.MULTI_FILE
        )
        return data

    @model_validator(mode="after")
    def _check_combinations(self) -> "RunConfiguration":
        if not self.enabled_kinds():
            raise ValueError("at least one object kind must be enabled")
        if not self.include_tables:
            attached = [name for name in TABLE_ATTACHED_TOGGLES if getattr(self, name)]
            if attached:
                raise ValueError(f"{', '.join(attached)} require include_tables")
        if self.output_mode == OutputMode.MULTI_FILE and self.output_path.suffix:
            raise ValueError(
                f"multi_file output needs a directory path, got '{self.output_path}'"
            )
        if self.namespace is not None and not self.namespace.strip():
            raise ValueError("namespace must not be blank")
        return self

    def enabled_kinds(self) -> frozenset[ObjectKind]:
        """Kinds switched on by the include_* toggles."""
        return frozenset(kind for kind, toggle in KIND_TOGGLES.items() if getattr(self, toggle))

    @property
    def is_multi_file(self) -> bool:
        return self.output_mode == OutputMode.MULTI_FILE


def _describe_validation_error(err: ValidationError) -> str:
    problems = []
    for error in err.errors():
        location = ".".join(str(part) for part in error["loc"])
        message = error["msg"].removeprefix("Value error, ")
        problems.append(f"{location}: {message}" if location else message)
    return "Invalid run configuration: " + "; ".join(problems)


def build_run_configuration(**values: Any) -> RunConfiguration:
    """Validate keyword values into a RunConfiguration.

    Raises:
        ConfigurationError: If any value is invalid or the combination is inconsistent
    """
    try:
        return RunConfiguration.model_validate(values)
    except ValidationError as err:
        raise ConfigurationError(
            message=_describe_validation_error(err), code="invalid_configuration"
        ) from err


def load_run_configuration(path: Path | None = None, **overrides: Any) -> RunConfiguration:
    """Load configuration from a JSON file and apply non-None keyword overrides.

    A missing file is only an error when ``path`` was given explicitly.
    """
    values: dict[str, Any] = {}
    config_path = path or DEFAULT_CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            raise ConfigurationError(
                message=f"Cannot read configuration {config_path}: {err}",
                code="invalid_configuration",
            ) from err
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                message=f"Configuration {config_path} must contain a JSON object",
                code="invalid_configuration",
            )
        values.update(loaded)
    elif path is not None:
        raise ConfigurationError(
            message=f"Configuration file not found: {path}", code="config_not_found"
        )

    values.update({key: value for key, value in overrides.items() if value is not None})
    return build_run_configuration(**values)
