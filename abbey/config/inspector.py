"""Validation and schema documentation for abbey configuration files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Union, get_args

from pydantic import BaseModel, ValidationError
from pydantic.fields import FieldInfo

from .app import AppConfig
from .base import load_config
from .utils import resolve_env_reference

_KNOWN_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class ConfigInspectionError(RuntimeError):
    """Raised when configuration inspection fails unexpectedly."""


def _error_result(path: Path, error_type: str, message: str, **extra: Any) -> dict[str, Any]:
    error: dict[str, Any] = {"type": error_type, "message": message}
    error.update(extra)
    return {"status": "error", "config_path": str(path), "error": error}


def check_config(path: Path, *, config_cls: type[AppConfig] = AppConfig) -> tuple[dict[str, Any], int, AppConfig | None]:
    """Validate the configuration file and collect warnings.

    Returns ``(result_dict, exit_code, config_or_None)``. Exit codes: 0 ok,
    1 malformed TOML, 2 unreadable or missing file, 3 schema violations.
    """

    try:
        config = load_config(config_cls, path)
    except FileNotFoundError as exc:
        return _error_result(path, "missing_file", str(exc)), 2, None
    except PermissionError as exc:
        return _error_result(path, "permission_error", str(exc)), 2, None
    except ValidationError as exc:
        details = [
            {
                "loc": _format_error_location(err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return _error_result(path, "validation_error", "Configuration validation failed", details=details), 3, None
    except ValueError as exc:
        return _error_result(path, "invalid_format", str(exc)), 1, None
    except Exception as exc:  # pragma: no cover - unexpected failures
        raise ConfigInspectionError("Unexpected configuration inspection error") from exc

    result = {
        "status": "ok",
        "config_path": str(path),
        "warnings": _collect_warnings(config),
    }
    return result, 0, config


def explain_config(*, config_cls: type[AppConfig] = AppConfig) -> list[dict[str, Any]]:
    """Describe every setting, grouped by section.

    Each entry carries the section it belongs to, the effective default
    and the constraints a value must satisfy, including those enforced by
    validators rather than field bounds.
    """

    defaults = config_cls().model_dump()
    documentation: list[dict[str, Any]] = []
    for section, model_cls, section_defaults in _sections(config_cls, defaults):
        prefix = f"{section}." if section else ""
        for field_name, field in model_cls.model_fields.items():
            if section == "" and field_name in _SECTION_NOTES:
                continue
            name = f"{prefix}{field_name}"
            documentation.append(
                {
                    "name": name,
                    "section": section or "general",
                    "type": _type_name(field.annotation),
                    "default": section_defaults.get(field_name),
                    "description": field.description or "",
                    "constraints": _field_constraints(field) + _VALIDATED_CONSTRAINTS.get(name, []),
                }
            )
    return documentation


def section_notes() -> dict[str, str]:
    """Short notes shown above each section by ``abbey config explain``."""
    return {"general": "Storage location and logging", **_SECTION_NOTES}


_SECTION_NOTES = {
    "autosave": "Edits arm a delayed flush of the composition collection; explicit saves always write at once",
    "flow": "Timed free-writing sessions; the CLI only accepts the durations listed here",
    "storage": "Snapshot, journal and export files under data_root",
}

_VALIDATED_CONSTRAINTS = {
    "flow.durations": ["non-empty", "every entry > 0"],
    "flow.default_minutes": ["one of flow.durations"],
    "storage.journal_name": ["plain file name without path separators"],
}

_BOUNDS = (("gt", ">"), ("ge", ">="), ("lt", "<"), ("le", "<="), ("min_length", "min length"))


def _sections(config_cls: type[AppConfig], defaults: dict[str, Any]) -> list[tuple[str, type[BaseModel], dict[str, Any]]]:
    sections: list[tuple[str, type[BaseModel], dict[str, Any]]] = [("", config_cls, defaults)]
    for name in _SECTION_NOTES:
        annotation = config_cls.model_fields[name].annotation
        assert isinstance(annotation, type) and issubclass(annotation, BaseModel)
        sections.append((name, annotation, defaults[name]))
    return sections


def _type_name(annotation: Any) -> str:
    if isinstance(annotation, type) and not get_args(annotation):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


def _field_constraints(field: FieldInfo) -> list[str]:
    constraints: list[str] = []
    for item in field.metadata:
        for attr, symbol in _BOUNDS:
            value = getattr(item, attr, None)
            if value is not None:
                constraints.append(f"{symbol} {value}")
    return constraints



def _format_error_location(location: Iterable[Union[int, str]]) -> str:
    return ".".join(str(part) for part in location)


def _collect_warnings(config: AppConfig) -> list[str]:
    warnings: list[str] = []

    if config.data_root is None:
        warnings.append("'data_root' is not set; ~/Documents/Abbey will be used")
    else:
        try:
            resolve_env_reference(config.data_root)
        except EnvironmentError as exc:
            warnings.append(f"'data_root' cannot be resolved: {exc}")
    if config.logging_level.upper() not in _KNOWN_LEVELS:
        warnings.append(f"Unknown logging_level '{config.logging_level}'")
    if not config.autosave.enabled:
        warnings.append("Autosave is disabled; edits are only persisted on explicit save")

    return warnings



__all__ = ["check_config", "explain_config", "section_notes", "ConfigInspectionError"]
