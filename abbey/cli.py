"""Command line interface for abbey."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import typer
from loguru import logger
from pydantic import ValidationError

from .config import AppConfig, load_config
from .config.inspector import check_config, explain_config, section_notes
from .console import run_flow, run_write
from .flow import FlowStateError
from .storage import Composition, Flow, PersistenceError, Project, format_duration
from .text import excerpt
from .timers import SchedulerTimers
from .workspace import Notification, Workspace

_SHORT_ID = 8


@dataclass(slots=True)
class CLIState:
    """Holds shared state between Typer commands."""

    config_path: Path | None
    _config: AppConfig | None = None
    _workspace: Workspace | None = None

    def ensure_config(self) -> AppConfig:
        if self._config is None:
            if self.config_path is None:
                logger.debug("No configuration file given; using defaults")
                self._config = AppConfig()
            else:
                logger.info("Loading configuration from {}", self.config_path)
                self._config = load_config(AppConfig, self.config_path)
        return self._config

    def ensure_workspace(self) -> Workspace:
        if self._workspace is None:
            config = _load_config_or_exit(self)
            try:
                self._workspace = Workspace.open(config, SchedulerTimers(), on_notify=_echo_notification)
            except PersistenceError as exc:
                logger.error("Cannot open storage: {}", exc)
                _exit(1)
        assert self._workspace is not None
        return self._workspace

    def close(self) -> None:
        if self._workspace is not None:
            self._workspace.close()
            self._workspace = None


app = typer.Typer(help="Abbey: local-first writing with timed flow sessions")
config_app = typer.Typer(help="Validate and document configuration files")
app.add_typer(config_app, name="config")
note_app = typer.Typer(help="Notes attached to a composition")
app.add_typer(note_app, name="note")
folder_app = typer.Typer(help="Organise compositions into folders")
app.add_typer(folder_app, name="folder")
project_app = typer.Typer(help="Ordered collections of compositions")
app.add_typer(project_app, name="project")
settings_app = typer.Typer(help="Show or change stored preferences")
app.add_typer(settings_app, name="settings")


def _normalize_format(value: str) -> str:
    return value.lower()


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):  # pragma: no cover - defensive guard
        raise RuntimeError("CLI context is not initialised")
    return state


def _exit(code: int) -> None:
    raise typer.Exit(code)


def _load_config_or_exit(state: CLIState) -> AppConfig:
    try:
        return state.ensure_config()
    except FileNotFoundError as exc:
        logger.error("Configuration file not found: {}", exc)
        _exit(2)
    except ValidationError as exc:
        logger.error("Invalid configuration: {}", exc)
        _exit(3)
    except ValueError as exc:
        logger.error("Malformed configuration: {}", exc)
        _exit(1)
    raise AssertionError("unreachable")


def _echo_notification(notification: Notification) -> None:
    if notification.is_error:
        logger.error(notification.message)
    else:
        logger.info(notification.message)


def _short(identifier: str) -> str:
    return identifier[:_SHORT_ID]


def _match(reference: str, candidates: Iterable[str], kind: str) -> str:
    """Resolve a full id or a unique id prefix."""
    ids = list(candidates)
    if reference in ids:
        return reference
    matches = [candidate for candidate in ids if candidate.startswith(reference)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        logger.error("No {} matches '{}'", kind, reference)
    else:
        logger.error("'{}' is ambiguous: {} {}s match", reference, len(matches), kind)
    _exit(1)
    raise AssertionError("unreachable")


def _composition_id(workspace: Workspace, reference: str) -> str:
    return _match(reference, (c.id for c in workspace.registry.compositions), "composition")


def _folder_id(workspace: Workspace, reference: str) -> str:
    return _match(reference, (f.id for f in workspace.registry.folders), "folder")


def _project_id(workspace: Workspace, reference: str) -> str:
    return _match(reference, (p.id for p in workspace.projects.projects), "project")


def _flow_id(flows: list[Flow], reference: str) -> str:
    return _match(reference, (flow.id for flow in flows), "flow")


def _format_composition(composition: Composition, *, active: bool = False) -> str:
    marker = "*" if active else " "
    return f"{marker} {_short(composition.id)}  {composition.display_title}  ({composition.word_count} words)"


def _format_project(project: Project) -> str:
    return f"  {_short(project.id)}  {project.title}  ({len(project.composition_ids)} compositions)"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None,
        help="Path to the TOML configuration file (defaults are used when omitted)",
    ),
) -> None:
    """Initialise CLI state."""

    state = CLIState(config_path=config.resolve() if config is not None else None)
    ctx.obj = state
    ctx.call_on_close(state.close)

    if ctx.invoked_subcommand is None:
        logger.warning("No command provided. Try 'status' or 'new'.")
        _exit(0)


@app.command(help="Show storage location and collection sizes")
def status(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    registry = workspace.registry
    document = workspace.flow_document()
    active = registry.active
    typer.echo(f"Storage root: {workspace.store.root}")
    typer.echo(f"Compositions: {len(registry.visible())} ({len(registry.archived())} archived)")
    typer.echo(f"Folders: {len(registry.folders)}")
    typer.echo(f"Projects: {len(workspace.projects.projects)}")
    typer.echo(
        f"Flows: {document.session_count} sessions, {document.total_word_count} words, "
        f"{format_duration(document.total_time_seconds)}"
    )
    typer.echo(f"Active: {active.display_title if active is not None else '-'}")


@app.command(help="Create a composition and make it active")
def new(
    ctx: typer.Context,
    title: str | None = typer.Option(None, help="Title; defaults to the creation time"),
    content: str = typer.Option("", help="Initial content"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    composition = workspace.new_composition(title=title, content=content)
    typer.echo(composition.id)


@app.command("list", help="List compositions, newest first")
def list_compositions(
    ctx: typer.Context,
    archived: bool = typer.Option(False, "--archived", help="Show archived compositions instead"),
    folder: str | None = typer.Option(None, help="Only compositions in this folder"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    registry = workspace.registry
    if archived:
        items = registry.archived()
    elif folder is not None:
        items = registry.in_folder(_folder_id(workspace, folder))
    else:
        items = registry.visible()
    for composition in items:
        typer.echo(_format_composition(composition, active=composition.id == registry.active_id))


@app.command(help="Print a composition as Markdown")
def show(ctx: typer.Context, composition: str = typer.Argument(..., help="Composition id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    found = workspace.registry.get(_composition_id(workspace, composition))
    assert found is not None
    typer.echo(workspace.store.render_composition(found), nl=False)


@app.command(help="Change the title or content of a composition")
def edit(
    ctx: typer.Context,
    composition: str = typer.Argument(..., help="Composition id or prefix"),
    title: str | None = typer.Option(None, help="New title"),
    content: str | None = typer.Option(None, help="Replace the content"),
    append: str | None = typer.Option(None, help="Append a paragraph to the content"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    workspace.open_composition(_composition_id(workspace, composition))
    if append is not None:
        current = workspace.active
        assert current is not None
        content = f"{content if content is not None else current.content}\n\n{append}".lstrip("\n")
    updated = workspace.edit(title=title, content=content)
    if updated is not None:
        logger.info("Updated '{}' ({} words)", updated.display_title, updated.word_count)


@app.command(help="Edit a composition interactively from standard input")
def write(
    ctx: typer.Context,
    composition: str | None = typer.Argument(None, help="Composition id or prefix; defaults to the last one"),
) -> None:
    state = _get_state(ctx)
    config = _load_config_or_exit(state)
    target: str | None = None
    if composition is not None:
        target = _composition_id(state.ensure_workspace(), composition)
        state.close()
    try:
        ok = run_write(config, target)
    except PersistenceError as exc:
        logger.error("Cannot open storage: {}", exc)
        _exit(1)
        return
    if not ok:
        _exit(1)


@app.command(help="Archive a composition")
def archive(ctx: typer.Context, composition: str = typer.Argument(..., help="Composition id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.archive(_composition_id(workspace, composition)):
        _exit(1)
    logger.info("Archived {}", composition)


@app.command(help="Restore an archived composition")
def restore(ctx: typer.Context, composition: str = typer.Argument(..., help="Composition id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.restore(_composition_id(workspace, composition)):
        _exit(1)
    logger.info("Restored {}", composition)


@app.command(help="Move a composition into a folder, or out of any folder")
def move(
    ctx: typer.Context,
    composition: str = typer.Argument(..., help="Composition id or prefix"),
    folder: str | None = typer.Option(None, help="Target folder; omit to remove from its folder"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    composition_id = _composition_id(workspace, composition)
    folder_id = _folder_id(workspace, folder) if folder is not None else None
    if not workspace.move_to_folder(composition_id, folder_id):
        _exit(1)


@app.command(help="Export a composition to Markdown")
def export(ctx: typer.Context, composition: str = typer.Argument(..., help="Composition id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    path = workspace.export_composition(_composition_id(workspace, composition))
    if path is None:
        _exit(1)
    typer.echo(str(path))


@note_app.command("add", help="Attach a note to a composition")
def note_add(
    ctx: typer.Context,
    composition: str = typer.Argument(..., help="Composition id or prefix"),
    text: str = typer.Argument(..., help="Note text"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    workspace.open_composition(_composition_id(workspace, composition))
    note = workspace.add_note(text)
    assert note is not None
    typer.echo(note.id)


@note_app.command("delete", help="Remove a note from a composition")
def note_delete(
    ctx: typer.Context,
    composition: str = typer.Argument(..., help="Composition id or prefix"),
    note: str = typer.Argument(..., help="Note id or prefix"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    workspace.open_composition(_composition_id(workspace, composition))
    active = workspace.active
    assert active is not None
    note_id = _match(note, (n.id for n in active.notes), "note")
    if not workspace.delete_note(note_id):
        _exit(1)


@folder_app.command("create", help="Create a folder")
def folder_create(ctx: typer.Context, name: str = typer.Argument(..., help="Folder name")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    try:
        folder = workspace.create_folder(name)
    except ValueError as exc:
        logger.error("{}", exc)
        _exit(1)
        return
    typer.echo(folder.id)


@folder_app.command("rename", help="Rename a folder")
def folder_rename(
    ctx: typer.Context,
    folder: str = typer.Argument(..., help="Folder id or prefix"),
    name: str = typer.Argument(..., help="New name"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.rename_folder(_folder_id(workspace, folder), name):
        _exit(1)


@folder_app.command("toggle", help="Expand or collapse a folder")
def folder_toggle(ctx: typer.Context, folder: str = typer.Argument(..., help="Folder id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    expanded = workspace.toggle_folder(_folder_id(workspace, folder))
    typer.echo("expanded" if expanded else "collapsed")


@folder_app.command("delete", help="Delete a folder; its compositions are kept")
def folder_delete(ctx: typer.Context, folder: str = typer.Argument(..., help="Folder id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    detached = workspace.delete_folder(_folder_id(workspace, folder))
    logger.info("Deleted folder; {} composition(s) moved out", len(detached or []))


@folder_app.command("list", help="List folders and their compositions")
def folder_list(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    registry = workspace.registry
    for folder in registry.folders:
        members = registry.in_folder(folder.id)
        typer.echo(f"{'-' if folder.expanded else '+'} {_short(folder.id)}  {folder.name}  ({len(members)})")
        if folder.expanded:
            for composition in members:
                typer.echo(f"  {_format_composition(composition, active=composition.id == registry.active_id)}")


@project_app.command("create", help="Create a project")
def project_create(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Project title"),
    description: str = typer.Option("", help="Short description"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    try:
        project = workspace.create_project(title, description)
    except ValueError as exc:
        logger.error("{}", exc)
        _exit(1)
        return
    typer.echo(project.id)


@project_app.command("list", help="List projects")
def project_list(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    for project in workspace.projects.projects:
        typer.echo(_format_project(project))


@project_app.command("show", help="Show the compositions of a project in order")
def project_show(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    markdown: bool = typer.Option(False, "--markdown", help="Print the rendered Markdown"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    project_id = _project_id(workspace, project)
    if markdown:
        typer.echo(workspace.render_project(project_id) or "", nl=False)
        return
    found = workspace.projects.get(project_id)
    assert found is not None
    typer.echo(found.title)
    if found.description:
        typer.echo(found.description)
    for index, composition in enumerate(workspace.project_compositions(project_id)):
        typer.echo(f"{index:>3}. {_short(composition.id)}  {composition.display_title}")


@project_app.command("rename", help="Rename a project")
def project_rename(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    title: str = typer.Argument(..., help="New title"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.rename_project(_project_id(workspace, project), title):
        _exit(1)


@project_app.command("describe", help="Set the project description")
def project_describe(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    description: str = typer.Argument(..., help="Description text"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.describe_project(_project_id(workspace, project), description):
        _exit(1)


@project_app.command("add", help="Append a composition to a project")
def project_add(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    composition: str = typer.Argument(..., help="Composition id or prefix"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.add_to_project(_project_id(workspace, project), _composition_id(workspace, composition)):
        logger.warning("Composition is already part of the project")
        _exit(1)


@project_app.command("remove", help="Remove a composition from a project")
def project_remove(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    composition: str = typer.Argument(..., help="Composition id or prefix"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.remove_from_project(_project_id(workspace, project), _composition_id(workspace, composition)):
        _exit(1)


@project_app.command("move", help="Move the composition at one position to another")
def project_move(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project id or prefix"),
    from_index: int = typer.Argument(..., help="Current position (0-based)"),
    to_index: int = typer.Argument(..., help="New position (0-based)"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.move_in_project(_project_id(workspace, project), from_index, to_index):
        logger.error("Cannot move position {} to {}", from_index, to_index)
        _exit(1)


@project_app.command("delete", help="Delete a project; its compositions are kept")
def project_delete(ctx: typer.Context, project: str = typer.Argument(..., help="Project id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    if not workspace.delete_project(_project_id(workspace, project)):
        _exit(1)


@project_app.command("export", help="Export a project as one Markdown document")
def project_export(ctx: typer.Context, project: str = typer.Argument(..., help="Project id or prefix")) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    path = workspace.export_project(_project_id(workspace, project))
    if path is None:
        _exit(1)
    typer.echo(str(path))


@app.command(help="Run a timed free-writing session on standard input")
def flow(
    ctx: typer.Context,
    minutes: int | None = typer.Option(None, help="Session length; one of the configured durations"),
) -> None:
    state = _get_state(ctx)
    config = _load_config_or_exit(state)
    chosen = minutes if minutes is not None else config.flow.default_minutes
    if chosen not in config.flow.durations:
        logger.error("Choose one of {} minutes", config.flow.durations)
        _exit(1)
    try:
        completed = run_flow(config, chosen)
    except PersistenceError as exc:
        logger.error("Cannot open storage: {}", exc)
        _exit(1)
        return
    except FlowStateError as exc:
        logger.error("{}", exc)
        _exit(1)
        return
    if completed is None:
        logger.warning("Flow session discarded")


@app.command(help="List completed flow sessions")
def flows(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    for item in workspace.flows():
        stamp = item.created_at.astimezone().strftime("%Y-%m-%d %H:%M")
        preview = excerpt(item.content, 40)
        typer.echo(
            f"  {_short(item.id)}  {stamp}  {item.duration_minutes} min, {item.word_count} words  {preview}"
        )


@app.command(help="Print every flow session as one Markdown journal")
def journal(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    typer.echo(workspace.render_journal(), nl=False)


@app.command("use-flow", help="Turn a flow into a new composition or append it to one")
def use_flow(
    ctx: typer.Context,
    flow_ref: str = typer.Argument(..., metavar="FLOW", help="Flow id or prefix"),
    into: str | None = typer.Option(None, help="Append to this composition instead of creating one"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    flow_id = _flow_id(workspace.flows(), flow_ref)
    if into is None:
        composition = workspace.use_flow_in_new_composition(flow_id)
        if composition is None:
            _exit(1)
            return
        typer.echo(composition.id)
        return
    if not workspace.append_flow_to_composition(flow_id, _composition_id(workspace, into)):
        _exit(1)


@settings_app.command("show", help="Print the stored settings as JSON")
def settings_show(ctx: typer.Context) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    typer.echo(workspace.settings.model_dump_json(indent=2))


@settings_app.command("set", help="Change one setting, e.g. 'font_size 20' or 'publishing.endpoint URL'")
def settings_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting name; nested fields use a dot"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    workspace = _get_state(ctx).ensure_workspace()
    section, _, field = key.partition(".")
    changes: dict[str, Any]
    if field:
        nested = getattr(workspace.settings, section, None)
        if nested is None or not hasattr(nested, "model_dump"):
            logger.error("Unknown setting '{}'", key)
            _exit(1)
            return
        changes = {section: {**nested.model_dump(), field: value}}
    else:
        changes = {key: value}
    unknown = set(changes) - set(type(workspace.settings).model_fields)
    if unknown:
        logger.error("Unknown setting '{}'", key)
        _exit(1)
    try:
        workspace.update_settings(**changes)
    except ValidationError as exc:
        logger.error("Invalid value for '{}': {}", key, exc.errors()[0]["msg"])
        _exit(1)


@config_app.command(help="Validate the configuration file")
def check(
    ctx: typer.Context,
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for validation results",
        callback=_normalize_format,
    ),
) -> None:
    state = _get_state(ctx)
    if state.config_path is None:
        logger.error("Pass --config with the file to validate")
        _exit(2)
        return
    result, exit_code, _ = check_config(state.config_path)

    if format == "json":
        print(json.dumps(result, indent=2, ensure_ascii=False, default=str))
        _exit(exit_code)

    if result["status"] == "ok":
        logger.info("Configuration OK: {}", result["config_path"])
        for warning in result["warnings"]:
            logger.warning(warning)
    else:
        error: dict[str, Any] = result["error"]
        logger.error(
            "Configuration error ({}) for {}: {}",
            error["type"],
            result["config_path"],
            error["message"],
        )
        for detail in error.get("details", []):
            location = detail["loc"] or "<root>"
            logger.error("  - {}: {} ({})", location, detail["message"], detail["type"])

    _exit(exit_code)


@config_app.command(help="Describe available configuration fields")
def explain(
    format: str = typer.Option(  # noqa: A002 - match CLI option name
        "text",
        "--format",
        case_sensitive=False,
        help="Output format for configuration schema",
        callback=_normalize_format,
    ),
) -> None:
    fields = explain_config()
    notes = section_notes()

    if format == "json":
        print(json.dumps({"sections": notes, "fields": fields}, indent=2, ensure_ascii=False, default=str))
        return

    current_section: str | None = None
    for field in fields:
        if field["section"] != current_section:
            current_section = field["section"]
            logger.info("[{}] {}", current_section, notes.get(current_section, ""))
        default_value = field["default"]
        if isinstance(default_value, (dict, list)):
            default_repr = json.dumps(default_value, ensure_ascii=False, default=str)
        else:
            default_repr = str(default_value)
        constraints = "; ".join(field["constraints"]) or "none"
        logger.info(
            "  - {name} ({type}, default {default}): {description} [constraints: {constraints}]",
            name=field["name"],
            type=field["type"],
            default=default_repr,
            description=field["description"] or "(no description)",
            constraints=constraints,
        )


def main(argv: list[str] | None = None) -> int:
    """Entry point compatible with setuptools console scripts."""

    try:
        result = app(args=argv, standalone_mode=False)
    except typer.Exit as exc:  # pragma: no cover - Typer translates exit codes
        return exc.exit_code
    if isinstance(result, int):
        return result
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
