"""Config commands: show, enable, disable, set-max, add-trigger, update-trigger,
remove-trigger, list, delete, clear."""
import sys

import click

from autodup.config.settings import EngineSettings
from autodup.store import ConfigStore, StoreResult
from autodup.triggers.types import THRESHOLD_KEYS, DuplicationConfig, Trigger, TriggerType

from .output import error_box, print_json, success_box, table

TRIGGER_TYPES = [t.value for t in TriggerType]


def _store(ctx: click.Context) -> ConfigStore:
    settings: EngineSettings = ctx.obj
    return ConfigStore(settings.store_path, settings.tenant_id)


def _fail(title: str, result: StoreResult, fix_cmd: str | None = None) -> None:
    error_box(title, result.error or "unknown error", fix_cmd)
    sys.exit(1)


def _threshold_text(trigger: Trigger) -> str:
    if trigger.type == TriggerType.MANUAL:
        return "-"
    return f"{THRESHOLD_KEYS[trigger.type]}={trigger.threshold}"


def _trigger_rows(config: DuplicationConfig) -> list[list[str]]:
    return [
        [t.id, t.type.value, "on" if t.enabled else "off", _threshold_text(t), str(t.duplicate_count)]
        for t in config.triggers
    ]


def _load(ctx: click.Context, session_id: str) -> tuple[ConfigStore, DuplicationConfig]:
    store = _store(ctx)
    result = store.get_config(session_id)
    if not result.success:
        _fail("Config: ERROR", result)
    return store, result.config


@click.group()
def config():
    """Per-session duplication configuration."""
    pass


@config.command()
@click.argument('session_id')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def show(ctx: click.Context, session_id: str, as_json: bool):
    """Show a session's duplication config."""
    _, cfg = _load(ctx, session_id)

    if as_json:
        print_json(cfg.to_dict())
        sys.exit(0)

    cap = "unbounded" if cfg.max_duplicates is None else str(cfg.max_duplicates)
    success_box(f"Config: {session_id}", [
        ("Enabled", "yes" if cfg.enabled else "no"),
        ("Max duplicates", cap),
        ("Triggers", str(len(cfg.triggers))),
        ("Auto group", "yes" if cfg.auto_create_group else "no"),
    ], f"autodup config add-trigger {session_id} task_count")

    if cfg.triggers:
        table(["ID", "Type", "State", "Threshold", "Clones"], _trigger_rows(cfg))
    sys.exit(0)


def _set_enabled(ctx: click.Context, session_id: str, enabled: bool) -> None:
    store, cfg = _load(ctx, session_id)
    cfg.enabled = enabled
    result = store.set_config(session_id, cfg)
    if not result.success:
        _fail("Config: ERROR", result)

    success_box("Duplication " + ("Enabled" if enabled else "Disabled"), [
        ("Session", session_id),
        ("Triggers", str(len(cfg.triggers))),
    ], f"autodup config show {session_id}")
    sys.exit(0)


@config.command()
@click.argument('session_id')
@click.pass_context
def enable(ctx: click.Context, session_id: str):
    """Turn duplication on for a session."""
    _set_enabled(ctx, session_id, True)


@config.command()
@click.argument('session_id')
@click.pass_context
def disable(ctx: click.Context, session_id: str):
    """Turn duplication off for a session."""
    _set_enabled(ctx, session_id, False)


@config.command('set-max')
@click.argument('session_id')
@click.argument('max_duplicates', type=click.IntRange(min=0), required=False)
@click.pass_context
def set_max(ctx: click.Context, session_id: str, max_duplicates: int | None):
    """Set the clone cap (omit MAX_DUPLICATES for unbounded)."""
    store, cfg = _load(ctx, session_id)
    cfg.max_duplicates = max_duplicates
    result = store.set_config(session_id, cfg)
    if not result.success:
        _fail("Config: ERROR", result)

    success_box("Cap Updated", [
        ("Session", session_id),
        ("Max duplicates", "unbounded" if max_duplicates is None else str(max_duplicates)),
    ], f"autodup config show {session_id}")
    sys.exit(0)


@config.command('add-trigger')
@click.argument('session_id')
@click.argument('trigger_type', type=click.Choice(TRIGGER_TYPES))
@click.option('--threshold', type=float, help='Override the default threshold')
@click.option('--count', 'duplicate_count', type=click.IntRange(min=1), help='Clones to create')
@click.option('--no-group', is_flag=True, help='Do not group the clones')
@click.option('--prompt', help='Custom prompt template for the clones')
@click.pass_context
def add_trigger(ctx: click.Context, session_id: str, trigger_type: str, threshold: float | None,
                duplicate_count: int | None, no_group: bool, prompt: str | None):
    """Append a trigger with default settings."""
    store = _store(ctx)
    created = store.create_default_trigger(trigger_type)
    if not created.success:
        _fail("Add Trigger: ERROR", created)

    trigger = created.trigger
    if threshold is not None and trigger.type != TriggerType.MANUAL:
        trigger.threshold = int(threshold) if threshold.is_integer() else threshold
    if duplicate_count is not None:
        trigger.duplicate_count = duplicate_count
    if no_group:
        trigger.group_duplicates = False
    if prompt is not None:
        trigger.custom_prompt_template = prompt

    result = store.add_trigger(session_id, trigger)
    if not result.success:
        _fail("Add Trigger: ERROR", result)

    success_box("Trigger Added", [
        ("Session", session_id),
        ("Trigger", trigger.id),
        ("Type", trigger.type.value),
        ("Threshold", _threshold_text(trigger)),
        ("Clones", str(trigger.duplicate_count)),
    ], f"autodup config enable {session_id}")
    sys.exit(0)


@config.command('update-trigger')
@click.argument('session_id')
@click.argument('trigger_id')
@click.option('--enabled/--disabled', default=None, help='Toggle the trigger')
@click.option('--threshold', type=float, help='New threshold')
@click.option('--count', 'duplicate_count', type=click.IntRange(min=1), help='Clones to create')
@click.pass_context
def update_trigger(ctx: click.Context, session_id: str, trigger_id: str, enabled: bool | None,
                   threshold: float | None, duplicate_count: int | None):
    """Change fields of an existing trigger."""
    store, cfg = _load(ctx, session_id)
    existing = cfg.find_trigger(trigger_id)

    updates: dict = {}
    if enabled is not None:
        updates["enabled"] = enabled
    if duplicate_count is not None:
        updates["duplicate_count"] = duplicate_count
    if threshold is not None and existing is not None and existing.type in THRESHOLD_KEYS:
        updates[THRESHOLD_KEYS[existing.type]] = int(threshold) if threshold.is_integer() else threshold

    result = store.update_trigger(session_id, trigger_id, updates)
    if not result.success:
        _fail("Update Trigger: ERROR", result, f"autodup config show {session_id}")

    success_box("Trigger Updated", [
        ("Session", session_id),
        ("Trigger", trigger_id),
        ("State", "on" if result.trigger.enabled else "off"),
        ("Threshold", _threshold_text(result.trigger)),
    ], f"autodup config show {session_id}")
    sys.exit(0)


@config.command('remove-trigger')
@click.argument('session_id')
@click.argument('trigger_id')
@click.pass_context
def remove_trigger(ctx: click.Context, session_id: str, trigger_id: str):
    """Remove a trigger from a session's config."""
    result = _store(ctx).remove_trigger(session_id, trigger_id)
    if not result.success:
        _fail("Remove Trigger: ERROR", result)

    success_box("Trigger Removed", [
        ("Session", session_id),
        ("Trigger", trigger_id),
        ("Remaining", str(len(result.config.triggers))),
    ], f"autodup config show {session_id}")
    sys.exit(0)


@config.command('list')
@click.pass_context
def list_configs(ctx: click.Context):
    """List every stored session config."""
    result = _store(ctx).list_all_configs()
    if not result.success:
        _fail("Config List: ERROR", result)

    rows = [
        [sid, "on" if cfg.enabled else "off", str(len(cfg.triggers)),
         "unbounded" if cfg.max_duplicates is None else str(cfg.max_duplicates)]
        for sid, cfg in sorted(result.configs.items())
    ]
    if not rows:
        click.echo("No stored configs.")
        sys.exit(0)

    table(["Session", "State", "Triggers", "Max"], rows)
    sys.exit(0)


@config.command()
@click.argument('session_id')
@click.pass_context
def delete(ctx: click.Context, session_id: str):
    """Delete a session's stored config."""
    result = _store(ctx).delete_config(session_id)
    if not result.success:
        _fail("Delete Config: ERROR", result)

    success_box("Config Deleted", [("Session", session_id)], "autodup config list")
    sys.exit(0)


@config.command()
@click.confirmation_option(prompt='Delete every stored duplication config?')
@click.pass_context
def clear(ctx: click.Context):
    """Delete all stored configs."""
    result = _store(ctx).clear_all()
    if not result.success:
        _fail("Clear Configs: ERROR", result)

    success_box("Configs Cleared", [("Store", ctx.obj.store_path)], "autodup config list")
    sys.exit(0)
