"""Config commands -- view and modify the stored configuration.

Provides the ``lfm config`` sub-command group for reading, updating and
resetting :class:`~lfm.models.LfmConfig`. Environment overrides
(``LFM_API_KEY``, ``LFM_USER``) are not shown here; these commands only deal
with what is stored on disk.
"""

from __future__ import annotations

import typer

from lfm.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_NULLABLE_KEYS = {"cache.last_cleanup"}


def _mask(secret: str) -> str:
    if len(secret) <= 4:
        return "*" * len(secret)
    return "*" * (len(secret) - 4) + secret[-4:]


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration.

    The API key is masked except for its last four characters.

    Example::

        lfm config show
        lfm --json config show
    """
    from lfm.config import config_path, load_config

    config = load_config()
    data = config.model_dump(mode="json")
    data["api_key"] = _mask(config.api_key)
    info(f"Config file: {config_path()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.expiry_minutes')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to the type of
    the existing field (bool or int). ``none`` clears ``cache.last_cleanup``,
    which makes the next cached call start a cleanup. The
    updated config is validated before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or validation fails.

    Example::

        lfm config set api_key 0123456789abcdef
        lfm config set default_username rj
        lfm config set cache.expiry_minutes 60
        lfm config set cache.enabled false
    """
    from lfm.config import load_config, save_config
    from lfm.models import LfmConfig

    config = load_config()
    data = config.model_dump(mode="json")

    parts = key.split(".")
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[part]

    final_key = parts[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes", "on")
    elif isinstance(current, int):
        try:
            coerced = int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    elif key in _NULLABLE_KEYS and value.lower() in ("none", "null"):
        coerced = None
    else:
        coerced = value

    target[final_key] = coerced

    try:
        new_config = LfmConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_config(new_config)
    shown = _mask(value) if key == "api_key" else coerced
    success(f"Set {key} = {shown}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults, including the API key.

    Asks for confirmation unless ``--force`` is active.
    """
    from lfm.config import save_config
    from lfm.models import LfmConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm("Reset all config to defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_config(LfmConfig())
    success("Configuration reset to defaults.")
