"""Shared command context: building the engine from config and global options."""

import typer

from portalkeys.core.config import load_config
from portalkeys.core.engine import KeyEngine


def get_engine(ctx: typer.Context) -> KeyEngine:
    """
    Build a KeyEngine for the current command.

    The global --db option wins over the configured store path.
    """
    obj = ctx.obj or {}
    config = load_config()
    return KeyEngine.from_config(config, db_path=obj.get("db"))
