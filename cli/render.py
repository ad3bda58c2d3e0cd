from __future__ import annotations

from typing import Any, Dict

import typer


def render_ingest_result(payload: Dict[str, Any]) -> None:
    typer.secho(str(payload.get("message", "")), fg=typer.colors.GREEN)


def render_level(level: float) -> None:
    typer.secho("Latest level", bold=True)
    typer.echo(f"level: {level:.2f}")
