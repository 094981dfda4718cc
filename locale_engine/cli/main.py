from __future__ import annotations

import asyncio
import json
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from locale_engine.config import get_config, load_config
from locale_engine.engine import LocaleEngine
from locale_engine.health import HealthStatus, get_health_status
from locale_engine.policy.models import Action
from locale_engine.utils.errors import LocaleEngineError


app = typer.Typer(add_completion=False, help="Locale resolution engine CLI")
console = Console()

ACTION_COLORS = {
    Action.PASS: "green",
    Action.REDIRECT: "yellow",
    Action.CORRECT: "cyan",
    Action.BLOCK: "red",
    Action.ERROR: "magenta",
}
HEALTH_COLORS = {
    HealthStatus.HEALTHY: "green",
    HealthStatus.DEGRADED: "yellow",
    HealthStatus.UNHEALTHY: "red",
}

_state = {"config": "config.yaml", "log_level": None}


@app.callback()
def main(
    config: str = typer.Option("config.yaml", "--config", "-c", help="Path to config.yaml"),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level; overrides LOG_LEVEL and logging.level"
    ),
):
    """Resolve locales and redirect decisions from the command line."""
    _state["config"] = config
    _state["log_level"] = log_level


def _engine() -> LocaleEngine:
    try:
        settings = load_config(_state["config"], log_level=_state["log_level"], reload=True)
        return LocaleEngine(settings.engine_config())
    except LocaleEngineError as e:
        typer.secho(f"Configuration error: {e.message}", fg=typer.colors.RED)
        raise typer.Exit(code=2)


def _kv_table(title: str, rows) -> Table:
    table = Table(title=title, show_header=False, box=box.SIMPLE)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, "" if value is None else str(value))
    return table


@app.command("resolve")
def resolve(
    path: str = typer.Argument(..., help="Requested path, e.g. /user/dashboard"),
    lang: Optional[List[str]] = typer.Option(None, "--lang", "-l", help="Client language (repeat option)"),
    accept_language: Optional[str] = typer.Option(None, "--accept-language", help="Raw Accept-Language header"),
    perm: Optional[List[str]] = typer.Option(None, "--perm", "-p", help="Caller permission (repeat option)"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Run the full pipeline for PATH and show the decision."""
    engine = _engine()

    async def _run():
        async with engine:
            return await engine.resolve(
                path, client_languages=lang or [], accept_language=accept_language, permissions=perm or []
            )

    result = asyncio.run(_run())

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    color = ACTION_COLORS.get(result.action, "white")
    rows = [
        ("Action", f"[{color}]{result.action.value.upper()}[/{color}]"),
        ("Locale", result.locale),
        ("Redirect to", result.redirect_target),
        ("Status", result.status_code),
        ("Reason", result.reason),
        ("Detection", result.metadata.get("detection_source")),
    ]
    if result.metadata.get("required_permissions"):
        rows.append(("Requires", ", ".join(result.metadata["required_permissions"])))
    if result.metadata.get("warning"):
        rows.append(("Warning", result.metadata["warning"].get("message")))
    if result.error:
        rows.append(("Error", result.error.get("message")))
    console.print(_kv_table(path, rows))


@app.command("detect")
def detect(
    path: str = typer.Argument(..., help="Requested path"),
    lang: Optional[List[str]] = typer.Option(None, "--lang", "-l", help="Client language (repeat option)"),
    accept_language: Optional[str] = typer.Option(None, "--accept-language", help="Raw Accept-Language header"),
):
    """Show which locale the detection chain picks for PATH."""
    engine = _engine()

    async def _run():
        async with engine:
            return await engine.detect(path, client_languages=lang or [], accept_language=accept_language)

    result = asyncio.run(_run())
    console.print(
        _kv_table(
            path,
            [
                ("Locale", result.code),
                ("Source", result.source.value),
                ("Confidence", f"{result.confidence:.2f}"),
                ("Match", result.match_type),
                ("Signal", result.original_signal),
            ],
        )
    )


@app.command("validate")
def validate(
    token: str = typer.Argument(..., help="Locale token, e.g. zh_tw"),
    strict: bool = typer.Option(False, "--strict", help="Refuse fallback for malformed codes"),
    no_fallback: bool = typer.Option(False, "--no-fallback", help="Disallow fallback resolution"),
):
    """Normalize and validate a locale token."""
    engine = _engine()
    outcome = engine.validate(token, allow_fallback=not no_fallback, strict=strict)

    rows = [
        ("Normalized", outcome.normalized),
        ("Valid", "[green]yes[/green]" if outcome.is_valid else "[red]no[/red]"),
        ("Fallback", outcome.fallback_used.code if outcome.fallback_used else None),
        ("Issues", "; ".join(outcome.issues) or None),
    ]
    console.print(_kv_table(token, rows))
    if outcome.rejected:
        raise typer.Exit(code=1)


@app.command("localize")
def localize(
    path: str = typer.Argument(..., help="Base path"),
    locale: Optional[str] = typer.Argument(None, help="Locale code; all supported locales if omitted"),
):
    """Print the canonical localized path(s) for PATH."""
    engine = _engine()
    if locale is not None:
        if not engine.registry.is_supported(locale):
            typer.secho(f"Unsupported locale: {locale}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
        typer.echo(engine.to_localized_path(path, locale))
        return

    table = Table(title=f"Localizations of {path}", box=box.SIMPLE)
    table.add_column("Locale", style="bold")
    table.add_column("Name")
    table.add_column("Path")
    for loc in engine.registry.priority_order():
        table.add_row(loc.code, loc.native_name or loc.name, engine.to_localized_path(path, loc.code))
    console.print(table)


@app.command("health")
def health():
    """Run the engine health checks."""
    engine = _engine()

    async def _run():
        try:
            return await get_health_status(engine)
        finally:
            await engine.stop()

    report = asyncio.run(_run())

    settings = get_config()
    console.print(f"[bold]{settings.app_name} {settings.app_version}[/bold]")
    table = Table(title=f"Health: {report['status']}", box=box.SIMPLE)
    table.add_column("Component", style="bold")
    table.add_column("Status")
    table.add_column("Message")
    for name, component in report["components"].items():
        color = HEALTH_COLORS.get(component["status"], "white")
        table.add_row(name, f"[{color}]{component['status']}[/{color}]", component.get("message", ""))
    console.print(table)

    if report["status"] == HealthStatus.UNHEALTHY:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
