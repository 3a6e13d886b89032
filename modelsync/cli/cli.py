"""Command-line interface for modelsync."""

import asyncio
import sys
from pathlib import Path
from typing import Any, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from modelsync import __version__
from modelsync.core.catalog import ModelDescriptor
from modelsync.core.config import ConfigManager, ModelConfig
from modelsync.core.endpoints import resolve_list_models_endpoint
from modelsync.core.providers import PROVIDER_CAPABILITIES, ServiceProvider
from modelsync.core.reconcile import (
    ReconcileReport,
    reconcile_model_config,
    select_compress_model,
    select_compress_provider,
    select_model,
    select_provider,
    selectable_models,
)
from modelsync.core.refresh import RefreshStatus, RefreshWorkflow
from modelsync.utils.log import default_log_dir, get_logger, init_logger

console = Console()
logger = get_logger()

TUNING_FIELDS = (
    "temperature",
    "top_p",
    "max_tokens",
    "presence_penalty",
    "frequency_penalty",
    "history_message_count",
    "compress_message_length_threshold",
    "send_memory",
    "enable_inject_system_prompts",
    "template",
)
_BOOL_FIELDS = {"send_memory", "enable_inject_system_prompts"}


def _parse_provider(value: str) -> ServiceProvider:
    try:
        return ServiceProvider(value)
    except ValueError:
        choices = ", ".join(p.value for p in ServiceProvider)
        raise click.BadParameter(f"Unknown provider '{value}'. Choose from: {choices}")


def _manager(ctx: click.Context) -> ConfigManager:
    return ctx.ensure_object(dict)["manager"]


def _reconcile(manager: ConfigManager) -> ReconcileReport:
    return reconcile_model_config(
        manager.get_model_config(), manager.get_catalog().snapshot(), manager.update_model_config
    )


def _print_report(report: ReconcileReport) -> None:
    for repair in report.repairs:
        label = "Model" if repair.slot == "model" else "Compress model"
        console.print(
            f"[yellow]{label} '{escape(repair.previous)}' is not available for "
            f"{escape(repair.provider)}; switched to '{escape(repair.current)}'.[/yellow]"
        )
    for gap in report.gaps:
        console.print(
            f"[dim]No available models for {escape(gap.provider)}; "
            f"keeping '{escape(gap.model)}'.[/dim]"
        )


def _print_model_config(config: ModelConfig) -> None:
    console.print(f"Model: {escape(config.model)}@{config.provider_name.value}")
    compress_provider = config.compress_provider_name.value if config.compress_provider_name else "-"
    console.print(f"Compress model: {escape(config.compress_model or '-')}@{compress_provider}")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (defaults to ~/.modelsync.json or $MODELSYNC_CONFIG_PATH)",
)
@click.option("--log-file", is_flag=True, help="Also write debug logs to ~/.modelsync/logs")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_file: bool) -> None:
    """modelsync - manage the chat model selection and provider model lists"""
    global logger
    if log_file:
        logger = init_logger(default_log_dir())
    obj = ctx.ensure_object(dict)
    obj["manager"] = ConfigManager(config_path)
    logger.debug(
        "[cli] Starting CLI invocation",
        extra={"subcommand": ctx.invoked_subcommand, "config_path": str(obj["manager"].config_path)},
    )


@cli.command(name="config")
@click.pass_context
def config_cmd(ctx: click.Context) -> None:
    """Show the current model configuration"""
    config = _manager(ctx).get_model_config()
    console.print("\n[bold]Model Configuration[/bold]\n")
    _print_model_config(config)
    for field_name in TUNING_FIELDS:
        console.print(f"{field_name}: {escape(str(getattr(config, field_name)))}")
    console.print()


@cli.command(name="models")
@click.option("--provider", "provider_name", help="Provider to list (defaults to the selected one)")
@click.option("--all", "show_all", is_flag=True, help="List every catalog entry, including unavailable ones")
@click.pass_context
def models_cmd(ctx: click.Context, provider_name: Optional[str], show_all: bool) -> None:
    """List selectable models"""
    manager = _manager(ctx)
    catalog = manager.get_catalog().snapshot()
    config = manager.get_model_config()

    flagged = False
    rows: List[ModelDescriptor]
    if show_all:
        rows = list(catalog)
    else:
        provider = _parse_provider(provider_name) if provider_name else config.provider_name
        rows, flagged = selectable_models(catalog, provider)
        if flagged:
            console.print(
                f"[yellow]No available models for {provider.value}; showing all providers.[/yellow]"
            )

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("")
    table.add_column("Model")
    table.add_column("Provider")
    table.add_column("Available")
    for model in rows:
        selected = model.name == config.model and model.provider_name == config.provider_name
        table.add_row(
            "*" if selected else "",
            escape(model.display_name),
            model.provider_name.value,
            "yes" if model.available else "no",
        )
    console.print(table)


@cli.command(name="providers")
@click.pass_context
def providers_cmd(ctx: click.Context) -> None:
    """List providers and their list-models endpoints"""
    access = _manager(ctx).get_access_config()
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Provider")
    table.add_column("Refresh")
    table.add_column("Endpoint")
    for provider in PROVIDER_CAPABILITIES:
        endpoint = resolve_list_models_endpoint(
            provider, access.stored_base_url(provider), access.is_app
        )
        table.add_row(
            provider.value,
            "yes" if endpoint else "no",
            escape(endpoint) if endpoint else "[dim]unsupported[/dim]",
        )
    console.print(table)


def _select(ctx: click.Context, mutator: Any) -> None:
    manager = _manager(ctx)
    manager.update_model_config(mutator)
    _print_report(_reconcile(manager))
    _print_model_config(manager.get_model_config())


@cli.command(name="use")
@click.argument("value")
@click.pass_context
def use_cmd(ctx: click.Context, value: str) -> None:
    """Select the chat model, as MODEL or MODEL@PROVIDER"""
    try:
        _select(ctx, lambda config: select_model(config, value))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


@cli.command(name="use-provider")
@click.argument("provider_name")
@click.pass_context
def use_provider_cmd(ctx: click.Context, provider_name: str) -> None:
    """Select the chat provider and its first available model"""
    provider = _parse_provider(provider_name)
    catalog = _manager(ctx).get_catalog().snapshot()
    _select(ctx, lambda config: select_provider(config, catalog, provider))


@cli.command(name="compress-use")
@click.argument("value")
@click.pass_context
def compress_use_cmd(ctx: click.Context, value: str) -> None:
    """Select the compression model, as MODEL or MODEL@PROVIDER"""
    try:
        _select(ctx, lambda config: select_compress_model(config, value))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


@cli.command(name="compress-provider")
@click.argument("provider_name")
@click.pass_context
def compress_provider_cmd(ctx: click.Context, provider_name: str) -> None:
    """Select the compression provider and its first available model"""
    provider = _parse_provider(provider_name)
    catalog = _manager(ctx).get_catalog().snapshot()
    _select(ctx, lambda config: select_compress_provider(config, catalog, provider))


@cli.command(name="set")
@click.argument("field_name", type=click.Choice(TUNING_FIELDS))
@click.argument("value")
@click.pass_context
def set_cmd(ctx: click.Context, field_name: str, value: str) -> None:
    """Set a tuning value; numbers are clamped to their allowed range"""
    parsed: Any = value
    if field_name in _BOOL_FIELDS:
        parsed = value.strip().lower() in ("1", "true", "yes", "on")

    updated = _manager(ctx).update_model_config(lambda config: setattr(config, field_name, parsed))
    console.print(f"{field_name}: {escape(str(getattr(updated, field_name)))}")


@cli.command(name="set-url")
@click.argument("provider_name")
@click.argument("url", required=False, default="")
@click.pass_context
def set_url_cmd(ctx: click.Context, provider_name: str, url: str) -> None:
    """Store a base URL for a provider (empty resets to the default)"""
    provider = _parse_provider(provider_name)

    def _apply(access: Any) -> None:
        if url.strip():
            access.base_urls[provider.value] = url.strip()
        else:
            access.base_urls.pop(provider.value, None)

    access = _manager(ctx).update_access_config(_apply)
    endpoint = resolve_list_models_endpoint(provider, access.stored_base_url(provider), access.is_app)
    console.print(f"{provider.value} list-models endpoint: {escape(endpoint or 'unsupported')}")


@cli.command(name="set-key")
@click.argument("provider_name")
@click.pass_context
def set_key_cmd(ctx: click.Context, provider_name: str) -> None:
    """Store an API key for a provider"""
    provider = _parse_provider(provider_name)
    api_key = click.prompt(f"{provider.value} API key", hide_input=True, default="", show_default=False)

    def _apply(access: Any) -> None:
        if api_key.strip():
            access.api_keys[provider.value] = api_key.strip()
        else:
            access.api_keys.pop(provider.value, None)

    _manager(ctx).update_access_config(_apply)
    console.print(f"API key for {provider.value}: {'***' if api_key.strip() else 'Not set'}")


@cli.command(name="reconcile")
@click.pass_context
def reconcile_cmd(ctx: click.Context) -> None:
    """Repair the model selection against the catalog"""
    manager = _manager(ctx)
    report = _reconcile(manager)
    if not report.repairs and not report.gaps:
        console.print("[green]Model selection is consistent with the catalog.[/green]")
    _print_report(report)
    _print_model_config(manager.get_model_config())


@cli.command(name="refresh")
@click.argument("provider_name", required=False)
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Apply the fetched list without asking")
@click.pass_context
def refresh_cmd(ctx: click.Context, provider_name: Optional[str], assume_yes: bool) -> None:
    """Fetch a provider's model list and replace its catalog entries"""
    provider = _parse_provider(provider_name) if provider_name else None

    def _notify(message: str) -> None:
        console.print(escape(message))

    async def _confirm(title: str, body: str) -> bool:
        console.print(Panel(escape(body), title=title, border_style="cyan"))
        if assume_yes:
            return True
        answer = console.input(escape("Apply? [y/N]: ")).strip().lower()
        return answer in ("y", "yes")

    workflow = RefreshWorkflow.from_manager(_manager(ctx), notify=_notify, confirm=_confirm)
    outcome = asyncio.run(workflow.trigger(provider))
    if outcome.report is not None:
        _print_report(outcome.report)
    if outcome.status in (RefreshStatus.FAILED, RefreshStatus.REJECTED):
        ctx.exit(1)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except (RuntimeError, ValueError, TypeError, OSError) as e:
        console.print(f"[red]Fatal error: {escape(str(e))}[/red]")
        logger.warning(
            "[cli] Fatal error in main CLI entrypoint: %s: %s",
            type(e).__name__,
            e,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
