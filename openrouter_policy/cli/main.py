"""Main CLI entry point for openrouter-policy."""

from datetime import datetime
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from openrouter_policy import __version__
from openrouter_policy.catalog import ModelCatalog, build_catalog
from openrouter_policy.config.settings import USER_CONFIG_FILE, get_settings, init_user_config
from openrouter_policy.exceptions import CatalogUnavailableError, UnknownModelError
from openrouter_policy.selection import CostEstimator, ModelSelector

app = typer.Typer(
    name="openrouter-policy",
    help="Model selection and structured-output healing for OpenRouter.",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"openrouter-policy version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = False,
) -> None:
    """openrouter-policy: pick models and get valid JSON out of them."""
    pass


def _build_catalog() -> ModelCatalog:
    """Catalog used by the commands (cached OpenRouter /models)."""
    return build_catalog(get_settings().catalog)


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


# =============================================================================
# Models Command
# =============================================================================

models_app = typer.Typer(help="Browse and select models from the catalog")
app.add_typer(models_app, name="models")


@models_app.command("list")
def models_list(
    provider: Annotated[
        Optional[str], typer.Option("--provider", "-p", help="Only this provider")
    ] = None,
    capability: Annotated[
        Optional[str], typer.Option("--capability", "-c", help="Only models with this capability")
    ] = None,
) -> None:
    """List catalog models with their capabilities and pricing."""
    catalog = _build_catalog()
    try:
        records = catalog.filter(
            lambda r: (provider is None or r.provider == provider)
            and (capability is None or r.has_capability(capability))
        )
    except CatalogUnavailableError as e:
        _fail(str(e))
        return

    if not records:
        console.print("[yellow]No models found.[/yellow]")
        return

    table = Table(title=f"Models ({len(records)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Tier")
    table.add_column("Input $/1k", justify="right")
    table.add_column("Output $/1k", justify="right")
    table.add_column("Context", justify="right")
    table.add_column("Capabilities")

    for record in records:
        table.add_row(
            record.id,
            record.performance_tier.value,
            f"{record.cost_per_1k.input:.6f}",
            f"{record.cost_per_1k.output:.6f}",
            str(record.context_length) if record.context_length is not None else "-",
            ", ".join(sorted(record.capabilities)),
        )

    console.print(table)


@models_app.command("choose")
def models_choose(
    require: Annotated[
        Optional[list[str]], typer.Option("--require", "-r", help="Required capability")
    ] = None,
    max_cost: Annotated[
        Optional[float], typer.Option("--max-cost", help="Max input $ per 1k tokens")
    ] = None,
    max_output_cost: Annotated[
        Optional[float], typer.Option("--max-output-cost", help="Max output $ per 1k tokens")
    ] = None,
    min_context: Annotated[
        Optional[int], typer.Option("--min-context", help="Minimum context length")
    ] = None,
    provider: Annotated[
        Optional[list[str]], typer.Option("--provider", "-p", help="Allowed provider")
    ] = None,
    avoid_provider: Annotated[
        Optional[list[str]], typer.Option("--avoid-provider", help="Excluded provider")
    ] = None,
    avoid_pattern: Annotated[
        Optional[list[str]], typer.Option("--avoid-pattern", help="Excluded id glob")
    ] = None,
    newer_than: Annotated[
        Optional[str], typer.Option("--newer-than", help="Release date (YYYY-MM-DD)")
    ] = None,
    strategy: Annotated[
        str, typer.Option("--strategy", "-s", help="cost | performance | latest | context")
    ] = "cost",
    fallback: Annotated[
        bool, typer.Option("--fallback", help="Relax requirements when nothing matches")
    ] = False,
    limit: Annotated[
        int, typer.Option("--limit", "-n", help="Number of ranked models to show")
    ] = 1,
) -> None:
    """Choose the best model for a set of requirements."""
    try:
        selector = ModelSelector(_build_catalog()).optimize_for(strategy)
        if require:
            selector = selector.require(*require)
        if max_cost is not None or max_output_cost is not None:
            selector = selector.within_budget(max_cost=max_cost, max_output_cost=max_output_cost)
        if min_context is not None:
            selector = selector.min_context(min_context)
        if provider:
            selector = selector.require_providers(provider)
        if avoid_provider:
            selector = selector.avoid_providers(avoid_provider)
        if avoid_pattern:
            selector = selector.avoid_patterns(avoid_pattern)
        if newer_than:
            selector = selector.newer_than(datetime.strptime(newer_than, "%Y-%m-%d").date())
    except ValueError as e:
        _fail(str(e))
        return

    try:
        if fallback:
            chosen = selector.choose_with_fallback()
            models = [chosen] if chosen else []
        else:
            models = selector.choose_with_fallbacks(limit=max(1, limit))
    except CatalogUnavailableError as e:
        _fail(str(e))
        return

    if not models:
        _fail("No model matches the requirements.")
        return

    for model in models:
        console.print(model)


@models_app.command("estimate")
def models_estimate(
    model: Annotated[str, typer.Argument(help="Model id")],
    input_tokens: Annotated[int, typer.Option("--input-tokens", "-i", help="Input tokens")] = 1000,
    output_tokens: Annotated[
        int, typer.Option("--output-tokens", "-o", help="Output tokens")
    ] = 1000,
) -> None:
    """Estimate the USD cost of a request."""
    try:
        cost = CostEstimator(_build_catalog()).estimate(
            model, input_tokens=input_tokens, output_tokens=output_tokens
        )
    except (UnknownModelError, CatalogUnavailableError, ValueError) as e:
        _fail(str(e))
        return

    console.print(f"{model}: ${cost:.6f}")


@models_app.command("refresh")
def models_refresh() -> None:
    """Discard the cached catalog and fetch it again."""
    catalog = _build_catalog()
    try:
        with console.status("[bold green]Fetching model catalog..."):
            catalog.refresh()
    except CatalogUnavailableError as e:
        _fail(str(e))
        return

    console.print(f"[green]Catalog refreshed:[/green] {len(catalog)} models")


# =============================================================================
# Config Command
# =============================================================================

config_app = typer.Typer(help="Manage configuration")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show() -> None:
    """Show current configuration."""
    settings = get_settings()

    def _mask_key(raw_key: str) -> str:
        if not raw_key:
            return "[red]Not set[/red]"
        return raw_key[:10] + "..." + raw_key[-4:] if len(raw_key) > 14 else "***"

    console.print(Panel("[bold]openrouter-policy Configuration[/bold]"))

    console.print("\n[bold]Config Files:[/bold]")
    console.print(f"  User config: {USER_CONFIG_FILE}")
    console.print(f"  Exists: {USER_CONFIG_FILE.exists()}")

    console.print("\n[bold]OpenRouter:[/bold]")
    console.print(f"  Base URL: {settings.openrouter.base_url}")
    console.print(f"  API Key: {_mask_key(settings.openrouter.api_key.get_secret_value())}")
    console.print(f"  Default Model: {settings.openrouter.default_model}")

    console.print("\n[bold]Healing:[/bold]")
    console.print(f"  Auto Heal: {settings.healing.auto_heal_responses}")
    console.print(f"  Healer Model: {settings.healing.healer_model}")
    console.print(f"  Max Heal Attempts: {settings.healing.max_heal_attempts}")
    console.print(f"  Default Mode: {settings.healing.default_structured_output_mode}")

    console.print("\n[bold]Capabilities:[/bold]")
    console.print(f"  Strict Mode: {settings.capabilities.strict_mode}")
    console.print(f"  Auto Force: {settings.capabilities.auto_force_on_unsupported_models}")

    console.print("\n[bold]Catalog:[/bold]")
    console.print(f"  Cache Dir: {settings.catalog.cache_dir}")
    console.print(f"  Cache TTL: {settings.catalog.cache_ttl}s")


@config_app.command("init")
def config_init() -> None:
    """Initialize user configuration file.

    Creates ~/.config/openrouter-policy/config.yaml with a template.
    """
    config_path = init_user_config()
    console.print(f"[green]Configuration file created at:[/green] {config_path}")
    console.print("\nEdit this file to set your API key and other options.")
    console.print("Environment variables will override settings in this file.")


if __name__ == "__main__":
    app()
