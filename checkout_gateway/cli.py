"""CLI for the Checkout Gateway.

Operator commands for inspecting pricing and running the API server.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from checkout_gateway.config import get_settings
from checkout_gateway.core.exceptions import GatewayError
from checkout_gateway.core.pricing import PricingEngine
from checkout_gateway.monitoring.logging import setup_logging

app = typer.Typer(
    name="checkout-gateway",
    help="Checkout Gateway - PayPal orders and multi-currency pricing",
    add_completion=False,
)

console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit structured logs",
    ),
) -> None:
    """Configure logging based on verbosity."""
    setup_logging("DEBUG" if verbose else "WARNING", stream=sys.stderr)


def load_engine(pricing_data: Optional[Path]) -> PricingEngine:
    """Load the pricing engine from the given file or the configured one."""
    settings = get_settings()
    try:
        return PricingEngine.from_file(
            pricing_data or settings.pricing_data_path, settings.service_fee_rate
        )
    except GatewayError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


PricingDataOption = typer.Option(
    None,
    "--pricing-data",
    "-p",
    help="Path to a pricing data YAML file",
)


@app.command()
def quote(
    subtotal: float = typer.Argument(..., help="Order subtotal in currency units"),
    currency: str = typer.Option("NGN", "--currency", "-c", help="Currency code"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Delivery location"),
    discount: float = typer.Option(0.0, "--discount", "-d", help="Discount amount"),
    pricing_data: Optional[Path] = PricingDataOption,
) -> None:
    """Price an order: service fee, delivery fee, discount and total."""
    engine = load_engine(pricing_data)

    try:
        result = engine.calculate_order_total(subtotal, location, currency, discount)
    except GatewayError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    table = Table(title=f"Order total ({result.currency}, {result.delivery_tier.value} delivery)")
    table.add_column("Item", style="cyan")
    table.add_column("Amount", justify="right")

    table.add_row("Subtotal", engine.format_currency(result.subtotal, result.currency))
    if result.discount_amount:
        table.add_row(
            "Discount", "-" + engine.format_currency(result.discount_amount, result.currency)
        )
    table.add_row("Service fee", engine.format_currency(result.service_fee, result.currency))
    table.add_row("Delivery", engine.format_currency(result.delivery_fee, result.currency))
    table.add_row("[bold]Total[/bold]", f"[bold]{engine.format_currency(result.total, result.currency)}[/bold]")

    console.print(table)
    console.print(
        f"[dim]Provider:[/dim] {engine.currency_table.payment_provider_for(result.currency)}"
    )


@app.command()
def currencies(pricing_data: Optional[Path] = PricingDataOption) -> None:
    """List configured currencies with rates and minimum orders."""
    engine = load_engine(pricing_data)
    currency_table = engine.currency_table

    table = Table(title=f"Currencies (base: {currency_table.base_currency.code})")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Symbol")
    table.add_column("Rate", justify="right")
    table.add_column("Minimum order", justify="right")
    table.add_column("Provider")

    for currency in currency_table.currencies():
        table.add_row(
            currency.code,
            currency.name,
            currency.symbol.strip(),
            str(currency_table.rate_for(currency.code)),
            currency_table.format_currency(
                currency_table.minimum_order_amount(currency.code), currency.code
            ),
            currency_table.payment_provider_for(currency.code),
        )

    console.print(table)


@app.command()
def convert(
    amount: float = typer.Argument(..., help="Amount to convert"),
    to_currency: Optional[str] = typer.Option(
        None, "--to", help="Convert a base-currency amount into this currency"
    ),
    from_currency: Optional[str] = typer.Option(
        None, "--from", help="Convert an amount in this currency into the base currency"
    ),
    pricing_data: Optional[Path] = PricingDataOption,
) -> None:
    """Convert between the base currency and another currency."""
    if bool(to_currency) == bool(from_currency):
        console.print("[red]Error:[/red] pass exactly one of --to or --from")
        raise typer.Exit(2)

    engine = load_engine(pricing_data)
    base = engine.currency_table.base_currency.code

    try:
        if to_currency:
            converted = engine.convert_from_base(amount, to_currency)
            source, target = base, to_currency.upper()
        else:
            converted = engine.convert_to_base(amount, from_currency or "")
            source, target = (from_currency or "").upper(), base
    except GatewayError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    console.print(
        f"{engine.format_currency(amount, source)} = "
        f"[green]{engine.format_currency(converted, target)}[/green]"
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "checkout_gateway.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload or settings.debug,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
