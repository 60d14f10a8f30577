"""Command-line interface for postal code resolution."""

import json

import click

from procura.core.config import settings
from procura.core.db import create_db_engine, init_db
from procura.core.geocoding.exceptions import GeocodingError, InvalidPostalCode
from procura.core.geocoding.providers import PROVIDER_REGISTRY
from procura.core.geocoding.resolver import ResolutionContext, ResolutionOrchestrator
from procura.core.logging import configure_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Resolve São Paulo postal codes to coordinates."""
    configure_logging(
        level="debug" if verbose else settings.LOG_LEVEL,
        json_logs=settings.JSON_LOGS,
    )


@cli.command()
@click.argument("postal_code")
@click.option("--numero", "-n", default=None, help="House number")
def resolve(postal_code: str, numero: str | None):
    """Resolve POSTAL_CODE and print the result as JSON."""
    context = ResolutionContext.from_settings(settings)
    try:
        result = ResolutionOrchestrator(context).resolve(postal_code, numero)
    except InvalidPostalCode as e:
        raise click.BadParameter(str(e), param_hint="POSTAL_CODE") from e
    except GeocodingError as e:
        raise click.ClickException(str(e)) from e
    finally:
        context.close()

    click.echo(json.dumps(result.to_dict(), ensure_ascii=False))


@cli.command()
def providers():
    """List geocoding providers and whether they are active."""
    for descriptor in PROVIDER_REGISTRY:
        status = "active" if descriptor.enabled(settings) else "inactive"
        click.echo(f"{descriptor.name}: {status}")


@cli.command("init-db")
def init_db_command():
    """Create the address cache table."""
    engine = create_db_engine(settings)
    try:
        init_db(engine)
    finally:
        engine.dispose()
    click.echo("Address cache table ready")


if __name__ == "__main__":
    cli()
