#!/usr/bin/env python3
"""
Purchase-order back office: CLI entry point.

Usage examples:
  python main.py check                              # Verify setup (database, storage, fonts)
  python main.py serve --port 8000                  # Run the HTTP API
  python main.py import-catalog data/               # Load suppliers/restaurants/products/users CSVs
  python main.py create-user chef@example.com --role MANAGER --restaurant-id 1
  python main.py regenerate 7                       # Rebuild the PDF of order 7
  python main.py backup backups/                    # Zip database + order PDFs
"""
import logging
import secrets
import sys
from pathlib import Path
from typing import Optional

import click

from config import Config
from models.actor import ALL_ROLES
from ordering.backup import BackupService
from ordering.csv_import import CatalogImporter
from ordering.errors import NotFoundError
from ordering.pdf_renderer import CJK_FONT, register_fonts
from ordering.service import OrderService


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Purchase-order back office: orders, catalog and bon de commande PDFs."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


# --------------------------------------------------------------------
# check command
# --------------------------------------------------------------------

@cli.command()
def check() -> None:
    """Verify that the database, storage and PDF fonts are ready."""
    config = Config()

    click.echo("\n=== Back Office Setup Check ===\n")

    try:
        service = OrderService(config)
        db_ok = service.db.ping()
    except Exception as exc:
        db_ok = False
        click.echo(f"  Database:         ✗ {exc}")
    if db_ok:
        click.echo(f"  Database:         ✓  {config.db_path}")

    orders_dir = config.orders_dir
    probe = orders_dir / ".write_probe"
    try:
        orders_dir.mkdir(parents=True, exist_ok=True)
        probe.write_bytes(b"")
        probe.unlink()
        click.echo(f"  Orders storage:   ✓  {orders_dir}")
    except OSError as exc:
        click.echo(f"  Orders storage:   ✗  {orders_dir} ({exc})")

    try:
        register_fonts()
        click.echo(f"  CJK font:         ✓  {CJK_FONT}")
    except Exception as exc:
        click.echo(f"  CJK font:         ✗  {CJK_FONT} ({exc})")

    if config.logo_path is None:
        click.echo("  Logo:             –  none configured (monogram used)")
    elif config.logo_path.exists():
        click.echo(f"  Logo:             ✓  {config.logo_path}")
    else:
        click.echo(f"  Logo:             ✗  {config.logo_path} (file not found)")
        click.echo("     → Check ORDER_LOGO_PATH in your environment")
    click.echo()


# --------------------------------------------------------------------
# serve command
# --------------------------------------------------------------------

@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    from api.app import create_app

    uvicorn.run(create_app(Config()), host=host, port=port)


# --------------------------------------------------------------------
# import-catalog command
# --------------------------------------------------------------------

@cli.command("import-catalog")
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
def import_catalog(directory: str) -> None:
    """Load suppliers.csv, restaurants.csv, products.csv and users.csv from DIRECTORY."""
    service = OrderService(Config())
    counts = CatalogImporter(service.db).import_directory(Path(directory))
    for name, count in counts.items():
        click.echo(f"  {name:<12} {count} rows")


# --------------------------------------------------------------------
# create-user command
# --------------------------------------------------------------------

@cli.command("create-user")
@click.argument("email")
@click.option("--name", default=None, help="Display name")
@click.option("--role", type=click.Choice(sorted(ALL_ROLES)), default="MANAGER", show_default=True)
@click.option("--restaurant-id", type=int, default=None, help="Restaurant the user belongs to")
def create_user(email: str, name: Optional[str], role: str, restaurant_id: Optional[int]) -> None:
    """Create an account and print its API token."""
    service = OrderService(Config())
    if restaurant_id is not None and service.db.get_restaurant(restaurant_id) is None:
        click.echo(f"Error: restaurant {restaurant_id} does not exist.", err=True)
        sys.exit(1)

    token = secrets.token_urlsafe(32)
    user_id = service.db.upsert_user(
        email=email, role=role, api_token=token, name=name, restaurant_id=restaurant_id,
    )
    click.echo(f"  User {user_id} ({role}) created.")
    click.echo(f"  API token: {token}")


# --------------------------------------------------------------------
# regenerate command
# --------------------------------------------------------------------

@cli.command()
@click.argument("order_id", type=int)
def regenerate(order_id: int) -> None:
    """Rebuild the PDF of ORDER_ID from its stored snapshot."""
    service = OrderService(Config())
    try:
        path = service.regenerate_pdf(order_id)
    except NotFoundError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)
    click.echo(f"  PDF written: {path}")


# --------------------------------------------------------------------
# backup command
# --------------------------------------------------------------------

@cli.command()
@click.argument("destination", type=click.Path(), required=False)
def backup(destination: Optional[str]) -> None:
    """
    Create a timestamped backup of the database and the order PDFs.
    """
    config = Config()
    service = BackupService(config, Path(destination) if destination else None)
    click.echo(f"Creating backup in: {service.backup_dir}")
    try:
        zip_path = service.create_backup()
    except Exception as e:
        click.echo(f"\n✗ Backup failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"\n✓ Backup successful: {zip_path.name}")


if __name__ == "__main__":
    cli()
