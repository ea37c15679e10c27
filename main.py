#!/usr/bin/env python3
"""
Supplier Resolution — CLI entry point.

Usage examples:
  python main.py ingest request.json                 # One request object or a list of them
  python main.py ingest invoices.json --invoice --tenant <uuid>
                                                     # Processed invoices -> supplier requests
  python main.py list --tenant <uuid>                # Tenant suppliers
  python main.py search "acme" --tenant <uuid>
  python main.py show <supplier-id> --tenant <uuid>  # Supplier, attributes, sources
  python main.py delete <supplier-id> --tenant <uuid>

  python main.py reviews --scope global              # Pending medium-confidence matches
  python main.py backfill-globals --limit 500        # Link suppliers to global records
  python main.py fetch-logos                         # Resolve pending global logos
"""
import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from config import Config
from models.invoice import InvoiceSupplierData
from resolution.database import Database
from resolution.errors import SupplierError
from resolution.ingestion import SupplierIngestionService
from resolution.logo_service import LogoService
from resolution.operations import SupplierOperations
from resolution.supplier_service import SupplierService
from resolution.transformer import transform_invoice_to_supplier


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _database(ctx: click.Context) -> Database:
    config: Config = ctx.obj["config"]
    return Database(config.db_path)


def _fail(exc: SupplierError) -> None:
    click.echo(f"Error [{exc.code}]: {exc.message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(), help="SQLite database path (default: DB_PATH or data/suppliers.db)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """Supplier Resolution — ingest vendor observations, match, and manage suppliers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    config = Config()
    if db:
        config.db_path = Path(db)
    ctx.obj["config"] = config
    _setup_logging(verbose)


# --------------------------------------------------------------------
# ingest command
# --------------------------------------------------------------------

@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--invoice", is_flag=True, help="FILE holds processed invoices, not ingestion requests")
@click.option("--tenant", default=None, help="Tenant id (required with --invoice)")
@click.option("--user", default=None, help="User id recorded on invoice-derived requests")
@click.pass_context
def ingest(ctx: click.Context, file: str, invoice: bool, tenant: str | None, user: str | None) -> None:
    """Ingest a JSON file holding one request object or a list of requests."""
    config: Config = ctx.obj["config"]
    with open(file, encoding="utf-8") as f:
        payload = json.load(f)
    items = payload if isinstance(payload, list) else [payload]

    if invoice:
        if not tenant:
            click.echo("Error: --tenant is required with --invoice", err=True)
            sys.exit(1)
        requests = []
        for index, raw in enumerate(items):
            try:
                invoice_data = InvoiceSupplierData.model_validate(raw)
            except ValidationError as e:
                label = raw.get("id", index) if isinstance(raw, dict) else index
                click.echo(f"  ✗ invoice {label}: invalid ({e.error_count()} error(s)) — "
                           f"{e.errors()[0]['msg']}")
                continue
            request = transform_invoice_to_supplier(invoice_data, tenant, user)
            if request is None:
                click.echo(f"  – invoice {raw.get('id', '?')}: no vendor name or identifiers, skipped")
                continue
            requests.append(request)
        items = requests

    service = SupplierIngestionService(Database(config.db_path), config)
    results = service.ingest_many(items)

    click.echo()
    for index, result in enumerate(results):
        icon = "✓" if result.success else "✗"
        target = result.supplier_id or "-"
        line = f"  {icon} [{index}] {result.action:<8} {target}"
        if result.global_supplier_id:
            line += f"  (global {result.global_supplier_id})"
        if result.error:
            line += f"  {result.error}"
        click.echo(line)
    click.echo()
    created = sum(1 for r in results if r.action == "created")
    updated = sum(1 for r in results if r.action == "updated")
    click.echo(f"Processed {len(results)} request(s): {created} created, {updated} updated, "
               f"{len(results) - created - updated} skipped.")


# --------------------------------------------------------------------
# query commands
# --------------------------------------------------------------------

@cli.command()
@click.argument("supplier_id")
@click.option("--tenant", required=True, help="Tenant id")
@click.option("--json", "as_json", is_flag=True, help="Print the record as JSON")
@click.pass_context
def show(ctx: click.Context, supplier_id: str, tenant: str, as_json: bool) -> None:
    """Show one supplier with its attributes and data sources."""
    service = SupplierService(_database(ctx), ctx.obj["config"])
    try:
        record = service.get_with_attributes(supplier_id, tenant)
        sources = service.data_sources(supplier_id, tenant)
    except SupplierError as exc:
        _fail(exc)
        return

    if as_json:
        out = record.model_dump(mode="json")
        out["data_sources"] = [s.model_dump(mode="json") for s in sources]
        click.echo(json.dumps(out, indent=2))
        return

    s = record.supplier
    click.echo()
    click.echo(f"  Supplier:        {s.display_name}")
    click.echo(f"  Legal name:      {s.legal_name}")
    click.echo(f"  Slug:            {s.slug}")
    click.echo(f"  Status:          {s.status}")
    click.echo(f"  Company number:  {s.company_number or '(none)'}")
    click.echo(f"  VAT number:      {s.vat_number or '(none)'}")
    click.echo(f"  Global supplier: {s.global_supplier_id or '(unlinked)'}")
    click.echo()
    if record.attributes:
        click.echo(f"  Attributes ({len(record.attributes)}):")
        for a in record.attributes:
            star = "*" if a.is_primary else " "
            click.echo(f"   {star} {a.attribute_type:<13} {json.dumps(a.value)}  "
                       f"(confidence {a.confidence}, seen {a.seen_count}x)")
    else:
        click.echo("  No attributes recorded")
    click.echo()
    for src in sources:
        click.echo(f"  Source {src.source_type}:{src.source_id}  seen {src.occurrence_count}x")
    click.echo()


@cli.command(name="list")
@click.option("--tenant", required=True, help="Tenant id")
@click.option("--limit", default=50, show_default=True, help="Maximum rows")
@click.option("--offset", default=0, help="Rows to skip")
@click.option("--include-deleted", is_flag=True, help="Include soft-deleted suppliers")
@click.pass_context
def list_cmd(ctx: click.Context, tenant: str, limit: int, offset: int, include_deleted: bool) -> None:
    """List a tenant's suppliers by name."""
    service = SupplierService(_database(ctx), ctx.obj["config"])
    suppliers = service.list_suppliers(tenant, limit=limit, offset=offset, include_deleted=include_deleted)
    _echo_suppliers(suppliers)


@cli.command()
@click.argument("query")
@click.option("--tenant", required=True, help="Tenant id")
@click.option("--limit", default=20, show_default=True, help="Maximum rows")
@click.pass_context
def search(ctx: click.Context, query: str, tenant: str, limit: int) -> None:
    """Find active suppliers whose display or legal name contains QUERY."""
    service = SupplierService(_database(ctx), ctx.obj["config"])
    _echo_suppliers(service.search_by_name(tenant, query, limit=limit))


def _echo_suppliers(suppliers) -> None:
    if not suppliers:
        click.echo("No suppliers found.")
        return
    for s in suppliers:
        ident = s.company_number or s.vat_number or "-"
        click.echo(f"  {s.id}  {s.display_name:<40} {ident:<14} {s.status}")
    click.echo(f"\n{len(suppliers)} supplier(s).")


@cli.command()
@click.argument("supplier_id")
@click.option("--tenant", required=True, help="Tenant id")
@click.pass_context
def delete(ctx: click.Context, supplier_id: str, tenant: str) -> None:
    """Soft-delete a supplier (its company number becomes reusable)."""
    service = SupplierService(_database(ctx), ctx.obj["config"])
    try:
        supplier = service.delete(supplier_id, tenant)
    except SupplierError as exc:
        _fail(exc)
        return
    click.echo(f"✓ Deleted {supplier.display_name} ({supplier.id})")


# --------------------------------------------------------------------
# review queue
# --------------------------------------------------------------------

@cli.command()
@click.option("--scope", type=click.Choice(["tenant", "global"]), default=None, help="Filter by scope")
@click.option("--status", type=click.Choice(["pending", "resolved", "dismissed"]), default="pending",
              show_default=True)
@click.option("--tenant", default=None, help="Filter by tenant id")
@click.option("--limit", default=50, show_default=True, help="Maximum rows")
@click.option("--dismiss", "dismiss_id", default=None, help="Dismiss the review item with this id")
@click.option("--resolve", "resolve_id", default=None, help="Mark the review item with this id resolved")
@click.pass_context
def reviews(
    ctx: click.Context,
    scope: str | None,
    status: str,
    tenant: str | None,
    limit: int,
    dismiss_id: str | None,
    resolve_id: str | None,
) -> None:
    """List medium-confidence matches waiting for a reviewer."""
    db = _database(ctx)
    if dismiss_id or resolve_id:
        review_id, new_status = (dismiss_id, "dismissed") if dismiss_id else (resolve_id, "resolved")
        with db.transaction() as store:
            found = store.set_review_status(review_id, new_status)
        if not found:
            click.echo(f"Error: review item {review_id} not found", err=True)
            sys.exit(1)
        click.echo(f"✓ Review item {review_id} marked {new_status}")
        return

    with db.reader() as store:
        items = store.list_review_items(status=status, scope=scope, tenant_id=tenant, limit=limit)
    if not items:
        click.echo("No review items.")
        return
    for item in items:
        click.echo(f"  {item.id}  [{item.scope}] {item.subject_ref} → {item.candidate_id}  "
                   f"{item.confidence}% via {item.match_type}")
    click.echo(f"\n{len(items)} item(s).")


# --------------------------------------------------------------------
# maintenance
# --------------------------------------------------------------------

@cli.command(name="backfill-globals")
@click.option("--tenant", default=None, help="Only suppliers of this tenant")
@click.option("--limit", default=100, show_default=True, help="Maximum suppliers to examine")
@click.pass_context
def backfill_globals(ctx: click.Context, tenant: str | None, limit: int) -> None:
    """Link active suppliers without a global record (creating records where needed)."""
    ops = SupplierOperations(_database(ctx), ctx.obj["config"])
    report = ops.backfill_global_links(tenant, limit=limit)
    click.echo(
        f"\n  Examined: {report.examined}\n"
        f"  Linked:   {report.linked}\n"
        f"  Created:  {report.created}\n"
        f"  Queued:   {report.queued}\n"
        f"  Failed:   {len(report.failed)}\n"
    )
    for supplier_id in report.failed:
        click.echo(f"  ✗ {supplier_id}")


@cli.command(name="fetch-logos")
@click.option("--limit", default=None, type=int, help="Maximum global suppliers to process")
@click.pass_context
def fetch_logos(ctx: click.Context, limit: int | None) -> None:
    """Resolve logos for global suppliers that are due a (re)fetch."""
    config: Config = ctx.obj["config"]
    if not config.logo_token:
        click.echo("Error: LOGO_DEV_TOKEN is not set", err=True)
        sys.exit(1)
    service = LogoService(_database(ctx), config)
    results = service.fetch_pending(limit)
    if not results:
        click.echo("No global suppliers due a logo fetch.")
        return
    for global_id, result in results.items():
        if result.success:
            click.echo(f"  ✓ {global_id}  {result.logo_url}")
        else:
            click.echo(f"  ✗ {global_id}  {result.error}")
    ok = sum(1 for r in results.values() if r.success)
    click.echo(f"\n{ok}/{len(results)} logo(s) resolved.")


if __name__ == "__main__":
    cli()
