"""
Command-line interface for the insurance billing pipeline.

Provides commands for schema setup, the monthly batch, on-demand invoicing,
queue workers and the scheduler.
"""

import sys
from uuid import UUID

import click
import structlog

from insurance_billing.config import load_config, validate_config
from insurance_billing.utils.logging import configure_logging


logger = structlog.get_logger()

DATE_FORMATS = ["%Y-%m-%d"]


def _load(ctx, require_receiver: bool = False):
    config = load_config(ctx.obj.get("config_path"), allow_missing=True)
    warnings = validate_config(config, require_receiver=require_receiver)
    for warning in warnings:
        click.echo(f"Warning: {warning}", err=True)
    return config


def _service(config):
    from insurance_billing.service import BillingService

    return BillingService(config)


@click.group()
@click.option(
    "--config", "-c",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--json-logs",
    is_flag=True,
    help="Output logs as JSON",
)
@click.pass_context
def main(ctx, config, verbose, json_logs):
    """Insurance billing and invoice generation pipeline."""
    ctx.ensure_object(dict)

    # Configure logging
    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(level=log_level, json_output=json_logs)

    ctx.obj["config_path"] = config
    ctx.obj["log_level"] = log_level


@main.command("init-db")
@click.option(
    "--drop",
    is_flag=True,
    help="Drop existing billing tables before creating",
)
@click.pass_context
def init_db(ctx, drop):
    """Create the billing tables."""
    from insurance_billing.db.connection import create_engine_from_config
    from insurance_billing.db.initialize import init_database

    try:
        config = _load(ctx)

        if drop and not click.confirm("This will drop ALL billing tables. Continue?"):
            click.echo("Aborted.")
            return

        engine = create_engine_from_config(config.database)
        try:
            tables = init_database(engine, drop_existing=drop)
        finally:
            engine.dispose()

        click.echo(f"Database initialized: {', '.join(tables)}")

    except Exception as e:
        logger.exception("init_db_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("run-batch")
@click.pass_context
def run_batch(ctx):
    """Invoice every Active policy for next month and enqueue notifications."""
    try:
        config = _load(ctx)
        with _service(config) as service:
            report = service.run_monthly_batch()

        summary = report.summary()
        click.echo("\n=== Monthly Batch Complete ===")
        click.echo(f"Billing window: {summary['window_start']} to {summary['window_end']}")
        click.echo(f"Policies processed: {summary['processed']}")
        click.echo(f"Notifications issued: {summary['generated']}")
        click.echo(f"Skipped: {summary['skipped']}")
        click.echo(f"Failed: {summary['failed']}")
        if report.listing_failure is not None:
            click.echo(f"Policy listing failed: {report.listing_failure.message}", err=True)

    except Exception as e:
        logger.exception("run_batch_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("process-policy")
@click.argument("policy_id", type=click.UUID)
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), default=None, help="First billed day (YYYY-MM-DD)")
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Last billed day (YYYY-MM-DD)")
@click.pass_context
def process_policy(ctx, policy_id: UUID, start, end):
    """Invoice one policy now (prorated)."""
    from insurance_billing.errors import BillingError

    try:
        config = _load(ctx)
        with _service(config) as service:
            notification = service.process_policy(policy_id, start, end)

        if notification is None:
            click.echo("No invoice generated (nothing owed).")
        else:
            click.echo(f"Invoice {notification.invoice_number}: {notification.amount}")
            click.echo(f"  Document: {notification.document_url}")

    except BillingError as e:
        click.echo(f"{e.kind.value} error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("process_policy_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("request-invoice")
@click.argument("policy_id", type=click.UUID)
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), default=None, help="First billed day (YYYY-MM-DD)")
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), default=None, help="Last billed day (YYYY-MM-DD)")
@click.pass_context
def request_invoice(ctx, policy_id: UUID, start, end):
    """Enqueue an invoice generation request for a policy."""
    try:
        config = _load(ctx)
        with _service(config) as service:
            envelope = service.request_invoice(policy_id, start, end)

        click.echo(f"Queued {envelope.message_id} on {envelope.destination}")

    except Exception as e:
        logger.exception("request_invoice_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument("queue", type=click.Choice(["invoices", "notifications"]))
@click.option("--once", is_flag=True, help="Process one batch and exit")
@click.pass_context
def worker(ctx, queue, once):
    """Consume a queue (invoice requests or notifications)."""
    from insurance_billing.workers import InvoiceRequestWorker, NotificationWorker

    try:
        config = _load(ctx, require_receiver=True)
        with _service(config) as service:
            if queue == "invoices":
                queue_worker = InvoiceRequestWorker(service)
            else:
                queue_worker = NotificationWorker(
                    service.transport,
                    service.notification_queue,
                    max_delivery_attempts=config.transport.max_delivery_attempts,
                    batch_size=config.transport.receive_batch_size,
                    poll_interval_seconds=config.transport.poll_interval_seconds,
                )
            try:
                stats = queue_worker.run(max_batches=1 if once else None)
            except KeyboardInterrupt:
                stats = queue_worker.get_stats()

        click.echo(f"Worker stopped: {stats}")

    except Exception as e:
        logger.exception("worker_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
@click.option("--once", is_flag=True, help="Exit after the next scheduled run")
@click.pass_context
def scheduler(ctx, once):
    """Run the monthly batch on its schedule."""
    from insurance_billing.scheduler import MonthlyScheduler

    try:
        config = _load(ctx)
        with _service(config) as service:
            monthly = MonthlyScheduler(service.run_monthly_batch, config.schedule)
            click.echo(f"Next run: {monthly.next_run().isoformat()}")
            try:
                monthly.run(max_runs=1 if once else None)
            except KeyboardInterrupt:
                click.echo("Scheduler stopped.")

    except Exception as e:
        logger.exception("scheduler_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command("next-run")
@click.pass_context
def next_run(ctx):
    """Show when the monthly batch fires next."""
    from datetime import datetime, timezone

    from insurance_billing.scheduler import next_fire_time

    try:
        config = _load(ctx)
        click.echo(next_fire_time(datetime.now(timezone.utc), config.schedule).isoformat())

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
