"""
Main CLI entry point for AWS Cost Optimizer.

Provides the "aws-cost-optimizer" command that collects an account's
resources, analyzes them and reports savings recommendations.
"""

import logging
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import boto3
import click
from botocore.exceptions import BotoCoreError, NoCredentialsError, ProfileNotFound
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from aws_cost_optimizer import __version__
from aws_cost_optimizer.analyzers.models import AnalysisResult, ResourceKind
from aws_cost_optimizer.analyzers.orchestrator import AnalysisOrchestrator
from aws_cost_optimizer.collectors.cloudwatch import CloudWatchMetricProvider
from aws_cost_optimizer.collectors.inventory import InventoryCollector
from aws_cost_optimizer.core.catalog import Catalog
from aws_cost_optimizer.core.config import ConfigManager
from aws_cost_optimizer.core.exceptions import (
    AnalysisCancelled, CatalogUnavailableError, CollectionError, ConfigurationError, CostOptimizerError
)


console = Console()

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_SERVICE_ERROR = 4
EXIT_USER_CANCELLED = 130

CONFIDENCE_STYLES = {'high': 'green', 'medium': 'yellow', 'low': 'red'}


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; INFO and up when verbose."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


def build_session(profile: Optional[str], region: str) -> boto3.Session:
    """Create a boto3 session.

    Raises:
        ConfigurationError: If the profile does not exist
    """
    try:
        return boto3.Session(profile_name=profile, region_name=region)
    except ProfileNotFound as e:
        raise ConfigurationError(f"AWS profile not found: {profile}", details=str(e))


def render_result(result: AnalysisResult, region: str, summary: Optional[Dict[str, Any]] = None) -> None:
    """Print recommendations, failed resources and totals as rich tables.

    Args:
        result: Finished analysis
        region: Region shown in the table title
        summary: Optional breakdown from AnalysisOrchestrator.get_analysis_summary
    """
    recommendations = result.all_recommendations()

    if recommendations:
        table = Table(title=f"Cost optimization recommendations ({region})")
        table.add_column("Kind", style="cyan")
        table.add_column("Resource")
        table.add_column("Recommendation")
        table.add_column("Change")
        table.add_column("Confidence")
        table.add_column("Monthly Savings", justify="right", style="green")

        for rec in recommendations:
            change = f"{rec.current_shape} → {rec.proposed_shape}" if rec.proposed_shape else (rec.action or "")
            style = CONFIDENCE_STYLES.get(rec.confidence.value, "white")
            table.add_row(
                rec.kind.value,
                rec.resource_id,
                rec.recommendation_type,
                change,
                f"[{style}]{rec.confidence.value}[/{style}]",
                f"${rec.monthly_savings:,.2f}",
            )
        console.print(table)

        for rec in recommendations:
            for warning in rec.warnings:
                console.print(f"⚠️  [yellow]{rec.resource_id}: {warning}[/yellow]")
    else:
        console.print("✅ [green]No cost optimization opportunities found[/green]")

    if result.resource_errors:
        errors = Table(title="Resources not analyzed", title_style="red")
        errors.add_column("Kind", style="cyan")
        errors.add_column("Resource")
        errors.add_column("Reason", style="red")
        for error in result.resource_errors:
            errors.add_row(error.kind.value, error.resource_id, error.message)
        console.print(errors)

    if summary and summary['by_kind']:
        breakdown = Table(title="Savings by kind")
        breakdown.add_column("Kind", style="cyan")
        breakdown.add_column("Recommendations", justify="right")
        breakdown.add_column("Monthly Savings", justify="right", style="green")
        for kind, kind_summary in summary['by_kind'].items():
            breakdown.add_row(kind, str(kind_summary['count']), f"${kind_summary['monthly_savings']:,.2f}")
        console.print(breakdown)
        confidence = ", ".join(f"{level}: {count}" for level, count in summary['by_confidence'].items())
        console.print(f"🎯 Confidence: {confidence}")

    console.print()
    console.print(f"📊 Resources analyzed: {result.resources_analyzed}")
    console.print(f"💰 [bold]Potential savings: ${result.total_monthly_savings:,.2f}/month "
                  f"(${result.total_annual_savings:,.2f}/year)[/bold]")


@click.command()
@click.option(
    "--region",
    help="AWS region to analyze (defaults to configured region)",
)
@click.option(
    "--profile",
    help="AWS named profile to use",
)
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Catalog JSON file with shapes and prices (defaults to the bundled catalog)",
)
@click.option(
    "--max-workers",
    type=click.IntRange(1, 64),
    help="Maximum resources analyzed concurrently",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Stop starting new analyses after this many seconds",
)
@click.option(
    "--kind",
    "kinds",
    multiple=True,
    type=click.Choice([kind.value for kind in ResourceKind]),
    help="Only analyze this resource kind (repeatable)",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Write the full result as JSON to this file",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the result as JSON instead of tables",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show progress logging",
)
@click.version_option(version=__version__)
def main(
    region: Optional[str] = None,
    profile: Optional[str] = None,
    catalog_path: Optional[Path] = None,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
    kinds: Tuple[str, ...] = (),
    output: Optional[Path] = None,
    as_json: bool = False,
    verbose: bool = False,
) -> None:
    """
    💰 AWS Cost Optimizer - Find waste and rightsizing opportunities

    Analyzes compute, storage, network, database and cache resources
    against their utilization and reports estimated savings.
    """
    configure_logging(verbose)
    cancel_event = threading.Event()

    try:
        try:
            config = ConfigManager().load_or_default()
        except ValueError as e:
            raise ConfigurationError(str(e))

        region = region or config.default_region
        catalog_file = catalog_path or config.catalog_path
        catalog = Catalog.from_file(catalog_file) if catalog_file else Catalog.default()

        session = build_session(profile, region)
        collector = InventoryCollector(session, region, max_objects_sampled=config.settings.max_objects_sampled)
        requested = [ResourceKind(kind) for kind in kinds] or list(ResourceKind)

        if not as_json:
            console.print(f"🔍 [bold]Discovering resources in {region}...[/bold]")
        inventory = collector.collect(requested)
        for kind, message in collector.errors.items():
            if not as_json:
                console.print(f"⚠️  [yellow]Could not discover {kind.value}: {message}[/yellow]")
        if collector.errors and len(collector.errors) == len(requested):
            raise CollectionError("Resource discovery failed for every requested kind")

        orchestrator = AnalysisOrchestrator(
            catalog=catalog,
            metric_provider=CloudWatchMetricProvider(session, region, inventory),
            settings=config.settings,
            max_workers=max_workers or config.max_workers,
        )

        previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
        try:
            result = orchestrator.run(
                inventory,
                now=datetime.now(timezone.utc),
                cancel_event=cancel_event,
                timeout=timeout or config.timeout_seconds,
            )
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        if as_json:
            click.echo(result.to_json())
        else:
            render_result(result, region, orchestrator.get_analysis_summary(result))

        if output:
            output.write_text(result.to_json())
            if not as_json:
                console.print(f"📝 Result written to {output}")

        if result.cancelled:
            if cancel_event.is_set():
                raise AnalysisCancelled()
            console.print("⏱️  [yellow]Time limit reached - results are partial[/yellow]")

    except (KeyboardInterrupt, AnalysisCancelled):
        console.print("\n⚠️  [yellow]Analysis cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except (ConfigurationError, CatalogUnavailableError) as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except NoCredentialsError:
        console.print("❌ [red]Configuration error: no AWS credentials found[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except (CollectionError, BotoCoreError) as e:
        console.print(f"❌ [red]Service error: {e}[/red]")
        sys.exit(EXIT_SERVICE_ERROR)
    except CostOptimizerError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)
    except Exception as e:
        console.print(f"💥 [red]Unexpected error: {e}[/red]")
        console.print("[dim]Please report this issue with the full error message.[/dim]")
        sys.exit(EXIT_GENERAL_ERROR)


if __name__ == "__main__":
    main()
