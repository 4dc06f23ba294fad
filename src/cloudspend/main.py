"""
Main CLI interface for the multi-cloud spend dashboard backend.

Provides commands to fetch normalized provider data, check credentials and
run the local proxy.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from .api.services.cloud_data_service import CloudDataService, create_client
from .config.settings import load_config
from .providers.base import DataType, MalformedCredentialError, ProviderName
from .utils.auth import parse_service_account_key

# Set up logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity settings."""
    # Default is quiet: substitution warnings and errors only
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.WARNING)

    noisy_loggers = [
        "httpx",
        "httpcore",
        "google.auth",
        "urllib3",
        "uvicorn.access",
    ]

    for logger_name in noisy_loggers:
        noisy = logging.getLogger(logger_name)
        if verbose:
            noisy.setLevel(logging.INFO)
        else:
            noisy.setLevel(logging.ERROR)


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging and debug output")
@click.pass_context
def cli(ctx, config, verbose):
    """cloudspend - Multi-cloud (GCP/Azure) spend data for the dashboard."""
    setup_logging(verbose)

    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config
    ctx.obj["verbose"] = verbose

    if "config" not in ctx.obj:
        ctx.obj["config"] = load_config(config)


def _display_table(result):
    """Display a provider data envelope as plain text."""
    data = result.to_dict()
    payload = data["data"]

    click.echo(f"Provider: {data['provider'].upper()}  Data: {data['dataType']}  Source: {data['source']}")
    if data["error"]:
        click.echo(f"Error: {data['error']}")
    click.echo("=" * 60)

    if data["dataType"] == DataType.COSTS.value:
        click.echo(f"Total cost: ${payload['totalCost']:,.2f} {payload['currency']}")
        for service in sorted(payload["services"], key=lambda s: s["cost"], reverse=True):
            click.echo(f"  {service['name']:<30} ${service['cost']:>12,.2f}")
    elif data["dataType"] == DataType.PROJECTS.value:
        for project in payload:
            click.echo(f"  {project['id']:<30} {project['name']:<30} {project['status']}")
    elif data["dataType"] == DataType.RESOURCES.value:
        if not payload:
            click.echo("  No resources")
        for resource in payload:
            utilization = resource["utilization"]
            usage = f"{utilization:5.1f}% ({resource['efficiencyScore']})" if utilization is not None else "unknown"
            click.echo(f"  {resource['name']:<30} {resource['type']:<10} ${resource['cost']:>10,.2f}  {usage}")
            for recommendation in resource["recommendations"]:
                click.echo(
                    f"      → {recommendation['description']} "
                    f"(save ${recommendation['potentialSavings']:,.2f})"
                )
    elif data["dataType"] == DataType.RECOMMENDATIONS.value:
        for recommendation in payload:
            click.echo(
                f"  [{recommendation['priority']:<6}] {recommendation['id']:<40} {recommendation['potential_savings']}"
            )
    else:
        for metric, value in payload["summary"].items():
            click.echo(f"  {metric:<10} {value:6.1f}%")
        click.echo(f"  {len(payload['metrics'])} time series")


@cli.command()
@click.argument("provider", type=click.Choice([p.value for p in ProviderName]))
@click.argument("data_type", type=click.Choice([d.value for d in DataType]))
@click.option("--project-id", help="Project (GCP) or resource group (Azure)")
@click.option("--resource-type", type=click.Choice(["compute", "storage", "database"]), help="Resource type filter")
@click.option("--resource-id", help="Single resource filter for utilization")
@click.option("--zone", help="Compute zone")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
@click.pass_context
def fetch(ctx, provider, data_type, project_id, resource_type, resource_id, zone, output_format):
    """Fetch normalized DATA_TYPE for PROVIDER."""
    config = ctx.obj["config"]
    params = {
        "project_id": project_id,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "zone": zone,
    }
    params = {key: value for key, value in params.items() if value is not None}

    async def _fetch():
        service = CloudDataService.from_config(config)
        try:
            return await service.fetch_provider_data(provider, data_type, params)
        finally:
            await service.aclose()

    result = asyncio.run(_fetch())

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _display_table(result)


@cli.command()
@click.pass_context
def test_auth(ctx):
    """Test authentication and API access for the configured providers."""

    async def _test_auth():
        config = ctx.obj["config"]

        click.echo("Testing authentication for all providers...\n")

        for provider in ProviderName:
            name = provider.value.upper()
            if not config.is_provider_enabled(provider.value):
                click.echo(f"{name}: Disabled")
                continue

            client = create_client(provider, config.get_provider_config(provider.value))
            try:
                if client.is_sample:
                    click.echo(f"ℹ️  {name}: Serving built-in sample data (no live API)")
                elif client.mode == "proxy":
                    healthy = await client.http.health_check(f"{client.proxy_url}/health")
                    status = "✅ Reachable" if healthy else "❌ Unreachable"
                    click.echo(f"{'✅' if healthy else '❌'} {name}: Proxy {client.proxy_url}: {status}")
                elif client.auth is None:
                    click.echo(f"❌ {name}: No credentials configured (mock data will be served)")
                else:
                    auth_result = await client.auth.authenticate()
                    if not auth_result.success:
                        click.echo(f"❌ {name}: Failed - {auth_result.error_message}")
                        continue

                    click.echo(f"✅ {name}: Authenticated ({auth_result.method})")
                    checks = await client.test_access()
                    for api, outcome in checks.items():
                        if outcome["success"]:
                            click.echo(f"   {api} access: ✅ Passed")
                        else:
                            click.echo(f"   {api} access: ❌ {outcome['error']}")
            finally:
                await client.aclose()

    asyncio.run(_test_auth())


@cli.command()
@click.pass_context
def config_info(ctx):
    """Display current configuration information (secrets are never shown)."""
    summary = ctx.obj["config"].summary()

    click.echo("cloudspend Configuration")
    click.echo("=" * 40)

    click.echo(f"Enabled Providers: {', '.join(summary['enabled_providers']) or 'None'}")

    gcp = summary["gcp"]
    click.echo("\nGCP:")
    click.echo(f"  Project ID: {gcp.get('project_id') or 'Not set'}")
    click.echo(f"  Billing Account: {gcp.get('billing_account_id') or 'Not set'}")
    click.echo(f"  Proxy URL: {gcp.get('proxy_url') or 'Not set (direct API access)'}")
    for key in ("service_account_key", "access_token", "api_key"):
        click.echo(f"  {key.replace('_', ' ').title()}: {'✅ Configured' if gcp[f'has_{key}'] else 'Not set'}")

    data = summary["data"]
    click.echo("\nData:")
    click.echo(f"  Mock mode: {data['mock_mode']}")
    click.echo(f"  Request timeout: {data['request_timeout']} seconds")
    click.echo(f"  Placeholder utilization: {data['placeholder_utilization']}")

    proxy = summary["proxy"]
    click.echo("\nProxy:")
    click.echo(f"  Host: {proxy['host']}")
    click.echo(f"  Port: {proxy['port']}")


@cli.command()
@click.option(
    "--file",
    "key_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Service account key file (default: the configured key)",
)
@click.pass_context
def validate_credentials(ctx, key_file):
    """Validate a GCP service account key."""
    if key_file:
        raw = Path(key_file).read_text()
    else:
        raw = ctx.obj["config"].gcp.get("service_account_key")

    if not raw:
        click.echo("❌ No service account key configured", err=True)
        click.echo("Set clouds.gcp.service_account_key or pass --file", err=True)
        sys.exit(1)

    try:
        info = parse_service_account_key(raw)
    except MalformedCredentialError as e:
        click.echo(f"❌ {e}", err=True)
        click.echo("Make sure the whole JSON key is on one line with newlines in private_key escaped as \\n", err=True)
        sys.exit(1)

    click.echo("✅ Service account key is valid")
    click.echo(f"   Type: {info['type']}")
    click.echo(f"   Project ID: {info.get('project_id') or 'Not set'}")
    click.echo(f"   Client Email: {info['client_email']}")
    click.echo("   Private Key: Present")


@cli.command()
@click.option("--host", help="Interface to bind (default: proxy.host)")
@click.option("--port", type=int, help="Port to listen on (default: proxy.port)")
@click.pass_context
def proxy(ctx, host, port):
    """Run the local GCP proxy and data API."""
    from .api.proxy_service import main as run_proxy

    run_proxy(host=host, port=port, config=ctx.obj["config"])


@cli.command()
def version():
    """Display version information."""
    from . import __version__

    click.echo(f"cloudspend v{__version__}")
    click.echo("Multi-cloud spend data for GCP and Azure")


if __name__ == "__main__":
    cli()
