"""
Main entry point for the finance gateway
Thin CLI over AggregationGateway; prints envelopes for humans or as JSON
"""

import asyncio
import json
import sys
from typing import Any, Dict, Optional

import click

from fingate.config.settings import get_config
from fingate.data.base import Capability
from fingate.data.envelope import ResponseEnvelope
from fingate.data.gateway import AggregationGateway
from fingate.utils.logger import get_logger

logger = get_logger(__name__)

async def run_request(capability: Capability, params: Dict[str, Any]) -> ResponseEnvelope:
    """Serve a single request with a short-lived gateway"""
    async with AggregationGateway() as gateway:
        return await gateway.handle(capability, params)

def _format_number(value: float, decimals: int = 2) -> str:
    return f"{value:,.{decimals}f}"

def render(capability: Capability, envelope: ResponseEnvelope) -> str:
    """Human-readable rendering of a successful envelope"""
    data = envelope.data.to_dict()
    source = " (cached)" if envelope.cached else ""

    if capability is Capability.STOCK:
        icon = "📈" if data['change'] >= 0 else "📉"
        return "\n".join([
            f"📊 Stock Quote for {data['symbol']}{source}:",
            f"Price: ${_format_number(data['price'])}",
            f"Change: {icon} {data['change']:+.2f} ({data['changePercent']:+.2f}%)",
            f"Volume: {data['volume']:,}",
            f"Last Updated: {data['lastUpdate']}",
        ])

    if capability is Capability.CRYPTO:
        lines = [f"₿ Cryptocurrency Prices{source}:"]
        for coin_id, coin in data.items():
            icon = "📈" if coin['change24h'] >= 0 else "📉"
            lines.append(
                f"{coin_id.capitalize()}: ${_format_number(coin['price'])} "
                f"{icon} {coin['change24h']:+.2f}%"
            )
        return "\n".join(lines)

    if capability is Capability.RATES:
        lines = [f"💱 Exchange Rates for {data['base']}{source}:"]
        for code in sorted(data['rates']):
            lines.append(f"  {code}: {data['rates'][code]:.4f}")
        return "\n".join(lines)

    if capability is Capability.CONVERT:
        return "\n".join([
            f"💱 Currency Conversion Result{source}:",
            f"{_format_number(data['amount'])} {data['from']} = {_format_number(data['result'])} {data['to']}",
            f"Exchange Rate: 1 {data['from']} = {data['rate']:.4f} {data['to']}",
        ])

    lines = [f"🏛️ {data['name']}{source}:"]
    for point in data['data']:
        value = "n/a" if point['value'] is None else point['value']
        lines.append(f"  {point['date']}: {value} {data['unit'] or ''}".rstrip())
    return "\n".join(lines)

def emit(capability: Capability, params: Dict[str, Any], as_json: bool):
    envelope = asyncio.run(run_request(capability, params))

    if as_json:
        click.echo(json.dumps(envelope.to_dict(), indent=2))
    elif envelope.success:
        click.echo(render(capability, envelope))
    else:
        click.echo(f"❌ Error: {envelope.error}", err=True)
        if envelope.fallback:
            click.echo(f"   {envelope.fallback}", err=True)

    if not envelope.success:
        sys.exit(1)

json_option = click.option('--json', 'as_json', is_flag=True, help='Print the raw response envelope')

@click.group()
def cli():
    """Finance Gateway CLI"""
    pass

@cli.command()
@click.argument('symbol')
@json_option
def quote(symbol, as_json):
    """Latest stock quote for SYMBOL"""
    emit(Capability.STOCK, {'symbol': symbol}, as_json)

@cli.command()
@click.argument('ids', nargs=-1)
@json_option
def crypto(ids, as_json):
    """Cryptocurrency prices (default: five major coins)"""
    emit(Capability.CRYPTO, {'ids': list(ids) or None}, as_json)

@cli.command()
@click.argument('base', default='USD')
@json_option
def rates(base, as_json):
    """Exchange rate table for BASE currency"""
    emit(Capability.RATES, {'base': base}, as_json)

@cli.command()
@click.argument('amount')
@click.argument('from_currency')
@click.argument('to_currency')
@json_option
def convert(amount, from_currency, to_currency, as_json):
    """Convert AMOUNT from one currency to another"""
    emit(Capability.CONVERT, {'from': from_currency, 'to': to_currency, 'amount': amount}, as_json)

@cli.command()
@click.argument('indicator')
@json_option
def economic(indicator, as_json):
    """Economic indicator series (GDP, INFLATION, UNEMPLOYMENT, INTEREST_RATE, ...)"""
    emit(Capability.ECONOMIC, {'indicator': indicator}, as_json)

@cli.command()
def status():
    """Check configuration and provider selection"""
    config = get_config()
    logger.info("Finance gateway status check")

    click.echo("\n📋 Configuration Status:")
    click.echo(f"  • Log Level: {config.system.log_level}")
    click.echo(f"  • Cache TTL: {config.system.cache_ttl_seconds} seconds")
    for capability, ttl in sorted(config.system.cache_ttl_overrides.items()):
        click.echo(f"    - {capability}: {ttl} seconds")
    click.echo(f"  • Request Timeout: {config.system.request_timeout_seconds} seconds")

    click.echo("\n🔑 API Keys:")
    api_keys = [
        ("Alpha Vantage", config.api.alpha_vantage_key not in ("", "demo")),
        ("ExchangeRate-API", config.api.has_exchange_key)
    ]
    for name, is_set in api_keys:
        state = "✅ Set" if is_set else "❌ Missing"
        click.echo(f"  • {name}: {state}")

    health = asyncio.run(_health())
    click.echo("\n🔌 Providers:")
    for capability, provider in health['providers'].items():
        click.echo(f"  • {capability}: {provider}")

    click.echo("\n✅ System check complete!")

async def _health() -> Dict[str, Any]:
    async with AggregationGateway() as gateway:
        return gateway.health()

def main(argv: Optional[list] = None):
    cli(args=argv)

if __name__ == '__main__':
    main()
