"""
Remote Config Demo - Command Line Interface

Plays the part of the app's home screen against an in-memory backend:
loads every A/B test value, shows where each one came from, and optionally
reports the impressions, the button interaction and the conversion the
screen would send.

Usage:
    abtest-remote-config-demo
    abtest-remote-config-demo --remote button_color=red --remote max_items=25
    abtest-remote-config-demo --list-keys
    abtest-remote-config-demo --help
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Dict, List, Optional

from .backends import InMemoryRemoteConfigBackend, LoggingAnalyticsBackend
from .client import RemoteConfigClient
from .configuration import ABTestConfiguration, all_descriptors
from .exceptions import ConfigSettingsError
from .models import ConfigKey, ConfigUpdate, VariantResult
from .settings import load_settings
from .tracking import EventTracker

logger = logging.getLogger(__name__)


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up command line argument parsing"""
    parser = argparse.ArgumentParser(
        prog="abtest-remote-config-demo",
        description="Load A/B test values through the remote config client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Nothing published remotely - every value is the local default
    abtest-remote-config-demo

    # Simulate an experiment overriding the button color
    abtest-remote-config-demo --remote button_color=red --track

    # Backend down - values fall back to defaults, nothing is raised
    abtest-remote-config-demo --remote button_color=red --fail-fetch

    # Save the resolved values to a JSON file
    abtest-remote-config-demo --remote max_items=25 --output values.json
        """
    )

    parser.add_argument(
        '--list-keys',
        action='store_true',
        help='List all configuration keys with their defaults and exit'
    )

    parser.add_argument(
        '--remote',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Publish a remote (experiment) value for KEY; may be repeated'
    )

    parser.add_argument(
        '--static',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Publish a static value for KEY; may be repeated'
    )

    parser.add_argument(
        '--dev',
        action='store_true',
        help='Development mode (short minimum fetch interval)'
    )

    parser.add_argument(
        '--settings',
        type=str,
        help='Path to a settings YAML file (defaults to the bundled one)'
    )

    parser.add_argument(
        '--fail-fetch',
        action='store_true',
        help='Make every fetch fail, to show the default fallback'
    )

    parser.add_argument(
        '--refresh',
        action='store_true',
        help='Force a refresh after the initial fetch'
    )

    parser.add_argument(
        '--track',
        action='store_true',
        help='Report impressions, a button interaction and a conversion'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Save resolved values to JSON file'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging output'
    )

    return parser


def parse_assignments(parser: argparse.ArgumentParser, assignments: List[str]) -> Dict[str, str]:
    """Turn KEY=VALUE arguments into a dict, rejecting unknown keys"""
    known_keys = [key.value for key in ConfigKey]
    values = {}
    for assignment in assignments:
        key, separator, value = assignment.partition('=')
        if not separator:
            parser.error(f"expected KEY=VALUE, got '{assignment}'")
        if key not in known_keys:
            parser.error(f"unknown key '{key}' (known keys: {', '.join(known_keys)})")
        values[key] = value
    return values


def load_home_screen_values(client: RemoteConfigClient) -> Dict[str, VariantResult]:
    """Resolve every value the home screen shows"""
    return {
        ConfigKey.BUTTON_COLOR.value: client.get_string(ABTestConfiguration.BUTTON_COLOR),
        ConfigKey.BUTTON_TEXT.value: client.get_string(ABTestConfiguration.BUTTON_TEXT),
        ConfigKey.WELCOME_MESSAGE.value: client.get_string(ABTestConfiguration.WELCOME_MESSAGE),
        ConfigKey.FEATURE_ENABLED.value: client.get_bool(ABTestConfiguration.FEATURE_ENABLED),
        ConfigKey.MAX_ITEMS.value: client.get_int(ABTestConfiguration.MAX_ITEMS),
    }


def track_home_screen(tracker: EventTracker, values: Dict[str, VariantResult]) -> None:
    """Send what the home screen sends on appear and on a button tap"""
    for key in (ConfigKey.WELCOME_MESSAGE, ConfigKey.BUTTON_COLOR, ConfigKey.BUTTON_TEXT, ConfigKey.FEATURE_ENABLED):
        tracker.track_impression(key, values[key.value].variant_name)

    tracker.track_interaction(ConfigKey.BUTTON_COLOR, values[ConfigKey.BUTTON_COLOR.value].variant_name)
    tracker.track_conversion(ConfigKey.BUTTON_TEXT, values[ConfigKey.BUTTON_TEXT.value].variant_name)


def format_values_summary(client: RemoteConfigClient, values: Dict[str, VariantResult]) -> None:
    """Print resolved values in a human-readable form"""
    print(f"\n{'='*60}")
    print(f"🧪 REMOTE CONFIG VALUES")
    print(f"{'='*60}")

    print(f"\n📦 Client state: {client.state.value}")
    print(f"⏱️ Minimum fetch interval: {client.ttl_seconds:.0f}s")
    if client.last_fetch_time is not None:
        print(f"🕒 Last fetch: {client.last_fetch_time.isoformat()}")
    else:
        print(f"🕒 Last fetch: never")
    if client.remote_fetch_time is not None:
        print(f"🛰️ Server data from: {client.remote_fetch_time.isoformat()}")
    if client.last_fetch_error is not None:
        print(f"⚠️ Last fetch error: {client.last_fetch_error.reason}")

    print(f"\n📋 Values:")
    for key, result in values.items():
        experiment = result.experiment_id or "-"
        print(f"   {key:<16} {result.value!r:<24} variant={result.variant_name:<10} experiment={experiment}")


def save_values_to_json(client: RemoteConfigClient, values: Dict[str, VariantResult], output_file: str) -> None:
    """Save resolved values to a JSON file"""
    payload = {
        'state': client.state.value,
        'last_fetch_time': client.last_fetch_time,
        'fetch_failures': client.fetch_failure_count,
        'values': {key: result.model_dump() for key, result in values.items()},
    }

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, default=str)

    print(f"\n💾 Values saved to: {output_file}")


async def run_demo(args: argparse.Namespace, remote: Dict[str, str], static: Dict[str, str]) -> int:
    settings = load_settings(args.settings)
    if args.dev:
        settings = settings.model_copy(update={'development_mode': True})

    backend = InMemoryRemoteConfigBackend(remote_values=remote, static_values=static)
    if args.fail_fetch:
        backend.fetch_error = ConnectionError("remote config backend unreachable")

    client = RemoteConfigClient(backend, settings)

    updates: List[ConfigUpdate] = []
    subscription = client.subscribe(updates.append)

    await client.start()
    if args.refresh:
        await client.refresh()

    values = load_home_screen_values(client)
    format_values_summary(client, values)
    print(f"\n🔄 Change notifications received: {len(updates)}")

    if args.track:
        tracker = EventTracker(LoggingAnalyticsBackend())
        track_home_screen(tracker, values)
        print(f"📊 Tracking events sent")

    if args.output:
        save_values_to_json(client, values, args.output)

    subscription.cancel()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.list_keys:
        print("\n📋 Configuration keys:")
        for descriptor in all_descriptors():
            print(f"   • {descriptor.key.value} (default: {descriptor.default_value!r})")
        print(f"\nFound {len(all_descriptors())} key(s)")
        return 0

    remote = parse_assignments(parser, args.remote)
    static = parse_assignments(parser, args.static)

    try:
        return asyncio.run(run_demo(args, remote, static))
    except ConfigSettingsError as e:
        print(f"\n❌ Invalid settings: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\n⏹️ Demo cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
