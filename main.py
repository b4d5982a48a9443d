#!/usr/bin/env python3
"""
Chat Auto-Responder - Main Entry Point
======================================

This is the main entry point for the responder. It provides a
command-line interface for running the HTTP service or trying
rules out locally.

Usage:
    python main.py --web                # Serve the HTTP API (with live reload)
    python main.py --test "I love rust" # Evaluate one message
    python main.py --check              # Validate the config and list responses
    python main.py --init               # Write an example config
    python main.py --help               # Show help
"""

import argparse
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import create_default_config, get_default_config_path
from core.exceptions import ConfigError, ResponderError
from core.logging import get_logger, setup_logging
from core.store import ConfigStore
from rules.content import NoResponse

logger = get_logger("main")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Chat Auto-Responder - rule-based replies with cooldowns and hit rates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --web                      Serve on the configured host/port
  python main.py --web --port 9000          Serve on port 9000
  python main.py --test "rust is great"     Evaluate one message
  python main.py --check --config my.yaml   Validate a config file
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--web",
        action="store_true",
        help="Serve the HTTP API"
    )
    mode_group.add_argument(
        "--test",
        nargs="+",
        metavar="MESSAGE",
        help="Evaluate a message and print the reply (repeat to see cooldowns)"
    )
    mode_group.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and list responses"
    )
    mode_group.add_argument(
        "--init",
        action="store_true",
        help="Write an example configuration file"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file (default: $RESPONDER_CONFIG or ./config.yaml)"
    )
    parser.add_argument(
        "--host",
        type=str,
        help="Host for the HTTP API (overrides web.host)"
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port for the HTTP API (overrides web.port)"
    )
    parser.add_argument(
        "--no-watch",
        action="store_true",
        help="Do not reload the configuration when the file changes"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (shows Hit/Miss/Cooldown decisions)"
    )

    return parser.parse_args(argv)


def run_check(store: ConfigStore) -> None:
    """Print the loaded configuration."""
    config = store.snapshot()
    defaults = config.defaults

    print("\n" + "=" * 50)
    print("Chat Auto-Responder - Configuration")
    print("=" * 50 + "\n")
    print(f"  File: {store.config_path}")
    print(f"  Default cooldown: {defaults.default_cooldown.total_seconds():g}s")
    print(f"  Default hit rate: {defaults.default_hit_rate}")
    print(f"  Skip hit rate token: {'set' if defaults.skip_hit_rate_text else 'not set'}")
    print(f"  Skip cooldown token: {'set' if defaults.skip_duration_text else 'not set'}")

    print(f"\nResponses ({len(config.registry)})")
    print("-" * 30)
    for response in config.registry:
        spec = response.spec
        hit_rate = spec.hit_rate if spec.hit_rate is not None else defaults.default_hit_rate
        cooldown = spec.cooldown if spec.cooldown is not None else defaults.default_cooldown
        flags = " [unskippable]" if spec.unskippable else ""
        print(
            f"  {spec.name}: {spec.content.kind}, "
            f"hit rate {hit_rate}, cooldown {cooldown.total_seconds():g}s{flags}"
        )
        for line in spec.ruleset.to_text().splitlines():
            print(f"      {line}")
    print()


def run_test_messages(store: ConfigStore, messages) -> None:
    """Evaluate messages one after another, as if sent in sequence."""
    from services.dispatcher import Dispatcher, InboundMessage
    from services.renderers import ConsoleRenderer

    dispatcher = Dispatcher(store, ConsoleRenderer())

    for index, text in enumerate(messages, start=1):
        print(f"\nTest Message #{index}: {text}")
        print("-" * 50)
        message = InboundMessage(
            text=text,
            reference=f"cli-{index}",
            timestamp=datetime.now(timezone.utc),
        )
        reply = dispatcher.handle(message)
        if reply is None:
            print("  (no response)")
        elif reply.kind == NoResponse.kind:
            print("  (matched a silent response)")


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config_path = args.config or str(get_default_config_path())

    setup_logging(
        log_dir=os.environ.get("RESPONDER_LOG_DIR"),
        log_level="DEBUG" if args.debug else "INFO",
        console_output=True
    )

    try:
        if args.init:
            if Path(config_path).exists():
                print(f"Config already exists: {config_path}")
                return 1
            create_default_config(config_path)
            print(f"✓ Wrote example configuration to {config_path}")
            return 0

        store = ConfigStore.open(config_path)

        if args.web:
            from ui.web.app import run_app

            web = store.snapshot().web
            host = args.host or web.host
            port = args.port or web.port
            print(f"\nStarting HTTP API on http://{host}:{port}")
            print("Press Ctrl+C to stop\n")
            run_app(store, host=host, port=port, debug=args.debug, watch=not args.no_watch)
        elif args.test:
            run_test_messages(store, args.test)
        else:
            run_check(store)

        return 0

    except ConfigError as e:
        print(f"\nConfiguration error: {e}")
        return 1
    except ResponderError as e:
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
