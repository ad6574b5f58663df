"""CLI for dmxnet."""

import argparse
import asyncio
import logging
import signal
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dmxnet.config import (
    DmxnetConfig,
    NetworkInterfaceInfo,
    NodeConfig,
    SenderConfig,
    load_config,
)
from dmxnet.discovery import ControllerRegistry
from dmxnet.exceptions import InvalidConfigurationError
from dmxnet.node import ArtNetNode, log_level
from dmxnet.protocol import ARTNET_PORT

logger = logging.getLogger(__name__)


SENDER_FLAGS = ("net", "subnet", "universe", "host", "port")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="dmxnet - Art-Net node with ArtDmx output and ArtPoll discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Answer ArtPoll and show discovered controllers
  dmxnet --monitor

  # Send universe 0:0:1 to broadcast, channels 0-9 at full
  dmxnet --universe 1 --fill 0 9 255

  # Everything from a YAML file
  dmxnet --config dmxnet.yaml
""",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file",
    )

    # Node settings
    parser.add_argument(
        "--listen",
        type=int,
        default=ARTNET_PORT,
        help=f"Port listening for incoming data (default: {ARTNET_PORT})",
    )
    parser.add_argument(
        "--oem",
        type=lambda s: int(s, 0),
        default=0x2908,
        help="OEM code reported in ArtPollReply (default: 0x2908)",
    )
    parser.add_argument(
        "--interface",
        action="append",
        default=[],
        metavar="CIDR",
        help="Local interface, e.g. 192.168.1.20/24 (repeatable)",
    )

    # Sender settings
    # Any of these creates a sender; unset ones take SenderConfig defaults
    parser.add_argument("--net", type=int, help="Output net (0-127)")
    parser.add_argument("--subnet", type=int, help="Output subnet (0-15)")
    parser.add_argument("--universe", type=int, help="Output universe (0-15)")
    parser.add_argument(
        "--host",
        help="Destination IP (default: 255.255.255.255 broadcast)",
    )
    parser.add_argument(
        "--port",
        type=int,
        help=f"Destination port (default: {ARTNET_PORT})",
    )
    parser.add_argument(
        "--fill",
        nargs=3,
        type=int,
        metavar=("START", "STOP", "VALUE"),
        help="Fill channels START..STOP with VALUE after starting",
    )

    parser.add_argument(
        "--monitor",
        action="store_true",
        help="Show a live table of discovered controllers",
    )

    # Logging
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v info, -vv debug)",
    )

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> DmxnetConfig:
    """Create configuration from command line arguments."""
    node = NodeConfig(
        verbose=args.verbose,
        oem=args.oem,
        listen_port=args.listen,
        interfaces=[NetworkInterfaceInfo.from_cidr(cidr) for cidr in args.interface],
    )

    sender_fields = {
        name: getattr(args, name)
        for name in SENDER_FLAGS
        if getattr(args, name) is not None
    }

    senders = []
    if sender_fields or args.fill:
        senders.append(SenderConfig(**sender_fields))

    return DmxnetConfig(node=node, senders=senders)


def render_controllers(registry: ControllerRegistry) -> Panel:
    """Render the controller registry as a table."""
    controllers = registry.controllers
    if not controllers:
        return Panel(
            Text("Waiting for ArtPoll...", style="dim"),
            title="Controllers",
            border_style="blue",
        )

    now = time.time()
    table = Table(expand=True)
    table.add_column("Address")
    table.add_column("State")
    table.add_column("Last poll", justify="right")
    table.add_column("Priority", justify="right")
    table.add_column("Flags")

    for record in sorted(controllers, key=lambda c: c.address):
        flags = [
            name
            for name, enabled in (
                ("diag-unicast", record.diagnostics_unicast),
                ("diag", record.diagnostics_enabled),
                ("unilateral", record.unilateral),
            )
            if enabled
        ]
        table.add_row(
            record.address,
            Text("alive", style="green") if record.alive else Text("stale", style="red"),
            f"{record.age(now):.0f}s ago",
            str(record.priority),
            ", ".join(flags),
        )

    return Panel(table, title="Controllers", border_style="blue")


async def run(config: DmxnetConfig, fill: list[int] | None, monitor: bool) -> None:
    """Run a node with its senders until cancelled."""
    node = ArtNetNode(config.node)
    await node.start()

    live: Live | None = None
    try:
        for sender_config in config.senders:
            sender = await node.add_sender(sender_config)
            if fill:
                sender.fill_channels(*fill)

        if monitor:
            live = Live(
                render_controllers(node.registry),
                console=Console(),
                refresh_per_second=2,
                transient=True,
            )
            live.start()

        while node.is_running:
            await asyncio.sleep(0.5)
            if live:
                live.update(render_controllers(node.registry))
    except asyncio.CancelledError:
        pass
    finally:
        if live:
            live.stop()
        await node.stop()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        if args.config:
            config = load_config(args.config)
            if args.verbose:
                config.node.verbose = args.verbose
        else:
            config = config_from_args(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    # Setup logging
    logging.basicConfig(
        level=log_level(config.node.verbose),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    task = loop.create_task(run(config, args.fill, args.monitor))

    def signal_handler() -> None:
        print("\nShutting down...")
        task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(task)
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    except InvalidConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    finally:
        loop.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
