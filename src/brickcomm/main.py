"""Command line entry point: exchange typed values with a peer over TCP."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

import dotenv

from brickcomm import __version__, const
from brickcomm.logging_abstraction import configure_logging, get_logger, set_package_level
from brickcomm.metrics import start_metrics_server
from brickcomm.protocol.codec import PrimitiveKind, WireCodec
from brickcomm.protocol.exceptions import LinkError
from brickcomm.transport.tcp import TcpTransport, split_endpoint
from brickcomm.transport.wired import WiredConnection

logger = get_logger(__name__)

KIND_ALIASES: dict[str, PrimitiveKind] = {
    "byte": PrimitiveKind.BYTE,
    "int": PrimitiveKind.INT32,
    "int32": PrimitiveKind.INT32,
    "long": PrimitiveKind.INT64,
    "int64": PrimitiveKind.INT64,
    "string": PrimitiveKind.TEXT,
    "text": PrimitiveKind.TEXT,
}


def parse_kind(name: str) -> PrimitiveKind:
    try:
        return KIND_ALIASES[name.strip().casefold()]
    except KeyError:
        error_msg = f"unknown value kind: {name!r} (expected one of {', '.join(KIND_ALIASES)})"
        raise argparse.ArgumentTypeError(error_msg) from None


def parse_typed_value(spec: str) -> tuple[PrimitiveKind, int | str]:
    """Parse ``kind:value`` (e.g. ``int:42``, ``string:hello``).

    The value is range-checked against its wire type here so that a bad
    argument is rejected before anything is sent.
    """
    kind_name, sep, raw = spec.partition(":")
    if not sep:
        error_msg = f"value must be kind:value, got {spec!r}"
        raise argparse.ArgumentTypeError(error_msg)
    kind = parse_kind(kind_name)
    value: int | str = raw
    if kind is not PrimitiveKind.TEXT:
        try:
            value = int(raw, 0)
        except ValueError:
            error_msg = f"{kind.value} value must be an integer, got {raw!r}"
            raise argparse.ArgumentTypeError(error_msg) from None
    try:
        WireCodec.encode(kind, value)
    except (TypeError, ValueError) as e:
        raise argparse.ArgumentTypeError(str(e)) from None
    return kind, value


def parse_endpoint(endpoint: str) -> str:
    try:
        split_endpoint(endpoint)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None
    return endpoint


def parse_expect(spec: str) -> list[PrimitiveKind]:
    return [parse_kind(part) for part in spec.split(",") if part.strip()]


def run_listen(args: argparse.Namespace) -> int:
    transport = TcpTransport(host=args.host, port=args.port, io_timeout_ms=args.io_timeout_ms)
    conn = WiredConnection(transport)
    try:
        if not conn.accept(args.timeout_ms):
            logger.error("No peer connected", extra={"port": transport.port})
            return 1
        with conn:
            for kind in args.expect:
                value = conn.receive(kind)
                print(f"{kind.value}\t{value!r}")
    finally:
        transport.close()
    return 0


def run_send(args: argparse.Namespace) -> int:
    transport = TcpTransport(io_timeout_ms=args.io_timeout_ms)
    conn = WiredConnection(transport, name=args.name)
    if not conn.connect(args.endpoint):
        logger.error("Could not connect to %s", args.endpoint)
        return 1
    with conn:
        for kind, value in args.values:
            conn.send(kind, value)
            logger.debug("Sent %s %r", kind.value, value)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brickcomm", description="Exchange typed values over a TCP link.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--env-file", type=Path, default=None, help="load BRICKCOMM_* settings from a .env file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--metrics-port", type=int, default=None, help="serve Prometheus metrics on this port")
    parser.add_argument("--io-timeout-ms", type=int, default=None, help="per-value read/write timeout")
    sub = parser.add_subparsers(dest="cmd", required=True)

    listen = sub.add_parser("listen", help="wait for one peer and print the values it sends")
    listen.add_argument("--host", default="0.0.0.0")
    listen.add_argument("--port", required=True, type=int)
    listen.add_argument("--timeout-ms", type=int, default=None, help="how long to wait for the peer")
    listen.add_argument(
        "--expect",
        type=parse_expect,
        required=True,
        help="comma-separated kinds to receive, e.g. int,string",
    )
    listen.set_defaults(func=run_listen)

    send = sub.add_parser("send", help="connect to a listener and send values")
    send.add_argument("endpoint", type=parse_endpoint, help="host:port of the listener")
    send.add_argument("values", nargs="+", type=parse_typed_value, help="kind:value, e.g. int:42")
    send.add_argument("--name", default="brickcomm-cli")
    send.set_defaults(func=run_send)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env_file is not None:
        dotenv.load_dotenv(args.env_file)
        # Settings are read at import; re-read them with the new environment
        importlib.reload(const)
        # Handlers were installed from the old settings at import
        configure_logging()

    if args.log_level is not None:
        set_package_level(getattr(logging, args.log_level))

    if args.metrics_port is not None:
        start_metrics_server(args.metrics_port)

    try:
        return args.func(args)
    except LinkError as e:
        logger.error("Link failure (%s): %s", e.kind.value, e, extra={"reason": e.reason})
        return 2


if __name__ == "__main__":
    sys.exit(main())
