# ws_tail.py
import argparse
import asyncio
import logging
import os
import ssl
import sys
from contextlib import suppress

from loggregator_consumer.engine.connection import LoggregatorConnection
from loggregator_consumer.errors import NotOpenError
from loggregator_consumer.schemas.record import LogRecord
from loggregator_consumer.schemas.settings import DEFAULT_KEEPALIVE_INTERVAL, ConsumerSettings

TOKEN_ENV_VAR = "LOGGREGATOR_AUTH_TOKEN"


def format_record(record: LogRecord) -> str:
    payload = record.payload.decode("utf-8", errors="replace").rstrip("\n")
    return f"{record.created_at.isoformat()} [{record.source_name}] {record.message_type.name} {payload}"


def build_tls(args: argparse.Namespace):
    if not args.tls:
        return None
    context = ssl.create_default_context()
    if args.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


async def tail(connection: LoggregatorConnection, app_id: str, auth_token: str, out=sys.stdout, err=sys.stderr) -> int:
    records, errors = connection.tail(app_id, auth_token)
    failures = 0

    async def print_errors():
        nonlocal failures
        async for error in errors:
            failures += 1
            print(f"ERROR: {error}", file=err)

    error_task = asyncio.create_task(print_errors())
    try:
        async for record in records:
            print(format_record(record), file=out, flush=True)
    finally:
        with suppress(NotOpenError):
            await connection.close()
        await error_task
    return 1 if failures else 0


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ws-tail", description="Tail an app's logs from a loggregator endpoint")
    parser.add_argument("endpoint", help="host:port of the loggregator server")
    parser.add_argument("app_id", help="guid of the app to tail")
    parser.add_argument("--token", default=os.environ.get(TOKEN_ENV_VAR, ""),
                        help=f"value of the Authorization header (default: ${TOKEN_ENV_VAR})")
    parser.add_argument("--tls", action="store_true", help="connect with wss://")
    parser.add_argument("--insecure", action="store_true", help="skip TLS certificate verification")
    parser.add_argument("--keepalive", type=float, default=DEFAULT_KEEPALIVE_INTERVAL,
                        help="seconds between keepalive frames")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    connection = LoggregatorConnection(
        args.endpoint,
        tls=build_tls(args),
        settings=ConsumerSettings(keepalive_interval=args.keepalive),
    )
    try:
        return asyncio.run(tail(connection, args.app_id, args.token))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
