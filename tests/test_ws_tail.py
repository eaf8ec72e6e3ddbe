# tests/test_ws_tail.py
import io

import pytest

import ws_tail
from loggregator_consumer.engine.connection import LoggregatorConnection
from loggregator_consumer.schemas.record import LogRecord, MessageType


def make_record(message: bytes, message_type=MessageType.OUT) -> LogRecord:
    return LogRecord(
        payload=message,
        app_id="my-app-guid",
        message_type=message_type,
        source_name="App",
        timestamp=1_700_000_000_000_000_000,
    )


def test_format_record():
    line = ws_tail.format_record(make_record(b"hello\n", MessageType.ERR))
    assert line == "2023-11-14T22:13:20+00:00 [App] ERR hello"


def test_format_record_replaces_invalid_utf8():
    assert ws_tail.format_record(make_record(b"\xffok")).endswith("OUT �ok")


def test_token_defaults_to_environment(monkeypatch):
    monkeypatch.setenv(ws_tail.TOKEN_ENV_VAR, "bearer abc")
    args = ws_tail.parse_args(["127.0.0.1:8080", "app-guid"])
    assert args.token == "bearer abc"
    assert ws_tail.build_tls(args) is None


def test_insecure_tls_context():
    args = ws_tail.parse_args(["host:443", "app-guid", "--tls", "--insecure"])
    context = ws_tail.build_tls(args)
    assert context is not None
    assert not context.check_hostname


@pytest.mark.asyncio
async def test_tail_prints_records_until_peer_closes(aggregator):
    aggregator.send_records(make_record(b"first"), make_record(b"second"))
    aggregator.frames.append(None)
    aggregator.release.set()
    out, err = io.StringIO(), io.StringIO()

    status = await ws_tail.tail(LoggregatorConnection(aggregator.endpoint), "my-app-guid", "tok", out=out, err=err)

    lines = out.getvalue().splitlines()
    assert [line.rsplit(" ", 1)[-1] for line in lines] == ["first", "second"]
    assert err.getvalue().startswith("ERROR:")
    assert status == 1


def test_format_record_with_extreme_timestamp():
    record = make_record(b"ancient").model_copy(update={"timestamp": -(2**63)})
    assert ws_tail.format_record(record).startswith("1677-09-21T")
