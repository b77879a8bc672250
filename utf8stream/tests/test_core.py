"""Tests for policies, event logging, stream adapters and the CLI."""

import codecs

import pytest

from utf8stream.cli import utf8stream as cli
from utf8stream.core import (
    DecodeEvent,
    DecodeEventLog,
    Fail,
    Ignore,
    IncrementalDecoder,
    InvalidSequenceError,
    Replace,
    StreamedDecoder,
    StreamedUTF8Decoder,
    iter_decode,
    policy_from_name,
)


def test_policy_from_name():
    assert policy_from_name("ignore") == Ignore()
    assert policy_from_name("replace") == Replace("�")
    assert policy_from_name("replace", "?") == Replace("?")
    assert policy_from_name("strict") == Fail(InvalidSequenceError)
    assert policy_from_name("fail") == Fail(InvalidSequenceError)


def test_policy_from_unknown_name():
    with pytest.raises(ValueError):
        policy_from_name("surrogateescape")


def test_fail_default_error():
    assert Fail().error is InvalidSequenceError
    assert Fail() == policy_from_name("strict")


def test_event_log_writes(tmp_path):
    log_path = tmp_path / "logs" / "decode.log"
    log = DecodeEventLog(log_path)
    log.log("test message")
    assert log_path.exists()
    assert "test message" in log_path.read_text(encoding="utf-8")
    assert len(log.events) == 1


def test_event_log_in_memory():
    log = DecodeEventLog()
    log.log("first")
    log.log("second")
    assert [entry.split(" | ")[1] for entry in log.events] == ["first", "second"]


def test_decoder_logs_invalid_sequences(tmp_path):
    log = DecodeEventLog(tmp_path / "events.log")
    decoder = StreamedUTF8Decoder(event_log=log)
    decoder.append(b"a\xFFb")
    decoder.append(b"\xE3")
    decoder.finalize()

    messages = [entry.split(" | ")[1] for entry in log.events]
    assert messages == [
        "invalid-sequence span=[1,2) bytes=FF",
        "finalize pending=1",
        "invalid-sequence span=[3,4) bytes=E3",
    ]
    lines = (tmp_path / "events.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3


def test_decoder_logs_reset():
    log = DecodeEventLog()
    decoder = StreamedUTF8Decoder(event_log=log)
    decoder.reset()
    assert log.events[-1].endswith("| reset")


def test_iter_decode_joins_split_characters():
    assert list(iter_decode([b"\xC3", b"\xA9x"])) == ["éx"]


def test_iter_decode_yields_finalize_tail():
    fragments = list(iter_decode([b"a", b"\xE3"], on_invalid_sequence=Replace()))
    assert fragments == ["a", "�"]


def test_iter_decode_uses_given_decoder():
    decoder = StreamedUTF8Decoder(on_invalid_sequence=Replace("?"))
    assert "".join(iter_decode([b"x\xFF", b"y"], decoder)) == "x?y"
    assert decoder.errors == [(1, 2)]


def test_iter_decode_rejects_options_with_decoder():
    with pytest.raises(TypeError):
        list(iter_decode([b"a"], StreamedUTF8Decoder(), allow_redundant_encoding=True))


def test_incremental_decoder_matches_codecs_utf8():
    data = "naïve 日本語 🎉".encode("utf-8")
    ours = IncrementalDecoder()
    reference = codecs.getincrementaldecoder("utf-8")()
    for index in range(len(data)):
        chunk = data[index : index + 1]
        assert ours.decode(chunk) == reference.decode(chunk)
    assert ours.decode(b"", final=True) == reference.decode(b"", final=True)


def test_incremental_decoder_state():
    decoder = IncrementalDecoder("replace")
    assert decoder.decode(b"\xE3\x81") == ""
    assert decoder.getstate() == (b"\xE3\x81", 0)

    restored = IncrementalDecoder("replace")
    restored.setstate(decoder.getstate())
    assert restored.decode(b"\x82", final=True) == "あ"
    assert decoder.decode(b"", final=True) == "�"


def test_incremental_decoder_error_modes():
    with pytest.raises(InvalidSequenceError):
        IncrementalDecoder().decode(b"\xFF\x41")
    assert IncrementalDecoder("ignore").decode(b"a\xE3", final=True) == "a"
    assert IncrementalDecoder("replace").decode(b"a\xE3", final=True) == "a�"


def test_incremental_decoder_reset():
    decoder = IncrementalDecoder("ignore")
    decoder.decode(b"\xFF\xE3")
    assert decoder.decoder.has_errors
    decoder.reset()
    assert decoder.getstate() == (b"", 0)
    assert decoder.decoder.has_errors is False


def test_incremental_decoder_redundant_encoding():
    decoder = IncrementalDecoder("strict", allow_redundant_encoding=True)
    assert decoder.decode(b"\xC0\x80", final=True) == "\u0000"


def test_cli_demo(capsys):
    cli.main(["demo"])
    assert capsys.readouterr().out == "é\nあ\n💔\n\néあ💔\n"


def test_cli_decode_replaces_invalid_bytes(tmp_path, capsys):
    source = tmp_path / "input.txt"
    source.write_bytes(b"caf\xC3\xA9 \xFF!")
    cli.main(["decode", str(source), "--chunk-size", "1"])
    assert capsys.readouterr().out == "café �!"


def test_cli_decode_ignore_with_report(tmp_path, capsys):
    source = tmp_path / "input.txt"
    source.write_bytes(b"caf\xC3\xA9 \xFF!\xE3")
    cli.main(["decode", str(source), "--on-invalid", "ignore", "--report"])
    captured = capsys.readouterr()
    assert captured.out == "café !"
    assert captured.err.strip() == "errors=2 has_errors=True"


def test_cli_decode_fail(tmp_path, capsys):
    source = tmp_path / "input.txt"
    source.write_bytes(b"caf\xC3\xA9 \xFF!")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["decode", str(source), "--on-invalid", "fail", "--chunk-size", "3"])
    assert "[6, 7)" in str(excinfo.value.code)
    assert capsys.readouterr().out == "café "


def test_cli_decode_event_log_and_redundant_encoding(tmp_path, capsys):
    source = tmp_path / "input.bin"
    source.write_bytes(b"\xC0\x80\xED\xA0\x80")
    log_path = tmp_path / "events.log"
    cli.main(
        [
            "decode",
            str(source),
            "--allow-redundant-encoding",
            "--replacement",
            "?",
            "--event-log",
            str(log_path),
        ]
    )
    assert capsys.readouterr().out == "\u0000?"
    assert "invalid-sequence span=[2,5) bytes=ED A0 80" in log_path.read_text(encoding="utf-8")


def test_cli_rejects_non_positive_chunk_size(tmp_path):
    source = tmp_path / "input.txt"
    source.write_bytes(b"x")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["decode", str(source), "--chunk-size", "0"])
    assert excinfo.value.code == 2


def test_decoder_records_structured_events():
    log = DecodeEventLog()
    decoder = StreamedUTF8Decoder(event_log=log)
    decoder.append(b"ab\xC0\x80c")
    decoder.append(b"\xE3\x81")
    decoder.finalize()

    assert log.records == [
        DecodeEvent("invalid-sequence", 2, 4, b"\xC0\x80"),
        DecodeEvent("finalize", sequence=b"\xE3\x81"),
        DecodeEvent("invalid-sequence", 5, 7, b"\xE3\x81"),
    ]
    assert log.invalid_spans() == [(2, 4), (5, 7)]
    assert DecodeEvent("reset").describe() == "reset"


class LineDecoder:
    """Decoder that only releases text up to the last newline."""

    def __init__(self) -> None:
        self._inner = StreamedUTF8Decoder(on_invalid_sequence=Replace("?"))
        self._held = ""
        self._finalized = False

    @property
    def on_invalid_sequence(self):
        return self._inner.on_invalid_sequence

    @property
    def has_errors(self) -> bool:
        return self._inner.has_errors

    def append(self, data: bytes) -> None:
        self._inner.append(data)

    def retrieve_decoded_text(self) -> str:
        text = self._held + self._inner.retrieve_decoded_text()
        if self._finalized:
            self._held = ""
            return text
        head, newline, self._held = text.rpartition("\n")
        return head + newline

    def finalize(self) -> None:
        self._inner.finalize()
        self._finalized = True

    def reset(self) -> None:
        self._inner.reset()
        self._held = ""
        self._finalized = False


def drain(decoder: StreamedDecoder, chunks) -> list:
    return list(iter_decode(chunks, decoder))


def test_iter_decode_accepts_any_streamed_decoder():
    decoder = LineDecoder()
    assert drain(decoder, [b"one\ntw", b"o\n\xFFthr", b"ee"]) == ["one\n", "two\n", "?three"]
    assert decoder.has_errors is True
    assert drain(StreamedUTF8Decoder(), [b"\xC3", b"\xA9"]) == ["é"]


def test_incremental_decoder_errors_can_be_switched():
    decoder = IncrementalDecoder("strict")
    decoder.errors = "replace"
    assert decoder.decode(b"a\xFFb", final=True) == "a�b"

    decoder.errors = "ignore"
    assert decoder.decode(b"c\xFFd") == "cd"

    decoder.errors = "strict"
    with pytest.raises(InvalidSequenceError):
        decoder.decode(b"\xFF")
