"""utf8stream CLI entrypoint."""

import argparse
import sys
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from utf8stream.core import (
    DecodeEventLog,
    InvalidSequenceError,
    StreamedUTF8Decoder,
    iter_decode,
    policy_from_name,
)
from utf8stream.core.policy import REPLACEMENT_CHARACTER

# "éあ💔" split inside its second and third characters.
DEMO_CHUNKS: List[bytes] = [
    bytes([0xC3, 0xA9, 0xE3, 0x81]),
    bytes([0x82, 0xF0, 0x9F, 0x92]),
    bytes([0x94]),
]


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return number


def read_chunks(handle: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = handle.read(chunk_size)
        if not chunk:
            return
        yield chunk


def build_decoder(args: argparse.Namespace) -> StreamedUTF8Decoder:
    event_log = DecodeEventLog(Path(args.event_log)) if args.event_log else None
    return StreamedUTF8Decoder(
        on_invalid_sequence=policy_from_name(args.on_invalid, args.replacement),
        allow_redundant_encoding=args.allow_redundant_encoding,
        event_log=event_log,
    )


def decode_file(args: argparse.Namespace) -> None:
    decoder = build_decoder(args)
    try:
        if args.path == "-":
            write_decoded(decoder, sys.stdin.buffer, args.chunk_size)
        else:
            with Path(args.path).open("rb") as handle:
                write_decoded(decoder, handle, args.chunk_size)
    except InvalidSequenceError as exc:
        sys.stdout.write(decoder.retrieve_decoded_text())
        sys.stdout.flush()
        raise SystemExit(f"utf8stream: {exc}")

    if args.report:
        print(f"errors={decoder.error_count} has_errors={decoder.has_errors}", file=sys.stderr)


def write_decoded(decoder: StreamedUTF8Decoder, handle: BinaryIO, chunk_size: int) -> None:
    for text in iter_decode(read_chunks(handle, chunk_size), decoder):
        sys.stdout.write(text)


def demo(_: argparse.Namespace) -> None:
    decoder = StreamedUTF8Decoder()
    for chunk in DEMO_CHUNKS:
        decoder.append(chunk)
        print(decoder.retrieve_decoded_text())
    decoder.finalize()
    print(decoder.retrieve_decoded_text())

    decoder.reset()
    for chunk in DEMO_CHUNKS:
        decoder.append(chunk)
    decoder.finalize()
    print(decoder.retrieve_decoded_text())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Streamed UTF-8 decoder CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser("decode", help="Decode a UTF-8 file chunk by chunk")
    decode_parser.add_argument("path", help="File to decode, '-' for stdin")
    decode_parser.add_argument(
        "--chunk-size", type=positive_int, default=4096, help="Bytes read per chunk"
    )
    decode_parser.add_argument(
        "--on-invalid",
        choices=("ignore", "replace", "fail"),
        default="replace",
        help="Action taken on each invalid sequence",
    )
    decode_parser.add_argument(
        "--replacement", default=REPLACEMENT_CHARACTER, help="Text substituted by the replace action"
    )
    decode_parser.add_argument(
        "--allow-redundant-encoding",
        action="store_true",
        help="Accept overlong encodings instead of reporting them",
    )
    decode_parser.add_argument(
        "--event-log", default=None, help="Path where invalid-sequence events are appended"
    )
    decode_parser.add_argument(
        "--report", action="store_true", help="Print an error summary to stderr"
    )
    decode_parser.set_defaults(func=decode_file)

    demo_parser = subparsers.add_parser("demo", help="Decode characters split across chunks")
    demo_parser.set_defaults(func=demo)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
