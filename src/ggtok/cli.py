"""Command-line tokenization of text against a GGUF vocabulary."""

import argparse
import logging
import sys

from .errors import GGTokError
from .factory import from_gguf
from .pattern import list_patterns

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ggtok",
        description="Tokenize text with the vocabulary stored in a GGUF file.",
    )
    parser.add_argument("model", help="Path to the .gguf file holding the vocabulary.")
    parser.add_argument(
        "text",
        nargs="*",
        help="Text to tokenize (default: read from stdin).",
    )
    parser.add_argument("--bos", action="store_true", help="Prepend the bos id.")
    parser.add_argument("--eos", action="store_true", help="Append the eos id.")
    parser.add_argument(
        "--pattern",
        choices=list_patterns(),
        default=None,
        help="BPE pre-tokenization pattern (default: default).",
    )
    parser.add_argument(
        "--positions",
        action="store_true",
        help="Also print the position index of every id.",
    )
    parser.add_argument(
        "--decode",
        action="store_true",
        help="Also print the text the ids decode back to.",
    )
    parser.add_argument(
        "--dump-vocab",
        metavar="PREFIX",
        default=None,
        help="Write a human-readable PREFIX.vocab listing and exit.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at debug level.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        tokenizer = from_gguf(args.model, args.pattern)
        if args.dump_vocab:
            path = tokenizer.store.save_vocab(args.dump_vocab)
            print(f"vocabulary written to {path}")
            return 0

        text = " ".join(args.text) if args.text else sys.stdin.read()
        ids, positions = tokenizer.tokenize_with_positions(
            text, add_bos=args.bos, add_eos=args.eos
        )
        print(" ".join(map(str, ids)))
        if args.positions:
            print(" ".join(map(str, positions)))
        if args.decode:
            print(tokenizer.decode(ids, skip_special=True))
    except GGTokError as e:
        log.debug("tokenization failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0
