"""CLI argument parsers for ChatTerm and its tools."""

from __future__ import annotations

import argparse

from chatterm.config import DEFAULT_MODEL


def _add_model_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "model",
        nargs="?",
        default=DEFAULT_MODEL,
        help=(
            "Model id, part of a model name, or a shortcut: "
            f"g (gpt), c (claude), i (gemini), o (o-series) (default: {DEFAULT_MODEL})"
        ),
    )


def _add_debug_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log debug information to stderr",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatterm",
        description="Chat with an AI assistant in the terminal, with live code highlighting",
    )
    _add_model_argument(parser)
    parser.add_argument(
        "--system",
        type=str,
        default=None,
        help="Override the system prompt",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=None,
        help="Sampling temperature passed to the model",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Print replies as raw Markdown without highlighting",
    )
    parser.add_argument(
        "--no-log",
        action="store_true",
        default=False,
        help="Do not write the conversation log",
    )
    _add_debug_flag(parser)
    return parser


def build_commitmsg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commitmsg",
        description="Write a commit message for the staged changes",
    )
    _add_model_argument(parser)
    _add_debug_flag(parser)
    return parser


def build_holefill_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="holefill",
        description="Replace the .?. placeholder in a file with model-written code",
    )
    parser.add_argument("file", help="File containing the .?. placeholder")
    parser.add_argument(
        "mini_file",
        nargs="?",
        default=None,
        help="Smaller context file sent instead of FILE (must contain .?. too)",
    )
    _add_model_argument(parser)
    _add_debug_flag(parser)
    return parser
