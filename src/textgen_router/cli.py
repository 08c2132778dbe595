"""Command line entrypoint: generate text or inspect backends."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from dotenv import load_dotenv

from .config import load_settings, parse_order
from .facade import RouterContext
from .llm.types import (
    ConfigurationError,
    ExhaustionError,
    GenerationOptions,
    GenerationRequest,
    InvalidRequestError,
    Message,
)
from .logging_setup import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Provider-agnostic text generation router")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate", help="Generate text through the fallback chain")
    gen.add_argument("--prompt", required=True, help="User message")
    gen.add_argument("--system", default=None, help="Optional system message")
    gen.add_argument("--json", action="store_true", help="Request strict JSON output")
    gen.add_argument("--temperature", type=float, default=None)
    gen.add_argument("--max-tokens", type=int, default=None)
    gen.add_argument("--order", default=None, help="Comma-separated backend order for this call")

    telugu = subparsers.add_parser("telugu", help="Generate a short Telugu cinema article")
    telugu.add_argument("topic")

    subparsers.add_parser("probe", help="Probe every configured backend")
    subparsers.add_parser("models", help="List models each backend reports")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        context = RouterContext(load_settings(args.settings))
        router = context.router
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.command == "probe":
        for row in router.status():
            state = "available" if row["available"] else "unavailable"
            print(f"- {row['backend']} model={row['model']} tier={row['cost_tier']} {state}")
        return 0

    if args.command == "models":
        print(json.dumps(router.list_models(), indent=2))
        return 0

    try:
        if args.command == "telugu":
            response = context.generate_telugu(args.topic)
        else:
            messages = []
            if args.system:
                messages.append(Message(role="system", content=args.system))
            messages.append(Message(role="user", content=args.prompt))
            request = GenerationRequest(
                messages=tuple(messages),
                options=GenerationOptions(
                    temperature=args.temperature,
                    max_tokens=args.max_tokens,
                    json_mode=args.json,
                ),
            )
            order = parse_order(args.order) if args.order else None
            response = router.generate(request, order=order)
    except (ExhaustionError, InvalidRequestError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(response.content)
    print(
        f"[provider={response.provider} model={response.model} latency_ms={response.latency_ms}"
        f" tokens={response.tokens_used}]",
        file=sys.stderr,
    )
    return 0
