"""Command-line front end for position generation and analysis.

Usage:
    randomchess generate [--max-eval N] [--depth N] [--no-kings-check]
        [--no-bishops-check] [--no-stalemate-check] [--no-eval-check]
        [--max-attempts N] [--stockfish PATH] [--server URL] [--seed N] [--verbose]
    randomchess evaluate <fen> [--depth N] [--multipv N] [--difficulty NAME]

Prints JSON to stdout; progress and diagnostics go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from dataclasses import asdict

from randomchess.backends import build_chain, result_to_payload
from randomchess.config import Settings
from randomchess.engine import EngineError
from randomchess.evaluation import build_verdict, evaluation_to_string
from randomchess.generation import GenerationAbortedError, GenerationOptions, generate_position
from randomchess.strength import STRENGTH_PROFILES


def load_settings(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.stockfish:
        overrides["stockfish_path"] = args.stockfish
    if args.server:
        overrides["analysis_server_url"] = args.server
    return Settings(**overrides)


async def _generate(args: argparse.Namespace, settings: Settings) -> dict:
    overrides = {}
    if args.max_eval is not None:
        overrides["max_evaluation"] = args.max_eval
    if args.depth is not None:
        overrides["engine_depth"] = args.depth
    if args.max_attempts is not None:
        overrides["max_attempts"] = args.max_attempts
    checks = {
        "kings_not_in_check": not args.no_kings_check,
        "bishops_on_different_colors": not args.no_bishops_check,
        "no_stalemate": not args.no_stalemate_check,
        "evaluation_within_range": not args.no_eval_check,
    }
    options = GenerationOptions.from_settings(settings).merged(fairness_checks=checks, **overrides)
    rng = random.Random(args.seed) if args.seed is not None else None

    def progress(attempt: int) -> None:
        if attempt % 10 == 0:
            print(f"attempt {attempt}...", file=sys.stderr)

    position = await generate_position(options, settings, progress, rng=rng)
    return {
        "fen": position.fen,
        "fairness": asdict(position.verdict),
        "attempts": position.attempts,
        "source": position.analysis.source,
    }


async def _evaluate(args: argparse.Namespace, settings: Settings) -> dict:
    depth = args.depth or settings.default_depth
    async with build_chain(settings, difficulty=args.difficulty) as chain:
        result = await chain.evaluate(args.fen, depth, args.multipv)
    payload = result_to_payload(result, args.fen)
    verdict = build_verdict(result, settings.max_evaluation)
    payload["source"] = result.source
    payload["display"] = evaluation_to_string(verdict.evaluation, verdict.forced_mate)
    payload["fairness"] = asdict(verdict)
    return payload


def _add_engine_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stockfish", metavar="PATH",
        help="Path to the Stockfish binary (default: from settings)",
    )
    parser.add_argument(
        "--server", metavar="URL",
        help="Remote analysis server tried before the local engine",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="randomchess",
        description="Random fair chess positions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate one fair random position")
    gen.add_argument("--max-eval", type=int, metavar="CP", help="Fairness bound in centipawns")
    gen.add_argument("--depth", type=int, help="Engine search depth")
    gen.add_argument("--max-attempts", type=int, metavar="N", help="Give up after N attempts")
    gen.add_argument("--no-kings-check", action="store_true", help="Allow kings in check")
    gen.add_argument("--no-bishops-check", action="store_true", help="Allow same-colored bishops")
    gen.add_argument("--no-stalemate-check", action="store_true", help="Allow sides with no moves")
    gen.add_argument("--no-eval-check", action="store_true", help="Accept any non-mate evaluation")
    gen.add_argument("--seed", type=int, help="Seed for reproducible placement")
    _add_engine_args(gen)

    ev = sub.add_parser("evaluate", help="Evaluate a single position")
    ev.add_argument("fen", help="Position FEN (quote the full string)")
    ev.add_argument("--depth", type=int, help="Engine search depth")
    ev.add_argument("--multipv", type=int, default=1, help="Number of principal variations")
    ev.add_argument(
        "--difficulty", default="max", choices=list(STRENGTH_PROFILES),
        help="Engine strength tier (default: max)",
    )
    _add_engine_args(ev)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    runner = _generate if args.command == "generate" else _evaluate
    try:
        result = asyncio.run(runner(args, settings))
    except GenerationAbortedError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except (EngineError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    json.dump(result, sys.stdout, indent=2)
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
