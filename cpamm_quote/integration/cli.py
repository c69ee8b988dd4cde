"""
Command-line quoter.

    cpamm-quote exact-in  --pool pool.json --amount 1000000 [--b-to-a] [--referral] [--slot 123]
    cpamm-quote exact-out --pool pool.yaml --amount 5000 --timestamp 1700000000
    cpamm-quote partial-in --pool pool.json --amount 1000000 --slot 123

Prints one canonical JSON object on stdout. A quote failure prints
{"error": <name>, "code": <code>} and exits 1; unreadable input exits 2.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.fees import BASIS_POINT_MAX
from ..core.quote import (
    get_max_amount_with_slippage,
    get_min_amount_with_slippage,
    quote_exact_in,
    quote_exact_out,
    quote_partial_input,
)
from ..errors import QuoteError
from ..state.canonical import canonical_json_text
from ..state.pool import ActivationType
from .pool_snapshot import load_pool_config, load_pool_snapshot
from .settings import load_settings

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cpamm-quote", description="Quote a swap against a pool snapshot.")
    p.add_argument(
        "mode",
        choices=("exact-in", "exact-out", "partial-in"),
        help="Which side of the trade is fixed (partial-in fills up to the price bound)",
    )
    p.add_argument("--pool", required=True, type=Path, help="Pool snapshot (JSON, or YAML by .yaml/.yml suffix)")
    p.add_argument("--config", type=Path, default=None, help="Optional pool config document")
    p.add_argument(
        "--amount", required=True, type=int, help="Input amount (exact-in, partial-in) or output amount (exact-out)"
    )
    p.add_argument("--b-to-a", action="store_true", help="Swap token B for token A (default: A for B)")
    p.add_argument("--referral", action="store_true", help="Quote as a referral swap")
    p.add_argument("--timestamp", type=int, default=None, help="Unix timestamp (default: now)")
    p.add_argument("--slot", type=int, default=None, help="Current slot (required for slot-activated pools)")
    p.add_argument("--slippage-bps", type=int, default=None, help="Slippage tolerance in bps (default: from env)")
    return p


def _error_payload(exc: QuoteError) -> Dict[str, Any]:
    return {"error": exc.name, "code": exc.code}


def main(argv: Optional[List[str]] = None) -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level_number, format="%(levelname)s %(name)s: %(message)s")

    args = _build_parser().parse_args(argv)
    slippage_bps = settings.slippage_bps if args.slippage_bps is None else args.slippage_bps
    if not (0 <= slippage_bps <= BASIS_POINT_MAX):
        print(f"--slippage-bps must be in [0, {BASIS_POINT_MAX}]", file=sys.stderr)
        return 2

    try:
        pool = load_pool_snapshot(args.pool)
        config = load_pool_config(args.config) if args.config is not None else None
    except QuoteError as exc:
        print(canonical_json_text(_error_payload(exc)))
        return 1
    except (OSError, ValueError, TypeError) as exc:
        print(f"invalid input: {exc}", file=sys.stderr)
        return 2

    timestamp = int(time.time()) if args.timestamp is None else args.timestamp
    if args.slot is None:
        if pool.activation_type is ActivationType.SLOT:
            print("--slot is required for slot-activated pools", file=sys.stderr)
            return 2
        slot = 0
    else:
        slot = args.slot
    if timestamp < 0 or slot < 0:
        print("--timestamp and --slot must be non-negative", file=sys.stderr)
        return 2

    a_for_b = not args.b_to_a
    logger.info(
        "%s %s amount=%d timestamp=%d slot=%d",
        args.mode,
        "a_to_b" if a_for_b else "b_to_a",
        args.amount,
        timestamp,
        slot,
    )

    try:
        if args.mode == "exact-in":
            result = quote_exact_in(pool, config, a_for_b, timestamp, slot, args.amount, args.referral)
            payload: Dict[str, Any] = {
                "mode": "exact_in",
                "a_for_b": a_for_b,
                "result": result.as_dict(),
                "slippage_bps": slippage_bps,
                "minimum_amount_out": get_min_amount_with_slippage(result.output_amount, slippage_bps),
            }
        elif args.mode == "partial-in":
            partial = quote_partial_input(pool, config, a_for_b, timestamp, slot, args.amount, args.referral)
            payload = {
                "mode": "partial_in",
                "a_for_b": a_for_b,
                "result": partial.as_dict(),
                "slippage_bps": slippage_bps,
                "minimum_amount_out": get_min_amount_with_slippage(partial.output_amount, slippage_bps),
            }
        else:
            exact_out = quote_exact_out(pool, config, a_for_b, timestamp, slot, args.amount, args.referral)
            payload = {
                "mode": "exact_out",
                "a_for_b": a_for_b,
                "result": exact_out.as_dict(),
                "slippage_bps": slippage_bps,
                "maximum_amount_in": get_max_amount_with_slippage(
                    exact_out.included_fee_input_amount, slippage_bps
                ),
            }
    except QuoteError as exc:
        logger.info("quote failed: %s", exc.message)
        print(canonical_json_text(_error_payload(exc)))
        return 1

    print(canonical_json_text(payload))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
