#!/usr/bin/env python3
"""Watch Blockscout for unexpected activity on Diamond contracts.

Each run lists recent transactions sent to every configured Diamond and
raises an alert for new transactions, ``diamondCut`` upgrades, transfers
above one ether, or failed transactions. Transaction counts from the previous
run are kept in a small JSON state file.

Example usage::

    python scripts/monitor_activity.py 0xf799... --chain-id 42161
    python scripts/monitor_activity.py --watch --poll 60
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from diamond_inspector.activity import check_for_alerts
from diamond_inspector.config import InspectorConfig, blockscout_api
from diamond_inspector.errors import DiamondInspectorError, ExplorerError
from diamond_inspector.explorer import BlockscoutClient

DEFAULT_STATE_PATH = "activity_state.json"
DEFAULT_RESULTS_PATH = "activity_results.json"
DEFAULT_POLL_SECONDS = 60
DEFAULT_DELAY_SECONDS = 0.2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("addresses", nargs="*", help="Diamond addresses (default: DIAMOND_ADDRESSES)")
    parser.add_argument("--chain-id", type=int, default=None, help="Chain id (default: DIAMOND_CHAIN_ID or 42161)")
    parser.add_argument("--limit", type=int, default=20, help="Transactions to inspect per Diamond")
    parser.add_argument("--state", default=DEFAULT_STATE_PATH, help="JSON file holding last-seen transaction counts")
    parser.add_argument("--output", default=DEFAULT_RESULTS_PATH, help="JSON file receiving the run results")
    parser.add_argument("--watch", action="store_true", help="Keep polling instead of running once")
    parser.add_argument("--poll", type=int, default=DEFAULT_POLL_SECONDS, help="Seconds between polls in watch mode")
    parser.add_argument("--delay", type=float, default=DEFAULT_DELAY_SECONDS, help="Pause between Diamonds (rate limiting)")
    parser.add_argument("--log-level", default="INFO", help="Logging verbosity (DEBUG, INFO, WARNING)")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def _load_state(path: Path) -> Dict[str, int]:
    if not path.is_file():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logging.warning("Ignoring unreadable state file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        return {}
    return {str(key).lower(): int(value) for key, value in payload.items() if isinstance(value, int)}


def run_once(
    client: BlockscoutClient,
    addresses: Sequence[str],
    chain_id: int,
    previous: Dict[str, int],
    *,
    limit: int = 20,
    delay: float = 0.0,
) -> List[Dict[str, Any]]:
    """Check every address once, updating ``previous`` with the new counts."""

    results: List[Dict[str, Any]] = []
    for index, address in enumerate(addresses):
        key = address.lower()
        try:
            transactions = client.fetch_transactions(address, chain_id, limit=limit)
        except ExplorerError as exc:
            logging.warning("%s: failed to fetch transactions: %s", address, exc)
            continue

        alert = check_for_alerts(transactions, previous.get(key, 0))
        previous[key] = len(transactions)
        if alert.alert:
            logging.warning("ALERT %s: %s", address, alert.reason)
        results.append(
            {
                "contractAddress": address,
                "chainId": chain_id,
                "alert": alert.alert,
                "alertReason": alert.reason,
                "diamondCuts": alert.diamond_cut_count,
                "transactions": [tx.as_dict() for tx in transactions],
            }
        )
        if delay and index < len(addresses) - 1:
            time.sleep(delay)
    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = InspectorConfig.from_env()
    except DiamondInspectorError as exc:
        logging.error("%s", exc)
        return 2

    addresses = list(args.addresses) or list(config.diamond_addresses)
    if not addresses:
        logging.error("No Diamond addresses given (argument or DIAMOND_ADDRESSES)")
        return 2
    chain_id = args.chain_id or config.chain_id
    client = BlockscoutClient(config.blockscout_apis)
    state_path = Path(args.state)
    previous = _load_state(state_path)
    logging.info("Monitoring %d Diamond(s) via %s", len(addresses), blockscout_api(chain_id, config.blockscout_apis))

    while True:
        results = run_once(client, addresses, chain_id, previous, limit=args.limit, delay=args.delay)
        state_path.write_text(json.dumps(previous, indent=2), encoding="utf-8")
        alerts = sum(1 for result in results if result["alert"])
        Path(args.output).write_text(
            json.dumps({"chainId": chain_id, "checked": len(results), "alerts": alerts, "results": results}, indent=2),
            encoding="utf-8",
        )
        logging.info("Summary: %d Diamond(s) checked, %d alert(s)", len(results), alerts)
        if not args.watch:
            return 1 if alerts else 0
        time.sleep(args.poll)


if __name__ == "__main__":
    sys.exit(main())
