#!/usr/bin/env python3
"""Inspect, verify and monitor EIP-2535 Diamond contracts.

Example usage::

    python scripts/inspect_diamond.py check-facets 0xf7993A8df974AD022647E63402d6315137c58ABf
    python scripts/inspect_diamond.py verify 0xf799... --chain-id 42161 --output verification.json
    python scripts/inspect_diamond.py monitor 0xf799... --state diamond_state.json
    python scripts/inspect_diamond.py test-functions 0xf799... --sample 20

Endpoints and credentials come from the environment (see
``diamond_inspector.config``); ``TENDERLY_*`` variables enable Tenderly
verification, otherwise Blockscout is consulted.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from diamond_inspector.abi import normalise_address
from diamond_inspector.compliance import check_compliance, diff
from diamond_inspector.config import InspectorConfig
from diamond_inspector.enumerator import DiamondEnumerator
from diamond_inspector.errors import DiamondInspectorError
from diamond_inspector.explorer import BlockscoutVerifier, TenderlyVerifier, Verifier
from diamond_inspector.functions import CORE_FUNCTIONS, check_functions
from diamond_inspector.models import DiamondSnapshot
from diamond_inspector.rpc import CancelToken, JsonRpcClient
from diamond_inspector.selectors import describe_selector

DEFAULT_STATE_PATH = "diamond_state.json"
PREVIEW = 5


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect EIP-2535 Diamond contracts through the Loupe interface.")
    parser.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint (default: DIAMOND_RPC_URL or Arbitrum One)")
    parser.add_argument("--chain-id", type=int, default=None, help="Chain id of the Diamond (default: DIAMOND_CHAIN_ID or 42161)")
    parser.add_argument("--max-concurrency", type=int, default=None, help="Parallel facetFunctionSelectors() lookups")
    parser.add_argument("--deadline", type=float, default=None, help="Abort the enumeration after this many seconds")
    parser.add_argument("--use-facets-call", action="store_true", help="Use the combined facets() getter")
    parser.add_argument("--log-level", default="INFO", help="Logging verbosity (DEBUG, INFO, WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check-facets", help="List facets and their selectors")
    check.add_argument("address", nargs="?", help="Diamond address (default: first of DIAMOND_ADDRESSES)")
    check.add_argument("--json", action="store_true", help="Emit the snapshot as JSON")

    verify = subparsers.add_parser("verify", help="Check verification status and compliance")
    verify.add_argument("address", nargs="?", help="Diamond address (default: first of DIAMOND_ADDRESSES)")
    verify.add_argument("--output", default=None, help="Write the verification report to this JSON file")

    monitor = subparsers.add_parser("monitor", help="Compare against the last saved snapshot")
    monitor.add_argument("address", nargs="?", help="Diamond address (default: first of DIAMOND_ADDRESSES)")
    monitor.add_argument("--state", default=DEFAULT_STATE_PATH, help="Snapshot file carried between runs")

    functions = subparsers.add_parser("test-functions", help="Check that functions are routed by the Diamond")
    functions.add_argument("address", nargs="?", help="Diamond address (default: first of DIAMOND_ADDRESSES)")
    functions.add_argument(
        "--selector",
        action="append",
        default=None,
        help="Selector to check; repeatable (default: diamondCut, facets, facetAddresses, supportsInterface)",
    )
    functions.add_argument("--sample", type=int, default=0, help="Also check the first N selectors listed by the Loupe")
    functions.add_argument("--output", default=None, help="Write the results to this JSON file")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def _build_verifier(config: InspectorConfig) -> Verifier:
    if config.tenderly is not None:
        return TenderlyVerifier(config.tenderly)
    return BlockscoutVerifier(config.blockscout_apis)


def _build_rpc(config: InspectorConfig, args: argparse.Namespace) -> JsonRpcClient:
    timeout = config.timeout
    if args.deadline:
        timeout = min(timeout, args.deadline)
    return JsonRpcClient(args.rpc_url or config.rpc_url, timeout=timeout)


def _build_enumerator(
    config: InspectorConfig,
    args: argparse.Namespace,
    *,
    with_verifier: bool,
    rpc: Optional[JsonRpcClient] = None,
) -> DiamondEnumerator:
    if rpc is None:
        rpc = _build_rpc(config, args)
    return DiamondEnumerator(
        rpc=rpc,
        verifier=_build_verifier(config) if with_verifier else None,
        max_concurrency=args.max_concurrency or config.max_concurrency,
        use_facets_call=args.use_facets_call,
    )


def _load_previous(path: Path) -> Optional[DiamondSnapshot]:
    if not path.is_file():
        return None
    try:
        return DiamondSnapshot.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        logging.warning("Ignoring unreadable state file %s: %s", path, exc)
        return None


def _print_facets(snapshot: DiamondSnapshot) -> None:
    print(f"Diamond: {snapshot.diamond_address} (chain {snapshot.chain_id})")
    print(f"Found {len(snapshot.facets)} facet(s)")
    for index, facet in enumerate(snapshot.facets, start=1):
        print(f"{index}. {facet.facet_address}")
        print(f"   Selectors: {len(facet.selectors)}")
        for selector in facet.selectors[:PREVIEW]:
            name = describe_selector(selector)
            print(f"     {selector}" + (f" -> {name}" if name else ""))
        if len(facet.selectors) > PREVIEW:
            print(f"     ... and {len(facet.selectors) - PREVIEW} more")


def _check_facets(enumerator: DiamondEnumerator, address: str, chain_id: int, token: CancelToken, as_json: bool) -> int:
    snapshot = enumerator.snapshot(address, chain_id, cancel=token)
    if as_json:
        json.dump(snapshot.as_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        _print_facets(snapshot)
    return 0


def _verify(enumerator: DiamondEnumerator, address: str, chain_id: int, token: CancelToken, output: Optional[str]) -> int:
    diamond_verified = enumerator.diamond_verified(address, chain_id)
    snapshot = enumerator.snapshot(address, chain_id, cancel=token)
    report = check_compliance(snapshot)

    print(f"Diamond: {snapshot.diamond_address} ({'verified' if diamond_verified else 'not verified'})")
    verified_count = report.facet_count - len(report.unverified_facets)
    print(f"Facets: {verified_count}/{report.facet_count} verified")
    print(f"Selectors: {report.total_selectors} total, {report.unique_selectors} unique")
    print(f"Compliant: {'yes' if report.compliant else 'no'}")
    for selector, facets in report.collisions.items():
        print(f"  Selector {selector} routed by {len(facets)} facets: {', '.join(facets)}")

    if output:
        payload = {
            **report.as_dict(),
            "diamondVerified": diamond_verified,
            "snapshot": snapshot.as_dict(),
        }
        Path(output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logging.info("Wrote report to %s", output)
    return 0 if report.compliant else 1


def _monitor(enumerator: DiamondEnumerator, address: str, chain_id: int, token: CancelToken, state: str) -> int:
    state_path = Path(state)
    previous = _load_previous(state_path)
    current = enumerator.snapshot(address, chain_id, cancel=token)

    changed = False
    if previous is None:
        print(f"Current state: {len(current.facets)} facet(s)")
    else:
        changes = diff(previous, current)
        changed = changes.has_changes
        if changed:
            print("DIAMOND CHANGES DETECTED")
            for facet in changes.added_facets:
                print(f"  + {facet}")
            for facet in changes.removed_facets:
                print(f"  - {facet}")
        else:
            print("No changes detected")

    state_path.write_text(json.dumps(current.as_dict(), indent=2), encoding="utf-8")
    logging.info("State saved to %s", state_path)
    return 1 if changed else 0


def _test_functions(
    config: InspectorConfig, args: argparse.Namespace, address: str, chain_id: int, token: CancelToken
) -> int:
    rpc = _build_rpc(config, args)
    selectors = [selector.lower() for selector in (args.selector or CORE_FUNCTIONS)]
    if args.sample > 0:
        snapshot = _build_enumerator(config, args, with_verifier=False, rpc=rpc).snapshot(address, chain_id, cancel=token)
        routed = list(dict.fromkeys(selector for facet in snapshot.facets for selector in facet.selectors))
        selectors.extend(routed[: args.sample])
        if len(routed) > args.sample:
            logging.info("Checking %d of %d routed selectors", args.sample, len(routed))

    report = check_functions(rpc, rpc, address, selectors, cancel=token)
    print(f"Diamond: {report.address} (chain {chain_id})")
    for check in report.checks:
        status = "ok" if check.exists else "MISSING"
        label = check.name or "unknown"
        detail = f" - {check.error}" if check.error else ""
        print(f"  [{status}] {check.selector} ({label}) bytecode={'yes' if check.in_bytecode else 'no'}{detail}")
    print(f"Functions present: {len(report.checks) - len(report.missing)}/{len(report.checks)}")

    if args.output:
        payload = {"chainId": chain_id, **report.as_dict()}
        Path(args.output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logging.info("Wrote results to %s", args.output)
    return 0 if report.all_present else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = InspectorConfig.from_env()
        address = args.address or (config.diamond_addresses[0] if config.diamond_addresses else None)
        if not address:
            parser.error("a Diamond address is required (argument or DIAMOND_ADDRESSES)")
        try:
            address = normalise_address(address)
        except ValueError as exc:
            parser.error(str(exc))
        chain_id = args.chain_id or config.chain_id
        token = CancelToken.with_timeout(args.deadline) if args.deadline else CancelToken()

        if args.command == "check-facets":
            enumerator = _build_enumerator(config, args, with_verifier=False)
            return _check_facets(enumerator, address, chain_id, token, args.json)
        if args.command == "verify":
            enumerator = _build_enumerator(config, args, with_verifier=True)
            return _verify(enumerator, address, chain_id, token, args.output)
        if args.command == "test-functions":
            return _test_functions(config, args, address, chain_id, token)
        enumerator = _build_enumerator(config, args, with_verifier=False)
        return _monitor(enumerator, address, chain_id, token, args.state)
    except DiamondInspectorError as exc:
        logging.error("%s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
