"""
GRLKRASHai command line
=======================
    grlkrash run                  # 24/7 loop
    grlkrash once                 # single cycle, prints the summary
    grlkrash serve --port 3002    # HTTP API
    grlkrash clear-nonce          # replace the lowest stuck nonce
    grlkrash check-tx 0xabc...    # receipt summary
"""

import argparse
import json
import logging
import sys

from web3 import Web3

from . import config
from .logging_utils import setup_logging

logger = logging.getLogger("CLI")


def build_parser():
    parser = argparse.ArgumentParser(prog="grlkrash", description="GRLKRASHai marketing agent")
    parser.add_argument("--env", "-e", default=".env", help="Path to .env file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the agent loop")
    run.add_argument("--interval", type=int, default=None, help="Seconds between cycles")
    run.add_argument("--max-cycles", type=int, default=None)

    sub.add_parser("once", help="Run a single cycle")

    serve = sub.add_parser("serve", help="Start the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None)

    sub.add_parser("clear-nonce", help="Cancel the lowest stuck transaction")

    check = sub.add_parser("check-tx", help="Show a transaction receipt")
    check.add_argument("tx_hash")
    return parser


def _manager():
    from .agent import build_signer
    from .chain import ContractService

    signer = build_signer()
    if signer is None:
        raise SystemExit("❌ No signer configured (set PRIVATE_KEY or USE_LEDGER)")
    return ContractService(signer=signer).manager


def cmd_run(args):
    from .agent import GRLKRASHAgent

    missing = config.missing_required()
    if missing:
        logger.warning(f"⚠️ Missing settings: {', '.join(missing)}")
    ok = GRLKRASHAgent().run(interval=args.interval, max_cycles=args.max_cycles)
    return 0 if ok else 1


def cmd_once(args):
    from .agent import GRLKRASHAgent

    summary = GRLKRASHAgent().run_cycle()
    print(json.dumps(summary, indent=2, default=str))
    return 0 if summary["ok"] else 1


def cmd_serve(args):
    import uvicorn

    from .agent import GRLKRASHAgent
    from .server import create_app

    app = create_app(GRLKRASHAgent())
    uvicorn.run(app, host=args.host, port=args.port or config.PORT)
    return 0


def cmd_clear_nonce(args):
    tx_hash = _manager().cancel_stuck()
    if tx_hash:
        print(f"🧹 Cancel transaction sent: {tx_hash}")
    else:
        print("✅ No stuck transactions")
    return 0


def receipt_summary(receipt):
    tx_hash = receipt.get("transactionHash")
    return {
        "hash": Web3.to_hex(tx_hash) if isinstance(tx_hash, (bytes, bytearray)) else tx_hash,
        "status": "success" if receipt.get("status") == 1 else "reverted",
        "block": receipt.get("blockNumber"),
        "from": receipt.get("from"),
        "to": receipt.get("to"),
        "gas_used": receipt.get("gasUsed"),
        "logs": len(receipt.get("logs", [])),
    }


def cmd_check_tx(args):
    from .chain import TransactionManager

    w3 = Web3(Web3.HTTPProvider(config.RPC_URL))
    receipt = TransactionManager(w3, signer=None, chain_id=config.CHAIN_ID).get_receipt(args.tx_hash)
    if receipt is None:
        print(f"⏳ {args.tx_hash} not mined (or unknown)")
        return 1
    print(json.dumps(receipt_summary(receipt), indent=2, default=str))
    return 0


COMMANDS = {
    "run": cmd_run,
    "once": cmd_once,
    "serve": cmd_serve,
    "clear-nonce": cmd_clear_nonce,
    "check-tx": cmd_check_tx,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    if config.load_env(args.env):
        logger.info(f"✅ Loaded {args.env}")
    setup_logging(logging.DEBUG if args.debug else logging.INFO, log_dir=config.LOG_DIR)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
