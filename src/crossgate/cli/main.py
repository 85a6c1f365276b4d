"""
crossgate command-line tool.

Commands:
    crossgate hash --tx-id 1 --source 43113 --dest ... --sender avax ...
                                 Print the Keccak-256 digest of a message
    crossgate markers            List pending replay markers in a file store
    crossgate status             Show gateways, registries and counters
    crossgate journal            Verify the event journal hash chain

Operations on a file store (keys are JSON keypair files or PEM):
    crossgate setup              Gateway, registries and counter for a route
    crossgate init-gateway       Initialize one gateway
    crossgate init-registry      Initialize one signer registry
    crossgate init-counter       Initialize a source chain counter
    crossgate sign               Add a signature to a signatures file
    crossgate create-record      Phase 1 for a message file
    crossgate finalize           Phase 2 for a message and signatures file
    crossgate send               Record an outbound message request

Every command accepts --output table|json|jsonl.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from crossgate.client.admin import GatewayAdmin
from crossgate.client.relayer import RelayerClient
from crossgate.core.settings import get_settings
from crossgate.crypto.hashing import encode_message, hash_message
from crossgate.crypto.signing import MessageSigner
from crossgate.gateway import events
from crossgate.gateway.context import InvocationContext
from crossgate.gateway.program import MessageGatewayProgram
from crossgate.protocol.enums import RegistryLayer
from crossgate.protocol.errors import GatewayError
from crossgate.protocol.models import (
    Message,
    MessageSignature,
    signatures_from_list,
    signatures_to_list,
)
from crossgate.protocol.validators import validate_message
from crossgate.state.accounts import (
    CounterAccount,
    GatewayAccount,
    SignerRegistryAccount,
    TxMarker,
)
from crossgate.state.journal import EventJournal
from crossgate.state.store import FileAccountStore


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_hash(args) -> None:
    """Compute the digest of a message."""
    if args.message:
        with open(args.message, "r", encoding="utf-8") as f:
            message = Message.from_dict(json.load(f))
    else:
        if args.tx_id is None or args.source is None or args.dest is None:
            print("Error: --message or --tx-id, --source and --dest required", file=sys.stderr)
            sys.exit(1)
        decode = bytes.fromhex if args.hex else (lambda s: s.encode("utf-8"))
        message = Message(
            tx_id=args.tx_id,
            source_chain_id=args.source,
            dest_chain_id=args.dest,
            sender=decode(args.sender),
            recipient=decode(args.recipient),
            on_chain_data=decode(args.on_chain_data),
            off_chain_data=decode(args.off_chain_data),
        )
    validate_message(message)

    result = {
        "message": message.to_dict(),
        "encoded_length": len(encode_message(message)),
        "digest": hash_message(message).hex(),
    }
    if args.output == "table":
        print(f"Digest:             {result['digest']}")
        print(f"Encoded length:     {result['encoded_length']} bytes")
    else:
        _print_output(result, args.output)


def cmd_markers(args) -> None:
    """List pending markers."""
    store = FileAccountStore(_store_dir(args))
    markers = sorted(
        (TxMarker.from_dict(r) for r in store.records(TxMarker.KIND)),
        key=lambda m: (m.source_chain_id, m.tx_id),
    )
    rows = [m.to_dict() for m in markers]

    if args.output == "json":
        print(json.dumps(rows, indent=2))
    elif args.output == "jsonl":
        for row in rows:
            print(json.dumps(row))
    else:
        if not rows:
            print("No pending markers.")
            return

        print(f"{'SOURCE CHAIN':<22} {'TX ID':<40} {'DIGEST':<20} {'CREATED'}")
        print("-" * 110)
        for m in markers:
            print(
                f"{m.source_chain_id:<22} {m.tx_id:<40} "
                f"{m.digest.hex()[:16] + '...':<20} {m.created_at[:19]}"
            )
        print(f"\nTotal: {len(markers)} pending")


def cmd_status(args) -> None:
    """Show gateway status."""
    store = FileAccountStore(_store_dir(args))
    gateways = [GatewayAccount.from_dict(r) for r in store.records(GatewayAccount.KIND)]
    registries = [
        SignerRegistryAccount.from_dict(r) for r in store.records(SignerRegistryAccount.KIND)
    ]
    counters = [CounterAccount.from_dict(r) for r in store.records(CounterAccount.KIND)]
    pending = len(store.records(TxMarker.KIND))

    status: Dict[str, Any] = {
        "store_dir": str(store.root_dir),
        "gateways": [
            {
                "chain_id": str(g.chain_id),
                "authority": g.authority.hex(),
                "system_enabled": g.system_enabled,
            }
            for g in sorted(gateways, key=lambda g: g.chain_id)
        ],
        "registries": [
            {
                "layer": r.layer.label,
                "chain_id": str(r.chain_id),
                "signers": len(r.signers),
                "threshold": r.threshold,
                "enabled": r.enabled,
            }
            for r in sorted(registries, key=lambda r: (r.chain_id, r.layer))
        ],
        "counters": [
            {
                "source_chain_id": str(k.source_chain_id),
                "highest_tx_id_seen": str(k.highest_tx_id_seen),
            }
            for k in sorted(counters, key=lambda k: k.source_chain_id)
        ],
        "pending_markers": pending,
    }

    if args.output == "json":
        print(json.dumps(status, indent=2))
    elif args.output == "jsonl":
        print(json.dumps(status))
    else:
        print("crossgate message gateway")
        print("=" * 40)
        print(f"Store directory:    {status['store_dir']}")
        print(f"Pending markers:    {pending}")
        print()
        print("Gateways:")
        for g in status["gateways"]:
            state = "enabled" if g["system_enabled"] else "DISABLED"
            print(f"  chain {g['chain_id']:<22} {state:<10} authority {g['authority'][:16]}...")
        print()
        print("Signer registries:")
        for r in status["registries"]:
            state = "enabled" if r["enabled"] else "disabled"
            print(
                f"  {r['layer']:<8} chain {r['chain_id']:<22} "
                f"{r['threshold']}/{r['signers']} {state}"
            )
        print()
        print("Counters:")
        for k in status["counters"]:
            print(f"  source {k['source_chain_id']:<22} highest {k['highest_tx_id_seen']}")


def cmd_journal(args) -> None:
    """Verify the journal hash chain and list entries."""
    path = args.journal or get_settings().runtime.journal_path
    if not path:
        print("Error: --journal or CROSSGATE_JOURNAL_PATH required", file=sys.stderr)
        sys.exit(1)

    journal = EventJournal(path)
    ok, reason = journal.verify_integrity()
    entries = journal.read_type(args.type) if args.type else journal.read_all()

    if args.output == "json":
        print(json.dumps({"integrity": ok, "reason": reason, "entries": entries}, indent=2))
    elif args.output == "jsonl":
        for entry in entries:
            print(json.dumps(entry))
    else:
        print(f"Journal:            {path}")
        print(f"Integrity:          {'OK' if ok else f'CORRUPT: {reason}'}")
        print(f"Entries:            {journal.entry_count}")
        print()
        for entry in entries:
            print(f"  {entry['seq']:>6}  {entry['timestamp_iso'][:19]}  {entry['event_type']}")

    if not ok:
        sys.exit(2)


def cmd_setup(args) -> None:
    """Prepare a route: gateway, registries and counter. Safe to re-run."""
    admin = GatewayAdmin(_open_program(args), _load_key(args.keypair))
    report = admin.setup(
        args.dest,
        args.source,
        via_signers=_parse_keys(args.via_signer),
        chain_signers=_parse_keys(args.chain_signer),
        project_signers=_parse_keys(args.project_signer) or (),
        via_threshold=args.via_threshold,
        chain_threshold=args.chain_threshold,
        project_threshold=args.project_threshold,
    )
    result = {name: record.to_dict() for name, record in report.items()}

    if args.output == "table":
        print(f"Route {args.source} -> {args.dest} ready")
        print(f"Authority:          {admin.authority.hex()}")
        for name in ("via", "chain", "project"):
            registry = report[name]
            state = "enabled" if registry.enabled else "disabled"
            print(f"  {name:<8} {registry.threshold}/{len(registry.signers)} {state}")
        print(f"  counter  highest {report['counter'].highest_tx_id_seen}")
    else:
        _print_output(result, args.output)


def cmd_init_gateway(args) -> None:
    """Initialize the gateway record of one chain."""
    gateway = _open_program(args).initialize_gateway(_caller(args), args.chain_id)
    _print_record(gateway.to_dict(), args.output, f"Gateway initialized for chain {args.chain_id}")


def cmd_init_registry(args) -> None:
    """Initialize one signer registry."""
    layer = RegistryLayer.from_name(args.layer)
    registry = _open_program(args).initialize_registry(
        _caller(args),
        layer,
        args.chain_id,
        _parse_keys(args.signer) or [],
        args.threshold,
        gateway_chain_id=args.gateway_chain_id,
    )
    _print_record(
        registry.to_dict(),
        args.output,
        f"{layer.label} registry initialized for chain {args.chain_id}",
    )


def cmd_init_counter(args) -> None:
    """Initialize the tx-id counter of a source chain."""
    counter = _open_program(args).initialize_counter(
        _caller(args), args.source, gateway_chain_id=args.gateway_chain_id
    )
    _print_record(counter.to_dict(), args.output, f"Counter initialized for source {args.source}")


def cmd_sign(args) -> None:
    """Add this key's signature over a message to a signatures file."""
    message = _load_message(args.message)
    signer = _load_key(args.keypair)
    signatures = _load_signatures(args.signatures, missing_ok=True)

    if any(s.signer == signer.public_key_bytes for s in signatures):
        print(f"Signer {signer.key_id} already present", file=sys.stderr)
    else:
        signatures.append(signer.sign_message(message))
        with open(args.signatures, "w", encoding="utf-8") as f:
            json.dump(signatures_to_list(signatures), f, indent=2)

    result = {
        "digest": hash_message(message).hex(),
        "signer": signer.public_key_bytes.hex(),
        "signatures": len(signatures),
    }
    _print_record(result, args.output, f"{len(signatures)} signature(s) in {args.signatures}")


def cmd_create_record(args) -> None:
    """Phase 1: record a message for later finalization."""
    relayer = RelayerClient(_open_program(args), _load_key(args.keypair))
    marker = relayer.create_record(_load_message(args.message))
    _print_record(
        marker.to_dict(),
        args.output,
        f"Marker pending source={marker.source_chain_id} tx={marker.tx_id}",
    )


def cmd_finalize(args) -> None:
    """Phase 2: verify signatures and process a recorded message."""
    relayer = RelayerClient(_open_program(args), _load_key(args.keypair))
    message = _load_message(args.message)
    result = relayer.finalize(message, _load_signatures(args.signatures))
    _print_record(
        result.to_dict(),
        args.output,
        f"Message processed source={message.source_chain_id} tx={message.tx_id}",
    )


def cmd_send(args) -> None:
    """Record an outbound message request."""
    request = _open_program(args).send_message(
        _caller(args),
        args.chain_id,
        args.tx_id,
        bytes.fromhex(args.recipient),
        args.dest,
        bytes.fromhex(args.data),
        args.confirmations,
    )
    _print_record(request, args.output, f"Send requested tx={args.tx_id} -> {args.dest}")


# =============================================================================
# HELPERS
# =============================================================================


def _store_dir(args) -> str:
    return args.store_dir or get_settings().store.dir


def _open_program(args) -> MessageGatewayProgram:
    return MessageGatewayProgram.from_settings(
        store_dir=_store_dir(args), journal_path=args.journal
    )


def _load_key(path: str) -> MessageSigner:
    if path.endswith(".pem"):
        return MessageSigner.from_pem_file(path)
    return MessageSigner.from_keypair_file(path)


def _caller(args) -> InvocationContext:
    return InvocationContext.of(_load_key(args.keypair).public_key_bytes)


def _parse_keys(values: Optional[List[str]]) -> Optional[List[bytes]]:
    if not values:
        return None
    return [bytes.fromhex(v) for v in values]


def _load_message(path: str) -> Message:
    with open(path, "r", encoding="utf-8") as f:
        message = Message.from_dict(json.load(f))
    validate_message(message)
    return message


def _load_signatures(path: str, missing_ok: bool = False) -> List[MessageSignature]:
    if missing_ok and not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        return signatures_from_list(json.load(f))


def _print_record(data: Dict[str, Any], fmt: str, summary: str) -> None:
    if fmt == "table":
        print(summary)
    else:
        _print_output(data, fmt)


def _print_output(data: Dict[str, Any], fmt: str) -> None:
    if fmt == "jsonl":
        print(json.dumps(data))
    else:
        print(json.dumps(data, indent=2))


def _configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().runtime.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crossgate",
        description="crossgate cross-chain message gateway tool",
    )
    parser.add_argument(
        "--output",
        "-o",
        choices=["table", "json", "jsonl"],
        default="table",
        help="Output format",
    )
    sub = parser.add_subparsers(dest="command")

    p_hash = sub.add_parser("hash", help="Compute a message digest")
    p_hash.add_argument("--message", help="JSON file with a message in wire form")
    p_hash.add_argument("--tx-id", type=int)
    p_hash.add_argument("--source", type=int, help="Source chain id")
    p_hash.add_argument("--dest", type=int, help="Destination chain id")
    p_hash.add_argument("--sender", default="")
    p_hash.add_argument("--recipient", default="")
    p_hash.add_argument("--on-chain-data", default="")
    p_hash.add_argument("--off-chain-data", default="")
    p_hash.add_argument(
        "--hex", action="store_true", help="Byte fields are hex rather than UTF-8 text"
    )
    p_hash.set_defaults(func=cmd_hash)

    p_markers = sub.add_parser("markers", help="List pending replay markers")
    p_markers.add_argument("--store-dir", help="File store root (default: CROSSGATE_STORE_DIR)")
    p_markers.set_defaults(func=cmd_markers)

    p_status = sub.add_parser("status", help="Show gateway status")
    p_status.add_argument("--store-dir", help="File store root (default: CROSSGATE_STORE_DIR)")
    p_status.set_defaults(func=cmd_status)

    p_journal = sub.add_parser("journal", help="Verify the event journal")
    p_journal.add_argument("--journal", help="Journal file (default: CROSSGATE_JOURNAL_PATH)")
    p_journal.add_argument(
        "--type", choices=events.ALL_EVENTS, help="Only show entries of this event type"
    )
    p_journal.set_defaults(func=cmd_journal)

    ops = argparse.ArgumentParser(add_help=False)
    ops.add_argument("--store-dir", help="File store root (default: CROSSGATE_STORE_DIR)")
    ops.add_argument("--journal", help="Journal file (default: CROSSGATE_JOURNAL_PATH)")
    ops.add_argument("--keypair", required=True, help="Signing key: JSON keypair or .pem")

    p_setup = sub.add_parser("setup", parents=[ops], help="Prepare a route (idempotent)")
    p_setup.add_argument("--dest", type=int, required=True, help="Destination chain id")
    p_setup.add_argument("--source", type=int, required=True, help="Source chain id")
    p_setup.add_argument("--via-signer", action="append", help="Hex public key (repeatable)")
    p_setup.add_argument("--chain-signer", action="append", help="Hex public key (repeatable)")
    p_setup.add_argument("--project-signer", action="append", help="Hex public key (repeatable)")
    p_setup.add_argument("--via-threshold", type=int, default=1)
    p_setup.add_argument("--chain-threshold", type=int, default=1)
    p_setup.add_argument("--project-threshold", type=int, default=0)
    p_setup.set_defaults(func=cmd_setup)

    p_gateway = sub.add_parser("init-gateway", parents=[ops], help="Initialize a gateway")
    p_gateway.add_argument("--chain-id", type=int, required=True)
    p_gateway.set_defaults(func=cmd_init_gateway)

    p_registry = sub.add_parser("init-registry", parents=[ops], help="Initialize a registry")
    p_registry.add_argument(
        "--layer", choices=[layer.label for layer in RegistryLayer], required=True
    )
    p_registry.add_argument("--chain-id", type=int, required=True)
    p_registry.add_argument("--signer", action="append", help="Hex public key (repeatable)")
    p_registry.add_argument("--threshold", type=int, required=True)
    p_registry.add_argument("--gateway-chain-id", type=int, help="Governing gateway chain")
    p_registry.set_defaults(func=cmd_init_registry)

    p_counter = sub.add_parser("init-counter", parents=[ops], help="Initialize a counter")
    p_counter.add_argument("--source", type=int, required=True, help="Source chain id")
    p_counter.add_argument("--gateway-chain-id", type=int, help="Governing gateway chain")
    p_counter.set_defaults(func=cmd_init_counter)

    p_sign = sub.add_parser("sign", help="Sign a message into a signatures file")
    p_sign.add_argument("--keypair", required=True, help="Signing key: JSON keypair or .pem")
    p_sign.add_argument("--message", required=True, help="JSON message file")
    p_sign.add_argument("--signatures", required=True, help="JSON signatures file")
    p_sign.set_defaults(func=cmd_sign)

    p_create = sub.add_parser("create-record", parents=[ops], help="Phase 1")
    p_create.add_argument("--message", required=True, help="JSON message file")
    p_create.set_defaults(func=cmd_create_record)

    p_finalize = sub.add_parser("finalize", parents=[ops], help="Phase 2")
    p_finalize.add_argument("--message", required=True, help="JSON message file")
    p_finalize.add_argument("--signatures", required=True, help="JSON signatures file")
    p_finalize.set_defaults(func=cmd_finalize)

    p_send = sub.add_parser("send", parents=[ops], help="Request an outbound message")
    p_send.add_argument("--chain-id", type=int, required=True, help="Sending chain id")
    p_send.add_argument("--tx-id", type=int, required=True)
    p_send.add_argument("--dest", type=int, required=True, help="Destination chain id")
    p_send.add_argument("--recipient", required=True, help="Hex recipient")
    p_send.add_argument("--data", default="", help="Hex chain data")
    p_send.add_argument("--confirmations", type=int, default=1)
    p_send.set_defaults(func=cmd_send)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    _configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except (GatewayError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
