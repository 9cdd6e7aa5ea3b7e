"""
管理員用的承諾（provenance）工具

    python -m cli commit --slots 10 --out provenance.json
    python -m cli verify --file provenance.json
    python -m cli verify --indices 3,2,1,0 --salt 0xa7571219 --hash 0x7443...

commit 產生的檔案在抽獎賣完之前都要保密，建立抽獎時只公開 hash。
"""
from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from services.provenance_service import (
    compute_provenance_hash,
    generate_provenance,
    verify_provenance,
)

log = logging.getLogger("provenance")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def parse_indices(raw: str) -> List[int]:
    """把 "3,2,1,0" 轉成 [3, 2, 1, 0]，空白項目略過"""
    return [int(part) for part in raw.split(",") if part.strip()]


def cmd_commit(args: argparse.Namespace) -> int:
    """產生洗牌後的序列與 salt，把秘密寫到檔案，只在畫面上印出 hash"""
    indices, salt, provenance_hash = generate_provenance(args.slots, salt_bytes=args.salt_bytes)
    log.debug("Indices: %s", indices)

    doc: Dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "slot_count": args.slots,
        "indices": indices,
        "salt": salt,
        "provenance_hash": provenance_hash,
    }

    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)

    print(f"Provenance hash : {provenance_hash}")
    print(f"Wrote secret    : {args.out} (keep private until reveal)")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    """
    重算承諾並與預期的 hash 比對

    返回：
        0 表示相符；不相符或輸入格式錯誤（例如 salt 不是合法的 hex）時返回 1
    """
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            doc = json.load(f)
        raw_indices = doc["indices"]
        salt = doc["salt"]
        expected = args.hash or doc["provenance_hash"]
    else:
        if not (args.indices and args.salt and args.hash):
            raise SystemExit("verify needs --file, or all of --indices, --salt and --hash")
        raw_indices = args.indices
        salt = args.salt
        expected = args.hash

    try:
        if isinstance(raw_indices, str):
            indices = parse_indices(raw_indices)
        else:
            indices = [int(i) for i in raw_indices]
        computed = compute_provenance_hash(indices, salt)
    except ValueError as e:
        print(f"INVALID INPUT: {e}")
        return 1
    log.info("Computed hash: %s", computed)

    if not verify_provenance(indices, salt, expected):
        print(f"MISMATCH: expected {expected}, computed {computed}")
        return 1

    print(f"VERIFIED: {computed}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="raffle-provenance",
        description="Generate and verify raffle provenance commitments.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("commit", help="Generate a shuffled sequence, salt and commitment.")
    c.add_argument("--slots", required=True, type=int, help="Number of raffle slots.")
    c.add_argument("--salt-bytes", type=int, default=32, help="Salt length in bytes.")
    c.add_argument("--out", default="provenance.json", help="Secret output JSON path.")
    c.set_defaults(func=cmd_commit)

    v = sub.add_parser("verify", help="Re-compute a commitment and compare.")
    v.add_argument("--file", default=None, help="Path to a commit JSON file.")
    v.add_argument("--indices", default=None, help="Comma separated indices.")
    v.add_argument("--salt", default=None, help="0x-prefixed salt.")
    v.add_argument("--hash", default=None, help="Expected provenance hash.")
    v.set_defaults(func=cmd_verify)

    return p


def main(argv: List[str] | None = None) -> int:
    """CLI 進入點，返回 process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
