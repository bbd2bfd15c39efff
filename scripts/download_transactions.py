#!/usr/bin/env python3
"""
Affiliate Pipeline - Daisycon transaction download script

Fetches every transaction modified in a date range and writes the
flattened records to disk.

- Credentials come from DAISYCON_* environment variables.
- Output is only written when the whole fetch succeeds (temp file + os.replace).
- Progress and failures are logged to console and optionally a log file.

Example:
    python3 scripts/download_transactions.py --start 2024-01-01 --media-ids 7,9
"""

from __future__ import annotations
import argparse
import datetime as dt
import hashlib
import json
import logging
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Make "src/" importable when running as: python3 scripts/download_transactions.py
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT / "src") not in sys.path:
    sys.path.insert(0, str(REPO_ROOT / "src"))

INPUT_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


def utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def atomic_write_json(dest: Path, obj: Any) -> None:
    """Write JSON next to dest, then os.replace it into place."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    data = (json.dumps(obj, indent=2, ensure_ascii=False) + "\n").encode("utf-8")
    with tempfile.NamedTemporaryFile(dir=str(dest.parent), delete=False) as tf:
        tmp_path = Path(tf.name)
        tf.write(data)
        tf.flush()
        os.fsync(tf.fileno())
    os.replace(str(tmp_path), str(dest))


def setup_logging(log_level: str, log_file: Optional[Path]) -> logging.Logger:
    level = getattr(logging, log_level.upper(), logging.INFO)
    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    # Library modules log under "affiliate_pipeline"; route them to the same handlers.
    for name in ("download_transactions", "affiliate_pipeline"):
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.handlers.clear()
        for handler in handlers:
            handler.setFormatter(fmt)
            handler.setLevel(level)
            lg.addHandler(handler)

    return logging.getLogger("download_transactions")


def parse_date(value: str) -> dt.datetime:
    for fmt in INPUT_DATE_FORMATS:
        try:
            return dt.datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    raise argparse.ArgumentTypeError(
        f"invalid date '{value}'; use YYYY-MM-DD or 'YYYY-MM-DD HH:MM:SS'"
    )


def parse_media_ids(value: str) -> List[str]:
    return [x.strip() for x in value.split(",") if x.strip()]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Download Daisycon transactions")
    p.add_argument(
        "--start",
        required=True,
        type=parse_date,
        help="Only transactions modified on/after this moment (YYYY-MM-DD[ HH:MM:SS]).",
    )
    p.add_argument(
        "--end",
        default=None,
        type=parse_date,
        help="Only transactions modified on/before this moment. Empty = up to now.",
    )
    p.add_argument(
        "--media-ids",
        default="",
        help="Comma-separated media ids to restrict to. Empty = DAISYCON_MEDIA_IDS or all.",
    )
    p.add_argument(
        "--rev-share",
        action="store_true",
        help="Enable revenue share processing.",
    )
    p.add_argument(
        "--out-dir",
        default="data/raw/daisycon",
        help="Output directory (relative to repo root unless absolute).",
    )
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    p.add_argument(
        "--log-file",
        default="",
        help="Optional log file path (e.g., logs/download_transactions.log).",
    )
    return p.parse_args(argv)


def run_daisycon_fetch(
    args: argparse.Namespace, logger: logging.Logger
) -> Tuple[List[Dict[str, Any]], List[str], bool]:
    """
    Fetch all transactions for the requested range as JSON-ready dicts.
    Returns: (records, media_ids_used, rev_share_used)
    """
    from affiliate_pipeline.api_fetcher import DaisyconClient

    client = DaisyconClient.from_env()
    media_ids = parse_media_ids(args.media_ids) or client.media_ids
    rev_share = bool(args.rev_share) or client.rev_share_enabled
    logger.info(
        "Daisycon: fetching transactions modified %s .. %s (media=%s)",
        args.start,
        args.end or "now",
        media_ids or "all",
    )
    records = client.fetch_as_dicts(
        args.start,
        end_date=args.end,
        media_ids=media_ids,
        rev_share_enabled=rev_share,
    )
    return records, list(media_ids), rev_share


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    log_file = Path(args.log_file) if args.log_file.strip() else None
    logger = setup_logging(args.log_level, log_file)

    out_dir = Path(args.out_dir)
    if not out_dir.is_absolute():
        out_dir = (REPO_ROOT / out_dir).resolve()
    run_id = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    started_at = utc_now_iso()
    t0 = time.time()

    logger.info("Run ID: %s", run_id)
    logger.info("Output dir: %s", out_dir)

    try:
        records, media_ids_used, rev_share_used = run_daisycon_fetch(args, logger)
    except Exception as e:
        logger.error("Download failed: %s: %s. Nothing written.", type(e).__name__, e)
        logger.debug("Exception details", exc_info=True)
        return 1

    out_path = out_dir / f"transactions_{run_id}.json"
    atomic_write_json(
        out_path,
        {"source": "daisycon", "fetched_at": utc_now_iso(), "transactions": records},
    )

    manifest = {
        "run_id": run_id,
        "started_at": started_at,
        "finished_at": utc_now_iso(),
        "duration_s": round(time.time() - t0, 3),
        "query": {
            "start": args.start.isoformat(sep=" "),
            "end": args.end.isoformat(sep=" ") if args.end else None,
            "media_ids": media_ids_used,
            "rev_share": rev_share_used,
        },
        "records": len(records),
        "file": {
            "path": out_path.name,
            "bytes": out_path.stat().st_size,
            "sha256": sha256_file(out_path),
        },
    }
    atomic_write_json(out_dir / "manifest_latest.json", manifest)

    logger.info("Wrote %d records to %s", len(records), out_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
