# -*- coding: utf-8 -*-
"""
backfill_kind.py
舊版資料庫的 tx 表沒有 kind 欄位，topup/usage 是寫在 note 前綴（"[topup] ..."）。
本腳本：備份 → 補上 kind 欄位 → 把前綴搬進 kind 並從 note 移除。
  python scripts/backfill_kind.py --db ./app.db
"""
import argparse
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from hoursbank.ledger import USAGE, split_legacy_note

log = logging.getLogger("hoursbank.backfill")


# ---------- 備份 ----------
def backup_db(db: Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    bak = db.with_suffix(db.suffix + f".bak.{ts}")
    shutil.copy2(db, bak)
    for ext in (db.name + "-wal", db.name + "-shm"):
        p = db.with_name(ext)
        if p.exists():
            shutil.copy2(p, p.with_name(p.name + f".bak.{ts}"))
    log.info(f"backup written to {bak}")
    return bak


# ---------- 補欄位 + 搬前綴 ----------
def backfill(engine: Engine, table: str = "tx") -> Dict[str, int]:
    cols = {c["name"] for c in inspect(engine).get_columns(table)}
    stats = {"topup": 0, "usage": 0, "defaulted": 0}

    with engine.begin() as conn:
        if "kind" not in cols:
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN kind VARCHAR(8)"))
            log.info(f"added kind column to {table}")

        rows = conn.execute(text(f"SELECT id, note, kind FROM {table}")).mappings().all()
        for r in rows:
            kind, note = split_legacy_note(r["note"])
            if kind:
                conn.execute(text(f"UPDATE {table} SET kind = :k, note = :n WHERE id = :i"),
                             {"k": kind, "n": note, "i": r["id"]})
                stats[kind] += 1
            elif not r["kind"]:
                conn.execute(text(f"UPDATE {table} SET kind = :k WHERE id = :i"), {"k": USAGE, "i": r["id"]})
                stats["defaulted"] += 1

    log.info(f"{table} backfilled: {stats}")
    return stats


# ---------- 入口 ----------
def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="[backfill] %(message)s")
    ap = argparse.ArgumentParser(description="Move [topup]/[usage] note prefixes into the kind column.")
    ap.add_argument("--db", required=True, help="SQLite 檔完整路徑")
    ap.add_argument("--no-backup", action="store_true", help="不要先備份")
    args = ap.parse_args(argv)

    db = Path(args.db).resolve()
    if not db.exists():
        raise SystemExit(f"DB not found: {db}")

    if not args.no_backup:
        backup_db(db)
    backfill(create_engine(f"sqlite:///{db.as_posix()}", future=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
