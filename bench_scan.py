import argparse
import json
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from media_indexer.config import ScanConfig
from media_indexer.core import scan_full
from media_indexer.database.db import DBManager
from media_indexer.database.ops import IndexOperations


def run_once(src: Path, compute_hash: bool, threads: int, db_dir: Optional[Path]) -> float:
    db_path: Optional[Path] = None
    scan_config = ScanConfig(roots=(src,), compute_hash=compute_hash, num_threads=threads)
    if db_dir:
        db_dir.mkdir(parents=True, exist_ok=True)
        db_path = db_dir / f"bench_{uuid.uuid4().hex}.db"
        manager = DBManager(db_path)
    else:
        manager = DBManager(":memory:")

    try:
        with manager as conn:
            t0 = time.perf_counter()
            scan_full(scan_config, index=IndexOperations(conn, scan_config.batch_size))
            return time.perf_counter() - t0
    finally:
        if db_path:
            for p in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
                p.unlink(missing_ok=True)


def benchmark(src: Path, compute_hash: bool, threads: Iterable[int], repeats: int, db_dir: Optional[Path], out_file: Path):
    thread_list = list(threads)
    results = []
    for t in thread_list:
        warm_avg: Optional[float] = None
        times: List[float] = [run_once(src, compute_hash, t, db_dir) for _ in range(repeats)]
        cold = times[0]
        warm_runs = times[1:]
        if warm_runs:
            warm_avg = sum(warm_runs) / len(warm_runs)
            print(f"{t} threads: {cold:.2f}s (cold), avg warm over {len(warm_runs)} runs: {warm_avg:.2f}s")
        else:
            print(f"{t} threads: {cold:.2f}s (single run)")
        results.append(
            {
                "threads": t,
                "times": times,
                "cold": cold,
                "warm_avg": warm_avg,
            }
        )

    out_file.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now().isoformat(),
        "src": str(src),
        "compute_hash": compute_hash,
        "repeats": repeats,
        "threads": thread_list,
        "results": results,
    }
    out_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Wrote results to {out_file}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Benchmark full scans with different thread counts.")
    p.add_argument("src", type=Path, help="Source root to scan")
    p.add_argument("--threads", type=int, nargs="+", default=[1, 2, 4, 8], help="Thread counts to test")
    p.add_argument("--repeats", type=int, default=3, help="Runs per thread count; first is treated as cold")
    p.add_argument("--no-hash", action="store_true", help="Skip content hashing (metadata-only scan)")
    p.add_argument("--db-dir", type=Path, default=None, help="Directory for per-run temp SQLite DBs (default: in-memory)")
    p.add_argument("--output", type=Path, default=Path("bench_scan_results.json"), help="Path to write JSON results")
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    benchmark(args.src, not args.no_hash, args.threads, args.repeats, args.db_dir, args.output)


if __name__ == "__main__":
    main()
