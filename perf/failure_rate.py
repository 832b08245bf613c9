"""
Fire a batch of concurrent POST /failure requests at a running proxy and
report how the responses split by status code.

    python perf/failure_rate.py --url http://localhost:3000 --requests 1000 --concurrency 10
"""
import argparse
import asyncio
import json
import time
from collections import Counter

import httpx

from faultproxy.config.settings import get_settings


async def run(url: str, total: int, concurrency: int, headers: dict) -> Counter:
    counts: Counter = Counter()
    queue: asyncio.Queue = asyncio.Queue()
    for i in range(total):
        queue.put_nowait(i)

    async with httpx.AsyncClient(base_url=url, timeout=30.0) as client:
        async def worker():
            while True:
                try:
                    i = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                payload = {"event": "test_webhook", "seq": i, "timestamp": int(time.time() * 1000)}
                try:
                    r = await client.post("/failure", json=payload, headers=headers)
                    counts[r.status_code] += 1
                except httpx.HTTPError as e:
                    counts[type(e).__name__] += 1

        await asyncio.gather(*(worker() for _ in range(concurrency)))
    return counts


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--url", default=get_settings().proxy_http)
    ap.add_argument("--requests", type=int, default=1000)
    ap.add_argument("--concurrency", type=int, default=10)
    ap.add_argument("--failure-rate", type=float, default=None)
    ap.add_argument("--failure-status", type=int, default=None)
    args = ap.parse_args()

    headers = {}
    if args.failure_rate is not None:
        headers["X-Failure-Rate"] = str(args.failure_rate)
    if args.failure_status is not None:
        headers["X-Failure-Status-Code"] = str(args.failure_status)

    t0 = time.monotonic()
    counts = asyncio.run(run(args.url, args.requests, args.concurrency, headers))
    elapsed = time.monotonic() - t0

    ok = sum(n for k, n in counts.items() if isinstance(k, int) and k < 400)
    print(json.dumps({
        "requests": args.requests,
        "elapsed_s": round(elapsed, 3),
        "by_status": {str(k): n for k, n in sorted(counts.items(), key=lambda kv: str(kv[0]))},
        "observed_success_ratio": round(ok / args.requests, 4) if args.requests else None,
    }, indent=2))
