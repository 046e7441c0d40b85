#!/usr/bin/env python3
"""
Load generator for POST /add
Sends concurrent add requests against a running server and reports throughput.
"""

import argparse
import random
import string
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests


def random_word(n):
    return "".join(random.choice(string.ascii_lowercase) for _ in range(n))


def random_content(words):
    return "This is about " + " ".join(random_word(5 + random.randrange(5)) for _ in range(words))


def send_request(url, api_key, i, words, topics):
    """POST one record; returns True on a 201."""
    payload = {"key": f"bench-key-{i}", "content": random_content(words)}
    target = url
    if topics:
        target = f"{url}/topic_{random.randrange(topics)}"

    try:
        response = requests.post(target, json=payload, headers={"X-API-Key": api_key}, timeout=30)
    except requests.RequestException as e:
        print(f"Error on request {i}: {e}")
        return False

    if response.status_code != 201:
        print(f"Non-201 response {i}: {response.status_code} {response.text[:200]}")
        return False
    return True


def run(url, api_key, total, workers, words, topics):
    """Send `total` requests with at most `workers` in flight. Returns (succeeded, seconds)."""
    start = time.monotonic()
    succeeded = 0
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(send_request, url, api_key, i, words, topics) for i in range(total)]
        for future in as_completed(futures):
            if future.result():
                succeeded += 1
    return succeeded, time.monotonic() - start


def main(argv=None):
    parser = argparse.ArgumentParser(description="Benchmark POST /add")
    parser.add_argument("--url", default="http://localhost:8080/add", help="Add endpoint")
    parser.add_argument("--apikey", default="demo", help="X-API-Key header value")
    parser.add_argument("--requests", type=int, default=1000, help="Total number of requests")
    parser.add_argument("--workers", type=int, default=10, help="Concurrent requests in flight")
    parser.add_argument("--words", type=int, default=50, help="Random words per record")
    parser.add_argument("--topics", type=int, default=0, help="Spread writes over N topics (0 = default topic)")
    args = parser.parse_args(argv)

    if args.requests < 1 or args.workers < 1:
        print("ERROR: --requests and --workers must be >= 1")
        sys.exit(1)

    print(f"Sending {args.requests} requests to {args.url} with {args.workers} workers...")
    succeeded, elapsed = run(args.url.rstrip("/"), args.apikey, args.requests, args.workers, args.words, args.topics)

    print("Benchmark complete!")
    print(f"Total duration: {elapsed:.2f}s")
    print(f"Successful requests: {succeeded}/{args.requests}")
    print(f"Requests per second: {succeeded / elapsed if elapsed > 0 else 0.0:.2f}")


if __name__ == "__main__":
    main()
