"""Generate realistic fake visits for development and demos.

Usage:
    python -m scripts.seed_visits --ingest-key <INGEST_API_KEY> --url-id 1 [--url http://localhost:8000]
    python -m scripts.seed_visits --ingest-key dev-key --url-id 1 --url-id 2 --days 7 --count 5000

The short URLs must already exist; the link service owns them.
"""

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone

import httpx

COUNTRIES = [
    ("United States", 40),
    ("Germany", 12),
    ("India", 12),
    ("United Kingdom", 10),
    ("Canada", 8),
    ("Brazil", 6),
    (None, 12),
]

DEVICES = [
    # (type, brand, os, browser, user agent)
    ("desktop", None, "macOS", "Chrome", "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Chrome/120.0.0.0"),
    ("desktop", None, "Windows", "Chrome", "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0.0.0"),
    ("desktop", None, "macOS", "Firefox", "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) Firefox/121.0"),
    ("mobile", "Apple", "iOS", "Safari", "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/605.1.15"),
    ("mobile", "Samsung", "Android", "Chrome", "Mozilla/5.0 (Linux; Android 14; SM-S918B) Chrome/120.0.0.0 Mobile"),
    ("tablet", "Apple", "iPadOS", "Safari", "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) Safari/605.1.15"),
]

REFERRERS = [
    "https://google.com/search?q=short",
    "https://twitter.com/someone/status/1",
    "https://github.com/",
    "https://news.ycombinator.com/item?id=1",
    None,
    None,
    None,
]


def generate_visits(url_ids: list[int], count: int, days: int) -> list[dict]:
    """Generate a list of fake visits."""
    now = datetime.now(timezone.utc)
    start = now - timedelta(days=days)
    visits = []

    # A pool of returning visitors, some without a cookie
    num_visitors = max(count // 5, 10)
    visitors = [f"vis_{i:06d}" for i in range(num_visitors)]

    country_names = [c[0] for c in COUNTRIES]
    country_weights = [c[1] for c in COUNTRIES]

    for _ in range(count):
        device_type, brand, os_name, browser, user_agent = random.choice(DEVICES)
        ts = start + timedelta(seconds=random.randint(0, days * 86400))
        visit = {
            "url_id": random.choice(url_ids),
            "ip_address": f"203.0.113.{random.randint(1, 254)}",
            "user_agent": user_agent,
            "referer": random.choice(REFERRERS),
            "geo": {"country": random.choices(country_names, weights=country_weights, k=1)[0]},
            "device": {"type": device_type, "brand": brand, "os": {"name": os_name}},
            "browser": {"name": browser},
            "visited_at": ts.isoformat(),
        }
        if random.random() > 0.3:
            visit["visitor_id"] = random.choice(visitors)
        visits.append(visit)

    return visits


def main():
    parser = argparse.ArgumentParser(description="Seed click analytics visits")
    parser.add_argument("--ingest-key", required=True, help="Value of INGEST_API_KEY")
    parser.add_argument("--url-id", type=int, action="append", required=True, help="Short URL id")
    parser.add_argument("--url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--count", type=int, default=1000, help="Number of visits")
    parser.add_argument("--days", type=int, default=7, help="Days of history")
    args = parser.parse_args()

    print(f"Generating {args.count} visits over {args.days} days...")
    visits = generate_visits(args.url_id, args.count, args.days)

    # Uniqueness is decided against earlier visits, so send them in order
    visits.sort(key=lambda v: v["visited_at"])

    print(f"Sending to {args.url}...")
    total_sent = 0
    with httpx.Client(timeout=30) as client:
        for visit in visits:
            resp = client.post(
                f"{args.url}/api/v1/visits/",
                json=visit,
                headers={"X-Ingest-Key": args.ingest_key},
            )
            if resp.status_code != 201:
                print(f"  Error: {resp.status_code} - {resp.text}", file=sys.stderr)
                sys.exit(1)
            total_sent += 1
            if total_sent % 100 == 0:
                print(f"  Sent {total_sent}/{len(visits)} visits")

    print(f"Done! Seeded {total_sent} visits.")


if __name__ == "__main__":
    main()
