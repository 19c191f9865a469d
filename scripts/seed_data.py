#!/usr/bin/env python3
"""
Seed script — creates a small dataset for exercising the social graph API.

Creates:
  • 10 users (password "seed-password")
  • A follow graph (each user follows 4 others)
  • 3 posts per user
  • Some likes across posts

Run against a live API:
  python scripts/seed_data.py --api-url http://localhost:8000

Prints a login command and a token you can use in curl calls.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

PASSWORD = "seed-password"

BASE_USERS = [
    ("alice_ai", "Alice Chen"),
    ("bob_builder", "Bob Martinez"),
    ("carol_codes", "Carol Singh"),
    ("dave_designs", "Dave Kim"),
    ("eve_engineer", "Eve Johnson"),
    ("frank_feeds", "Frank Williams"),
    ("grace_graphs", "Grace Li"),
    ("henry_hpc", "Henry Brown"),
    ("iris_infra", "Iris Davis"),
    ("jack_ml", "Jack Wilson"),
]

SAMPLE_POSTS = [
    ("Shipped it", "Just shipped a new feature to production. Zero downtime deploys are beautiful."),
    ("Graph walks", "Follower lists are just adjacency lists with a nicer name."),
    ("Async all the way", "FastAPI async endpoints plus an async driver: no thread pool in sight."),
    ("Counters", "A like counter is one UPDATE statement. Read-modify-write loses likes."),
    ("Tracing", "OpenTelemetry traces finally connected to Jaeger. The waterfall is so satisfying."),
    ("Metrics", "Prometheus metrics: the difference between knowing and guessing in production."),
    ("Passwords", "Never store a password you could read back. Hash it and forget it."),
    ("Tokens", "Short-lived bearer tokens keep the blast radius of a leak small."),
    ("Dashboards", "Grafana dashboards are the first thing I build for any new service."),
    ("Feeds", "A feed is your own posts plus everyone you follow, newest first."),
]


@dataclass
class ApiClient:
    base_url: str
    token: Optional[str] = None

    def _request(self, method: str, path: str, data: Optional[dict] = None):
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            f"{self.base_url}{path}", data=body, headers=headers, method=method
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None):
        return self._request("POST", path, data)

    def get(self, path: str):
        return self._request("GET", path)

    def as_user(self, token: str) -> "ApiClient":
        return ApiClient(self.base_url, token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            if client.get("/health").get("status") == "ok":
                print("  API is ready!\n")
                return
        except urllib.error.URLError:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create users and log them in ─────────────────────────────────────
    print("Creating users...")
    sessions = {}
    for nick, name in BASE_USERS:
        email = f"{nick}@example.com"
        client.post("/users", {"name": name, "nick": nick, "email": email, "password": PASSWORD})
        auth = client.post("/login", {"email": email, "password": PASSWORD})
        if auth.get("token"):
            sessions[int(auth["id"])] = client.as_user(auth["token"])
            print(f"  ✓ {nick} ({auth['id']})")
        else:
            print(f"  ✗ Failed to log in as {nick}")

    if not sessions:
        print("No users available — aborting")
        return
    user_ids = list(sessions)

    # ── Create follow graph ───────────────────────────────────────────────
    print("\nCreating follow relationships...")
    for follower_id, session in sessions.items():
        others = [u for u in user_ids if u != follower_id]
        for followee_id in random.sample(others, k=min(4, len(others))):
            session.post(f"/users/{followee_id}/follow")
    print("  ✓ Follow graph created")

    # ── Create posts ──────────────────────────────────────────────────────
    print("\nCreating posts...")
    post_ids = []
    for session in sessions.values():
        for title, content in random.sample(SAMPLE_POSTS, k=3):
            pid = session.post("/posts", {"title": title, "content": content}).get("id")
            if pid:
                post_ids.append(pid)
    print(f"  ✓ {len(post_ids)} posts created")

    # ── Create some likes ─────────────────────────────────────────────────
    print("\nAdding likes...")
    likes = 0
    for post_id in post_ids:
        for user_id in random.sample(user_ids, k=random.randint(0, 5)):
            sessions[user_id].post(f"/posts/{post_id}/like")
            likes += 1
    print(f"  ✓ {likes} likes added")

    # ── Print summary ─────────────────────────────────────────────────────
    first_id = user_ids[0]
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print(f"# Log in as '{BASE_USERS[0][0]}':")
    print(f"  curl -s -X POST '{api_url}/login' \\")
    print("    -H 'Content-Type: application/json' \\")
    print(f"    -d '{{\"email\": \"{BASE_USERS[0][0]}@example.com\", \"password\": \"{PASSWORD}\"}}'\n")
    print("# Read their feed:")
    print(f"  curl -s '{api_url}/posts' -H 'Authorization: Bearer {sessions[first_id].token}'\n")
    print("# Check Prometheus metrics:")
    print(f"  curl -s '{api_url}/metrics/'")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the social graph API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
