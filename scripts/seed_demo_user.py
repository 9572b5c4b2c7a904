"""
Seed a demo identity record in Redis so the built-in "reset" flow can be
walked end to end (userQuery -> KBA verification -> reset).
This script is idempotent and safe to run in local/dev/CI.
"""
import json
import os
from redis import Redis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
PREFIX = os.getenv("RESOURCE_PREFIX", "resource:")
KEY = f"{PREFIX}users/demo"

DEMO_USER = {
    "_id": "demo",
    "userName": "demo",
    "givenName": "Demo",
    "sn": "User",
    "mail": "demo@example.com",
    "password": "change-me-please",
    # answers to the built-in questions ("1": favorite color)
    "kba": [
        {"questionId": "1", "answer": "blue"},
    ],
}

def main():
    r = Redis.from_url(REDIS_URL, decode_responses=True)
    for entry in DEMO_USER["kba"]:
        assert "answer" in entry and ("questionId" in entry or "customQuestion" in entry), f"bad entry: {entry}"
    r.set(KEY, json.dumps(DEMO_USER))
    print(f"OK: wrote {KEY} into {REDIS_URL}")

if __name__ == "__main__":
    main()
