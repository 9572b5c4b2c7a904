import fnmatch
import os

import pytest

# the encrypted token codec refuses to start without a secret
os.environ.setdefault("TOKEN_SECRET", "test-token-secret")


class FakeRedis:
    """In-memory stand-in for the handful of Redis calls the store makes."""

    def __init__(self):
        self.data = {}
        self.ttl = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None, nx=False, xx=False):
        if nx and key in self.data:
            return None
        if xx and key not in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttl[key] = ex
        return True

    def mget(self, keys):
        return [self.data.get(k) for k in keys]

    def incr(self, key, amount=1):
        self.data[key] = str(int(self.data.get(key) or 0) + amount)
        return int(self.data[key])

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if fnmatch.fnmatchcase(k, match)]


@pytest.fixture
def fake_redis(monkeypatch):
    r = FakeRedis()
    for target in (
        "selfservice.store.resources.get_redis",
        "selfservice.store.snapshot_repo.get_redis",
        "selfservice.observability.metrics.get_redis",
    ):
        monkeypatch.setattr(target, lambda: r)
    return r
