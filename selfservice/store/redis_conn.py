from redis import Redis
from selfservice.settings import settings


def get_redis() -> Redis:
    # One connection per call; stages and codecs never hold on to it.
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
    )
