import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_SOCKET_TIMEOUT_SEC: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SEC", "2"))
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "selfservice")

    # Token codec: "encrypted" seals the whole flow state into the token,
    # "redis" keeps a server-side snapshot and hands out its id.
    TOKEN_MODE: str = os.getenv("TOKEN_MODE", "encrypted").lower()
    TOKEN_SECRET: str = os.getenv("TOKEN_SECRET", "")
    TOKEN_TTL_SEC: int = int(os.getenv("TOKEN_TTL_SEC", "900"))
    SNAPSHOT_PREFIX: str = os.getenv("SNAPSHOT_PREFIX", "snapshot:")

    # Backing store for identity records read/written by stages
    RESOURCE_PREFIX: str = os.getenv("RESOURCE_PREFIX", "resource:")

    # Optional JSON file with flow definitions; empty uses the built-in table
    FLOWS_CONFIG_PATH: str = os.getenv("FLOWS_CONFIG_PATH", "")

    # Outbound mail for the email validation stage (executed in the RQ worker)
    MAIL_SERVICE_URL: str = os.getenv("MAIL_SERVICE_URL", "")
    MAIL_FROM: str = os.getenv("MAIL_FROM", "noreply@example.com")
    HTTP_TIMEOUT_SEC: float = float(os.getenv("HTTP_TIMEOUT_SEC", "5"))

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ENABLE_METRICS: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"

    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
