import os
from dataclasses import dataclass, field
from typing import List


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    session_cookie: str = "hunter_session"
    seed_defaults: bool = True
    admin_username: str = "admin"
    admin_password: str = "admin-change-me"
    demo_username: str = "demo"
    demo_password: str = "demo123"
    # werkzeug hash method, e.g. "scrypt" or "pbkdf2:sha256"
    password_hash_method: str = "scrypt"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 8000)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            session_cookie=os.getenv("SESSION_COOKIE", "hunter_session"),
            seed_defaults=_env_bool("SEED_DEFAULTS", True),
            admin_username=os.getenv("ADMIN_USERNAME", "admin"),
            admin_password=os.getenv("ADMIN_PASSWORD", "admin-change-me"),
            demo_username=os.getenv("DEMO_USERNAME", "demo"),
            demo_password=os.getenv("DEMO_PASSWORD", "demo123"),
            password_hash_method=os.getenv("PASSWORD_HASH_METHOD", "scrypt"),
        )
