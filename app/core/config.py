from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    db_url: str
    env: Literal["prod", "dev"] = "prod"

    # JWT & token settings
    # IMPORTANT: set in environment for production
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"

    # Invitations
    invitation_ttl_hours: int = 24
    invitation_sweep_interval_seconds: int = 15 * 60  # 15 minutes

    # Battle engine
    battle_lock_timeout_seconds: float = 10.0
    ai_username: str = "AI_Opponent"
    apply_type_advantage: bool = False
    enforce_turn_order: bool = False

    # Outbound email (best effort)
    email_api_url: str | None = None
    email_api_key: str | None = None
    email_sender: str = "noreply@geobeasts.local"

    # Real-time push server (best effort)
    push_url: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"


load_dotenv()
settings = Config()  # pyright: ignore[reportCallIssue]
