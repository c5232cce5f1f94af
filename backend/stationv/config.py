# stationv/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Station V Relay"
    env: str = os.getenv("ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Host & Port settings (the desktop client connects to ws://localhost:8080/station-v)
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    ws_path: str = os.getenv("WS_PATH", "/station-v")

    # CORS origins for the renderer (vite dev server / packaged app)
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "app://.",
    ]

    # Relay behaviour
    # Number of recent messages retained per channel (oldest evicted first)
    history_limit: int = int(os.getenv("HISTORY_LIMIT", "100"))
    # When a registration asks for a nickname that is already live, hand out
    # "<nick>_<millis>" instead of refusing. Renames are always refused.
    allow_nick_suffix: bool = os.getenv("ALLOW_NICK_SUFFIX", "true").lower() in ("true", "1", "yes")

    # Optional bridge to a real IRC network (one upstream session per client
    # that sends a "config" frame naming a server). Off unless enabled.
    irc_bridge_enabled: bool = os.getenv("IRC_BRIDGE_ENABLED", "false").lower() in ("true", "1", "yes")
    # Comma-separated upstream hosts clients may ask for; empty allows any host
    irc_allowed_hosts: list[str] = [
        h.strip() for h in os.getenv("IRC_ALLOWED_HOSTS", "irc.libera.chat").split(",") if h.strip()
    ]
    irc_default_port: int = int(os.getenv("IRC_DEFAULT_PORT", "6667"))
    irc_realname: str = os.getenv("IRC_REALNAME", "Station V Bot")
    irc_quit_message: str = os.getenv("IRC_QUIT_MESSAGE", "Station V Export ending")

settings = Settings()  # Instantiate configuration
