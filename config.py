import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    # --- Discord ---
    DISCORD_TOKEN = os.environ.get("DISCORD_TOKEN")
    DISCORD_PUBLIC_KEY = os.environ.get("DISCORD_PUBLIC_KEY")
    DISCORD_APPLICATION_ID = os.environ.get("DISCORD_APPLICATION_ID")
    DISCORD_API_BASE = os.environ.get("DISCORD_API_BASE", "https://discord.com/api/v10")
    DISCORD_TIMEOUT = float(os.environ.get("DISCORD_TIMEOUT", "10"))
    DISCORD_INSTALL_URL = os.environ.get(
        "DISCORD_INSTALL_URL",
        "https://discord.com/api/oauth2/authorize"
        "?client_id={application_id}&permissions=1024&scope=applications.commands%20bot",
    )

    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Key/value namespaces ---
    USERS_NAMESPACE = os.environ.get("USERS_NAMESPACE", "grateful_users")
    ENTRIES_NAMESPACE = os.environ.get("ENTRIES_NAMESPACE", "thankful")
    KV_LIST_PAGE_SIZE = int(os.environ.get("KV_LIST_PAGE_SIZE", "1000"))

    # --- Scheduling ---
    PROMPT_ODDS = int(os.environ.get("PROMPT_ODDS", "60"))
    SCHEDULE_INTERVAL_SECONDS = float(os.environ.get("SCHEDULE_INTERVAL_SECONDS", "60"))

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @property
    def install_url(self) -> str:
        return self.DISCORD_INSTALL_URL.format(application_id=self.DISCORD_APPLICATION_ID or "")


settings = Settings()
