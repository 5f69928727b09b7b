# tools.py

import os
import sys
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Mapping, Optional, TYPE_CHECKING

import discord
from dotenv import set_key
from loguru import logger

if TYPE_CHECKING:
    from supervisor import InactivitySupervisor

# --- Loguru Configuration ---

# Remove default logger to configure our own
logger.remove()


def patch_record(record):
    """
    Patcher function for Loguru to shorten the interaction entry point in the logs.
    """
    if record["function"] == "on_interaction":
        record["function"] = "UI"


logger.configure(patcher=patch_record)

# Add a logger for stdout (the console) with colors and a specific format
logger.add(
    sys.stdout,
    colorize=True,
    format="<green>{time:MM-DD-YYYY HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    enqueue=True,  # Asynchronous logging
)

# Add a logger for a rotating file ('panel.log')
logger.add(
    "panel.log",
    rotation="10 MB",  # New file every 10 MB
    compression="zip",  # Compress old log files
    enqueue=True,
    level="INFO",  # Log INFO level and above
)


# --- Errors ---

class PanelError(Exception):
    """Base class for everything the dashboard raises on purpose."""


class ProtocolError(PanelError):
    """A custom id that is malformed or names something we don't serve."""


class NotFoundError(PanelError):
    """A drill-down filter or selected record no longer resolves to data."""


class TransientInfraError(PanelError):
    """A surface edit or a data fetch failed."""


# --- Utility Functions ---

def sanitize_channel_name(channel_name: str) -> str:
    """
    Removes non-ASCII characters from a channel name for safe logging.
    """
    return "".join((char for char in channel_name if ord(char) < 128))


def describe_interaction(interaction: discord.Interaction) -> str:
    """One-line summary of a component click for the logs."""
    data = interaction.data or {}
    channel = sanitize_channel_name(getattr(interaction.channel, "name", None) or "?")
    message_id = interaction.message.id if interaction.message else "?"
    user = getattr(interaction.user, "name", "?")
    return f"{data.get('custom_id', '?')} in #{channel} msg={message_id} user={user}"


async def send_apology(interaction: discord.Interaction, text: str = "Something went wrong.") -> None:
    """Sends an ephemeral apology whether or not the interaction was already answered."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True)
        else:
            await interaction.response.send_message(text, ephemeral=True)
    except discord.HTTPException as send_e:
        logger.error(f"Failed to send error message to interaction: {send_e}")


def handle_errors(func: Any) -> Any:
    """
    A decorator that wraps interaction handlers to provide centralized
    error handling and logging.

    Protocol errors are logged and the click is acknowledged silently.
    Anything else is logged with a traceback and the user gets a short
    ephemeral apology. Nothing propagates back into the event loop.
    """

    @wraps(func)
    async def wrapper(*args, **kwargs):
        interaction = next(
            (arg for arg in args if isinstance(arg, discord.Interaction)), None
        )
        try:
            return await func(*args, **kwargs)
        except ProtocolError as e:
            logger.warning(f"Ignoring interaction in {func.__name__}: {e}")
            if interaction is not None and not interaction.response.is_done():
                try:
                    await interaction.response.defer()
                except discord.HTTPException as defer_e:
                    logger.debug(f"Could not acknowledge ignored interaction: {defer_e}")
        except Exception as e:
            command_name = func.__name__
            if interaction is not None and interaction.data and "custom_id" in interaction.data:
                command_name = interaction.data["custom_id"]

            # Log the full error
            logger.error(f"Error in {command_name}: {e}", exc_info=True)

            if interaction is not None:
                await send_apology(interaction)

    return wrapper


def persist_surface_id(env_file: str, key: str, message_id: int) -> None:
    """
    Writes a freshly created surface id back to the .env file so the panel
    is relocated on the next start instead of being posted twice.
    """
    try:
        set_key(env_file, key, str(message_id))
        os.environ[key] = str(message_id)
        logger.info(f"Saved {key}={message_id} to {env_file}")
    except OSError as e:
        logger.error(f"Failed to persist {key} to {env_file}: {e}", exc_info=True)


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


# --- Data Classes ---

@dataclass
class PanelConfig:
    """
    Dataclass to hold all configuration variables loaded from config.py
    and the environment. Provides type safety and default values.
    """

    # --- Discord IDs ---
    GUILD_ID: Optional[int]
    UI_CHANNEL_ID: Optional[int]
    UI_NAV_MESSAGE_ID: Optional[int]
    UI_CONTENT_MESSAGE_ID: Optional[int]

    # --- Panel Behavior ---
    INACTIVITY_SECONDS: float
    DEFAULT_THUMBNAIL: Optional[str]
    TIMEZONE: str
    ENV_FILE: str

    # --- Database ---
    DB_HOST: str
    DB_PORT: int
    DB_NAME: Optional[str]
    DB_USER: Optional[str]
    DB_PASSWORD: Optional[str]
    DB_POOL_SIZE: int

    # --- Game Server Status ---
    RCON_IP: Optional[str] = None
    RCON_PORT: Optional[int] = None

    @staticmethod
    def from_config_module(
        config_module: Any, env: Optional[Mapping[str, str]] = None
    ) -> "PanelConfig":
        """
        Factory method to create a PanelConfig instance from the loaded config.py.
        Secrets and the two persisted surface ids come from the environment.
        """
        env = os.environ if env is None else env
        return PanelConfig(
            GUILD_ID=getattr(config_module, "GUILD_ID", None),
            UI_CHANNEL_ID=getattr(config_module, "UI_CHANNEL_ID", None),
            UI_NAV_MESSAGE_ID=_optional_int(env.get("UI_NAV_MESSAGE_ID")),
            UI_CONTENT_MESSAGE_ID=_optional_int(env.get("UI_CONTENT_MESSAGE_ID")),
            INACTIVITY_SECONDS=float(getattr(config_module, "INACTIVITY_SECONDS", 120)),
            DEFAULT_THUMBNAIL=getattr(config_module, "DEFAULT_THUMBNAIL", None),
            TIMEZONE=getattr(config_module, "TIMEZONE", "UTC"),
            ENV_FILE=getattr(config_module, "ENV_FILE", ".env"),
            DB_HOST=getattr(config_module, "DB_HOST", "db"),
            DB_PORT=int(getattr(config_module, "DB_PORT", 3306)),
            DB_NAME=getattr(config_module, "DB_NAME", None),
            DB_USER=env.get("DB_USER"),
            DB_PASSWORD=env.get("DB_PASSWORD"),
            DB_POOL_SIZE=int(getattr(config_module, "DB_POOL_SIZE", 5)),
            RCON_IP=getattr(config_module, "RCON_IP", None) or None,
            RCON_PORT=_optional_int(getattr(config_module, "RCON_PORT", 28960)),
        )

    def missing_settings(self) -> list:
        required = ["GUILD_ID", "UI_CHANNEL_ID", "DB_NAME", "DB_USER"]
        return [name for name in required if not getattr(self, name)]


@dataclass
class PanelState:
    """
    Runtime state of one dashboard: the two surfaces it owns in a channel and
    the watcher that resets it. One instance per operating channel, handed to
    every handler instead of living in module globals.
    """

    channel_id: int
    nav_message_id: Optional[int] = None
    content_message_id: Optional[int] = None

    # Bumped by every transition; a render holding an older value is stale.
    generation: int = field(default=0, init=False)
    supervisor: Optional["InactivitySupervisor"] = field(default=None, init=False)

    def begin_render(self) -> int:
        self.generation += 1
        return self.generation

    def is_stale(self, generation: int) -> bool:
        return generation != self.generation

    def owns(self, message_id: Optional[int]) -> bool:
        return message_id is not None and message_id in (
            self.nav_message_id,
            self.content_message_id,
        )

    def is_toolbar(self, message_id: Optional[int]) -> bool:
        return message_id is not None and message_id == self.nav_message_id
