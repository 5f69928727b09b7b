# config.py
# This is a template configuration file for the stats panel bot.
# Replace the placeholder values (like 0 or None) with your actual server information.
# Secrets (BOT_TOKEN, DB_USER, DB_PASSWORD) go in the .env file, never here.

# --- ⚙️ DISCORD SERVER CONFIGURATION ⚙️ ---
# These IDs are ESSENTIAL. The bot will not work without them.
# How to get IDs: In Discord, go to User Settings > Advanced > enable Developer Mode.
# Then, right-click on your server icon or a channel name and select "Copy ID".

# (Required)
GUILD_ID = 0        # PASTE YOUR SERVER'S ID HERE.
UI_CHANNEL_ID = 0   # PASTE the ID of the text channel the panel lives in. The bot needs Send Messages and Embed Links there.

# The two panel messages (toolbar on top, content below) are created on first start.
# Their IDs are saved to the .env file as UI_NAV_MESSAGE_ID and UI_CONTENT_MESSAGE_ID
# so the same messages are reused after a restart. Delete those lines to get fresh ones.
ENV_FILE = ".env"

# --- 🖥️ PANEL SETTINGS 🖥️ ---
# Seconds without a click on the panel before it goes back to the Home view.
INACTIVITY_SECONDS = 120

# (Optional) Image URL shown as thumbnail on the ladder and player cards. Set to None for no thumbnail.
DEFAULT_THUMBNAIL = None

# Timezone used for the "Updated ..." caption on the Home view (IANA name, e.g. "America/New_York").
TIMEZONE = "UTC"

# --- 🗄️ DATABASE (MySQL / MariaDB) 🗄️ ---
# The stats database written by the game server's stats plugin.
DB_HOST = "db"
DB_PORT = 3306
DB_NAME = "stats"
DB_POOL_SIZE = 5    # Maximum open connections. One panel render uses up to three at once.

# --- 🎮 GAME SERVER STATUS 🎮 ---
# (Optional) Address of the game server. When set, the Home view shows whether it is online,
# its map and player count, read from the public api.cod.pm status service.
# Leave RCON_IP as None to hide the server status.
RCON_IP = None      # e.g. "203.0.113.10"
RCON_PORT = 28960
