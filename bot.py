# bot.py

import os
import signal
import sys
from typing import Optional

import aiohttp
import discord
from discord.ext import commands
from dotenv import load_dotenv
from loguru import logger

try:
    import config
except ImportError:
    logger.critical('CRITICAL: config.py not found. Please create it based on the example.')
    sys.exit(1)
from codec import is_panel_token
from panel import Panel, PanelRenderer, handle_button, handle_select
from queries import SliceProvider, create_pool
from status import ServerStatusClient
from tools import PanelConfig, PanelState

load_dotenv(getattr(config, 'ENV_FILE', '.env'))
bot_config = PanelConfig.from_config_module(config)
missing_settings = bot_config.missing_settings()
if missing_settings:
    logger.critical(f"FATAL: The following required settings are missing: {', '.join(missing_settings)}")
    logger.critical('Please fill them out in config.py / .env before starting the bot.')
    sys.exit(1)

intents = discord.Intents.default()
bot = commands.Bot(command_prefix='!', help_command=None, intents=intents)
bot.is_fully_ready = False
bot.pool = None
bot.http_session = None
panel: Optional[Panel] = None


@bot.event
async def setup_hook() -> None:
    bot.pool = await create_pool(bot_config)
    logger.info(f'Database pool ready ({bot_config.DB_HOST}:{bot_config.DB_PORT}/{bot_config.DB_NAME})')
    bot.http_session = aiohttp.ClientSession()


@bot.event
async def on_ready() -> None:
    global panel
    logger.info(f'Bot is online as {bot.user}')
    if bot.is_fully_ready:
        logger.info('Reconnected, panel already running')
        return
    try:
        state = PanelState(
            channel_id=bot_config.UI_CHANNEL_ID,
            nav_message_id=bot_config.UI_NAV_MESSAGE_ID,
            content_message_id=bot_config.UI_CONTENT_MESSAGE_ID,
        )
        status = None
        if bot_config.RCON_IP:
            status = ServerStatusClient(bot.http_session, bot_config.RCON_IP, bot_config.RCON_PORT)
        renderer = PanelRenderer(SliceProvider(bot.pool), bot_config, status)
        panel = Panel(bot, renderer, state, bot_config)
        if not await panel.ensure_surfaces():
            logger.error(f'UI channel (ID: {bot_config.UI_CHANNEL_ID}) not found. Panel is disabled.')
            return
        await panel.start_supervisor()
        bot.is_fully_ready = True
        logger.info(f'Panel ready in channel {bot_config.UI_CHANNEL_ID} '
                    f'(toolbar={state.nav_message_id}, content={state.content_message_id})')
    except Exception as e:
        logger.error(f'Error during on_ready: {e}', exc_info=True)


@bot.event
async def on_interaction(interaction: discord.Interaction) -> None:
    if interaction.type is not discord.InteractionType.component or panel is None:
        return
    if not is_panel_token((interaction.data or {}).get('custom_id')):
        return
    component_type = (interaction.data or {}).get('component_type')
    if component_type == discord.ComponentType.button.value:
        await handle_button(panel, interaction)
    elif component_type == discord.ComponentType.string_select.value:
        await handle_select(panel, interaction)


async def _initiate_shutdown() -> None:
    if getattr(bot, '_is_shutting_down', False):
        return
    bot._is_shutting_down = True
    logger.critical('Shutdown initiated by the system')
    if panel is not None:
        await panel.close()
    if bot.pool is not None:
        bot.pool.close()
        await bot.pool.wait_closed()
        logger.info('Database pool closed')
    if bot.http_session is not None:
        await bot.http_session.close()
    await bot.close()


if __name__ == '__main__':
    required_vars = ['BOT_TOKEN']
    if (missing := [var for var in required_vars if not os.getenv(var)]):
        logger.critical(f"Missing environment variables: {', '.join(missing)}")
        sys.exit(1)

    def handle_shutdown(signum, _frame):
        logger.info('Graceful shutdown initiated by signal')
        if not getattr(bot, '_is_shutting_down', False):
            bot.loop.create_task(_initiate_shutdown())

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)
    try:
        bot.run(os.getenv('BOT_TOKEN'), log_handler=None)
    except discord.LoginFailure as e:
        logger.critical(f'Invalid token: {e}')
        sys.exit(1)
    except Exception as e:
        logger.critical(f'Fatal error during bot run: {e}', exc_info=True)
        raise
    finally:
        logger.info('Shutdown complete')
