#!/usr/bin/env python3
"""Run the Telegram bot (long polling)."""
from diffpilot.api.container import get_container
from diffpilot.bot.telegram_bot import build_application
from diffpilot.main import apply_logging_config

if __name__ == "__main__":
    container = get_container()
    apply_logging_config(container)
    build_application(container).run_polling()
