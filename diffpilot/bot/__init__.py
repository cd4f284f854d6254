"""Telegram front-end."""
