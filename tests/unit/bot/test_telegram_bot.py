"""Tests for the Telegram adapter (no network: handlers are called directly)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.constants import ChatType

from diffpilot.api.container import Container
from diffpilot.bot.telegram_bot import RESTRICTED, build_application, is_authorized
from diffpilot.domain.ports.config import AppConfig, TelegramConfig


def _update(text: str, user_id: int = 1, chat_type: str = ChatType.PRIVATE):
    update = MagicMock()
    update.effective_message.text = text
    update.effective_message.reply_text = AsyncMock()
    update.effective_user.id = user_id
    update.effective_user.username = "someone"
    update.effective_chat.id = 100
    update.effective_chat.type = chat_type
    return update


@pytest.fixture
def bot_container(tool_server):
    config = AppConfig(telegram=TelegramConfig(bot_token="123:abc", allowed_user_ids=["1"], max_message_length=50))
    container = Container(config=config, tool_server=tool_server)
    container.project_registry.register("1", "web", "/srv/web")
    container.project_registry.set_active("1", "web")
    return container


@pytest.fixture
def handler(bot_container):
    application = build_application(bot_container)
    return application.handlers[0][0].callback


class TestIsAuthorized:
    def test_empty_allow_list_admits_everyone(self):
        assert is_authorized(5, []) is True

    def test_ids_compared_as_strings(self):
        assert is_authorized(5, ["5"]) is True
        assert is_authorized(6, ["5"]) is False


class TestBuildApplication:
    def test_requires_token(self, tool_server):
        with pytest.raises(ValueError):
            build_application(Container(config=AppConfig(), tool_server=tool_server))

    @pytest.mark.asyncio
    async def test_command_reply_is_sent_in_chunks(self, handler):
        context = MagicMock()
        context.bot.send_message = AsyncMock()

        await handler(_update("/help"), context)

        sent = [call.kwargs["text"] for call in context.bot.send_message.call_args_list]
        assert len(sent) > 1
        assert all(len(chunk) <= 50 for chunk in sent)
        assert context.bot.send_message.call_args.kwargs["chat_id"] == 100

    @pytest.mark.asyncio
    async def test_conversation_is_the_chat(self, handler, bot_container, tool_server):
        context = MagicMock()
        context.bot.send_message = AsyncMock()

        await handler(_update("/change add logging"), context)

        assert bot_container.session_repository.get("1", "100").requirement == "add logging"

    @pytest.mark.asyncio
    async def test_unauthorized_user_rejected(self, handler, tool_server):
        update = _update("/change add logging", user_id=2)
        context = MagicMock()
        context.bot.send_message = AsyncMock()

        await handler(update, context)

        update.effective_message.reply_text.assert_awaited_once_with(RESTRICTED)
        assert tool_server.calls == []

    @pytest.mark.asyncio
    async def test_plain_text_hint_only_in_private_chats(self, handler):
        context = MagicMock()
        private = _update("hello")
        group = _update("hello", chat_type=ChatType.GROUP)

        await handler(private, context)
        await handler(group, context)

        private.effective_message.reply_text.assert_awaited_once()
        group.effective_message.reply_text.assert_not_awaited()


class TestConcurrency:
    def test_updates_are_processed_concurrently(self, bot_container):
        application = build_application(bot_container)

        assert application.concurrent_updates > 1

    @pytest.mark.asyncio
    async def test_cancel_reaches_orchestrator_while_change_in_flight(self, handler, bot_container, tool_server):
        context = MagicMock()
        context.bot.send_message = AsyncMock()
        tool_server.gate = asyncio.Event()

        change = asyncio.create_task(handler(_update("/change add logging"), context))
        await tool_server.entered.wait()
        await handler(_update("/cancel"), context)
        tool_server.gate.set()
        await change

        sent = "\n".join(call.kwargs["text"] for call in context.bot.send_message.call_args_list)
        assert "cancelled" in sent
        assert "discarded" in sent
        assert bot_container.session_repository.get("1", "100").requirement is None
