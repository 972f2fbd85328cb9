# liqmonitor/bots/telegram_bot.py
import asyncio
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from loguru import logger
from telegram import Bot

from ..schemas import LIQUIDATE, RENT_RESOURCE, RETURN_RESOURCE, DomainEvent

HEADERS = {
    LIQUIDATE: "🚨 Liquidate",
    RENT_RESOURCE: "🟢 RentResource",
    RETURN_RESOURCE: "🔵 ReturnResource",
}


class TelegramAlerter:
    """
    Event handler that posts a message per event to a Telegram chat.
    Sending happens on a single background worker, so calling the alerter
    only formats and enqueues; the dispatcher is never held up by the network.
    """

    def __init__(self, bot_token: str, chat_id: str, executor: Optional[ThreadPoolExecutor] = None):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="telegram")

    def format_event(self, event: DomainEvent) -> str:
        lines = [HEADERS.get(event.kind, event.kind)]
        lines.append(f"Time: {event.occurred_at.isoformat()}")
        lines.append(f"Block: {event.block_number}")
        lines.append(f"Tx: {event.transaction_id}")
        lines.append("")
        lines.append(f"• User: {event.user}")

        if event.kind == LIQUIDATE:
            lines.append(f"• Liquidator: {event.liquidator}")
        else:
            lines.append(f"• Receiver: {event.receiver}")

        lines.append(f"• Amount: {event.amount}")
        lines.append(f"• Resource type: {event.resource_type}")

        if event.kind == LIQUIDATE:
            lines.append(f"• Dirty rent: {event.dirty_rent}")
        elif event.kind == RENT_RESOURCE:
            lines.append(f"• Deposit added: {event.security_deposit_added}")
        else:
            lines.append(f"• Usage rental: {event.usage_rental}")
            lines.append(f"• Deposit returned: {event.security_deposit_subtracted}")

        lines.append(f"• Total amount: {event.total_amount}")
        lines.append(f"• Total deposit: {event.total_security_deposit}")
        lines.append(f"• Rent index: {event.rent_index}")
        return "\n".join(lines)

    async def _send(self, text: str):
        async with Bot(token=self.bot_token) as bot:
            await bot.send_message(chat_id=self.chat_id, text=text)

    def _send_blocking(self, text: str):
        try:
            asyncio.run(self._send(text))
        except Exception as e:
            logger.error(f"[Telegram] Failed to send alert: {e}")

    def __call__(self, event: DomainEvent) -> Future:
        text = self.format_event(event)
        logger.info(f"Sending Telegram alert:\n{text}")
        return self._executor.submit(self._send_blocking, text)

    def close(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
