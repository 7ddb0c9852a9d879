import asyncio
import httpx
import logging
from typing import Optional, Set

from gymapp.core.config import TELEGRAM_BOT_TOKEN, NOTIFY_CHAT_ID

logger = logging.getLogger(__name__)

# Strong references so pending sends are not garbage collected
_pending: Set[asyncio.Task] = set()


async def send_telegram_message(
    text: str,
    chat_id: Optional[str] = None,
    parse_mode: str = "HTML",
) -> bool:
    """
    Send a message to the operators' Telegram chat.

    Returns:
        bool: True if delivered, False otherwise. Never raises.
    """
    chat_id = chat_id or NOTIFY_CHAT_ID

    if not TELEGRAM_BOT_TOKEN or not chat_id:
        logger.debug("Telegram notifications are not configured, skipping")
        return False

    url = f"https://api.telegram.org/bot{TELEGRAM_BOT_TOKEN}/sendMessage"

    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": parse_mode,
    }

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=payload, timeout=10.0)

            if response.status_code == 200:
                return True
            logger.error(f"Failed to send Telegram message: {response.text}")
            return False

    except httpx.HTTPError as e:
        logger.error(f"Error sending Telegram message: {str(e)}")
        return False


def notify_operators(text: str) -> None:
    """Fire-and-forget notification; delivery failures never reach the caller"""
    try:
        task = asyncio.get_running_loop().create_task(send_telegram_message(text))
    except RuntimeError:
        logger.debug("No running event loop, notification dropped")
        return

    _pending.add(task)
    task.add_done_callback(_pending.discard)
