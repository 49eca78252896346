# File: civicbot/routers/telegram.py
# Project: civic-report-bot

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import ValidationError

from civicbot.bot.runtime import get_bot
from civicbot.core.config import settings
from civicbot.schemas.telegram import Update

router = APIRouter(tags=["telegram"])


@router.post(settings.webhook_path)
def telegram_webhook(payload: dict, background_tasks: BackgroundTasks):
    # answer right away; the update is handled after the response is sent
    try:
        update = Update.model_validate(payload)
    except ValidationError:
        raise HTTPException(status_code=400, detail="not a telegram update")
    background_tasks.add_task(get_bot().handle_update, update)
    return {"ok": True}
