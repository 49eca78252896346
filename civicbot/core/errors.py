# File: civicbot/core/errors.py
# Project: civic-report-bot
"""
Domain errors shared by the chat workflow and the admin HTTP API.

Every error carries a message that is safe to show to the actor. Storage
failures are wrapped so the detail only reaches the log.
"""


class CivicBotError(Exception):
    message = "Не удалось выполнить операцию"
    http_status = 500

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(CivicBotError):
    message = "Некорректные данные"
    http_status = 400


class NotFoundError(CivicBotError):
    message = "Не найдено"
    http_status = 404


class PermissionDenied(CivicBotError):
    message = "Недостаточно прав"
    http_status = 403


class StorageError(CivicBotError):
    message = "Не удалось сохранить данные, попробуйте позже"
    http_status = 500


class DeliveryError(CivicBotError):
    """Outbound send to the chat transport failed."""
    message = "Не удалось отправить сообщение"
    http_status = 502
