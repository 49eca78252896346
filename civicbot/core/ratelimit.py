# File: civicbot/core/ratelimit.py
# Project: civic-report-bot

from slowapi import Limiter
from slowapi.util import get_remote_address

# web-form submissions and uploads; the chat transport is not rate limited here
limiter = Limiter(key_func=get_remote_address)
