"""
Structured logging for Backend Carstarz.

JSON logs with timestamp, event_type, token_id, wallet_id.
"""

from backend_carstarz.carstarz_logging.logger import (
    bind_token,
    configure_logging,
    get_logger,
    short_wallet,
)

__all__ = ["bind_token", "configure_logging", "get_logger", "short_wallet"]
