"""Logging for the promotion usage ledger."""

from __future__ import annotations

import loguru
from loguru import logger


class LedgerLogger:
    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def marked(self, user_id: str, code: str, order_id: str | None) -> None:
        self._logger.bind(user_id=user_id, code=code, order_id=order_id).info(
            "Promotion {} redeemed by {} (order {})", code, user_id, order_id
        )

    def already_marked(self, user_id: str, code: str, order_id: str | None) -> None:
        self._logger.bind(user_id=user_id, code=code, order_id=order_id).warning(
            "Promotion {} was already redeemed by {}; order {} not recorded",
            code,
            user_id,
            order_id,
        )

    def read_failed(self, user_id: str, error: BaseException) -> None:
        self._logger.bind(user_id=user_id, error_type=type(error).__name__).error(
            "Failed to read promotion usage for {}: {}", user_id, error
        )

    def write_failed(
        self,
        user_id: str,
        code: str,
        order_id: str | None,
        error: BaseException,
    ) -> None:
        self._logger.bind(
            user_id=user_id,
            code=code,
            order_id=order_id,
            error_type=type(error).__name__,
        ).error(
            "Failed to record redemption of {} by {} (order {}): {}",
            code,
            user_id,
            order_id,
            error,
        )
