"""Logging for promotion validation.

Rejections are expected outcomes and only ever logged at debug level.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import loguru
from loguru import logger

from checkout_engine.entities import PromotionApplication

if TYPE_CHECKING:
    from checkout_engine.promotions.engine import Rejection


class PromotionLogger:
    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def accepted(self, user_id: str, application: PromotionApplication) -> None:
        self._logger.bind(
            user_id=user_id,
            code=application.code,
            discount=application.discount,
            shipping_discount=application.shipping_discount,
        ).debug(
            "Promotion {} valid for {}: discount {}, shipping discount {}",
            application.code,
            user_id,
            application.discount,
            application.shipping_discount,
        )

    def rejected(self, user_id: str, rejection: Rejection) -> None:
        self._logger.bind(
            user_id=user_id, code=rejection.code, reason=rejection.reason.value
        ).debug(
            "Promotion {} rejected for {}: {}",
            rejection.code,
            user_id,
            rejection.reason.value,
        )
