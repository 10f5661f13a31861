"""
Client-side payment confirmation through an external processor.

The processor is an opaque actor: it either confirms the payment in
place, asks the user to leave (3-D Secure, bank app) and come back, or
fails with a human-readable message. The adapter reduces that to two
outcomes plus the redirect side channel, and never retries on its own.
"""

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol, Union

from blyss_booking.config import settings

logger = logging.getLogger(__name__)

PAYMENT_FAILED_MESSAGE = "Le paiement a échoué"
PAYMENT_IN_PROGRESS_MESSAGE = "Un paiement est déjà en cours"

CompletionCallback = Callable[[], Union[None, Awaitable[None]]]


class ProcessorStatus(str, Enum):
    """What the processor reports after a confirmation attempt."""
    SUCCEEDED = "succeeded"
    REDIRECT_REQUIRED = "redirect_required"
    FAILED = "failed"


@dataclass(frozen=True)
class ProcessorResult:
    status: ProcessorStatus
    message: Optional[str] = None
    redirect_url: Optional[str] = None


class PaymentProcessorError(Exception):
    """Raised by processors for declines and processor-side validation errors."""


class PaymentProcessor(Protocol):
    """Capability the adapter needs from a payment processor SDK."""

    async def confirm_payment(self, client_secret: str, return_url: str) -> ProcessorResult:
        ...

    async def retrieve_payment(self, client_secret: str) -> ProcessorResult:
        ...


class PaymentOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REDIRECTED = "redirected"


@dataclass(frozen=True)
class PaymentConfirmation:
    outcome: PaymentOutcome
    message: Optional[str] = None
    redirect_url: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.outcome == PaymentOutcome.CONFIRMED


class PaymentSessionAdapter:
    """Wraps a PaymentProcessor behind confirm / resume."""

    def __init__(self, processor: PaymentProcessor, return_url: Optional[str] = None) -> None:
        self._processor = processor
        self._return_url = return_url or settings.wizard.payment_return_url
        self._pending = False

    @property
    def is_pending(self) -> bool:
        return self._pending

    async def confirm(
        self, client_secret: str, on_complete: CompletionCallback
    ) -> PaymentConfirmation:
        """
        Run one user-initiated confirmation attempt.

        Calls ``on_complete`` only when the processor confirms the payment.
        A redirect leaves the payment open; call ``resume`` with the same
        client secret once the user is back.
        """
        return await self._attempt(
            lambda: self._processor.confirm_payment(client_secret, self._return_url),
            on_complete,
        )

    async def resume(
        self, client_secret: str, on_complete: CompletionCallback
    ) -> PaymentConfirmation:
        """Read back the outcome of a payment after the user returns from a redirect."""
        return await self._attempt(
            lambda: self._processor.retrieve_payment(client_secret),
            on_complete,
        )

    async def _attempt(
        self,
        call: Callable[[], Awaitable[ProcessorResult]],
        on_complete: CompletionCallback,
    ) -> PaymentConfirmation:
        if self._pending:
            return PaymentConfirmation(PaymentOutcome.FAILED, PAYMENT_IN_PROGRESS_MESSAGE)

        self._pending = True
        try:
            result = await call()
        except PaymentProcessorError as exc:
            logger.warning("Payment processor error: %s", exc)
            return PaymentConfirmation(PaymentOutcome.FAILED, str(exc) or PAYMENT_FAILED_MESSAGE)
        finally:
            self._pending = False

        if result.status == ProcessorStatus.SUCCEEDED:
            logger.info("Payment confirmed by processor")
            completion = on_complete()
            if inspect.isawaitable(completion):
                await completion
            return PaymentConfirmation(PaymentOutcome.CONFIRMED)

        if result.status == ProcessorStatus.REDIRECT_REQUIRED:
            logger.info("Payment requires redirect to %s", result.redirect_url)
            return PaymentConfirmation(PaymentOutcome.REDIRECTED, redirect_url=result.redirect_url)

        logger.warning("Payment failed: %s", result.message)
        return PaymentConfirmation(PaymentOutcome.FAILED, result.message or PAYMENT_FAILED_MESSAGE)
