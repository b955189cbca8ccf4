from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Protocol
from uuid import UUID

import httpx


logger = logging.getLogger(__name__)

EVENT_TYPES = {"welcome", "purchase", "redemption"}


class Notifier(Protocol):
    def notify(
        self,
        customer_id: UUID,
        event_type: str,
        amount: Decimal | None = None,
        cashback_amount: Decimal | None = None,
    ) -> None:
        ...


def build_message(
    event_type: str,
    *,
    title: str,
    customer_name: str | None = None,
    amount: Decimal | None = None,
    cashback_amount: Decimal | None = None,
    on_date: date | None = None,
) -> str:
    if event_type == "welcome":
        greeting = f"Olá {customer_name}!" if customer_name else "Olá!"
        body = (
            f"{greeting} 👋\n\n"
            "Bem-vindo ao sistema de cashback! 🎉\n\n"
            "A cada compra você acumula cashback para usar em compras futuras.\n\n"
            "Aproveite! 😊"
        )
    elif event_type == "purchase":
        body = (
            "Compra registrada com sucesso! ✅\n\n"
            f"Valor: R$ {Decimal(amount or 0):.2f}\n"
            f"Cashback: R$ {Decimal(cashback_amount or 0):.2f}\n\n"
            "Seu cashback já está disponível para uso! 🎉"
        )
    elif event_type == "redemption":
        body = (
            "Resgate de cashback realizado! ✅\n\n"
            f"Valor resgatado: R$ {Decimal(amount or 0):.2f}\n\n"
            "Aproveite seu desconto! 🎉"
        )
    else:
        raise ValueError(f"Invalid notification type: {event_type}")

    on_date = on_date or date.today()
    return f"*{title}*\n{on_date.strftime('%d/%m/%Y')}\n\n{body}"


class LoggingNotifier:
    """Used when no delivery endpoint is configured."""

    def notify(self, customer_id, event_type, amount=None, cashback_amount=None) -> None:
        logger.info(
            "notification (not delivered, no endpoint configured)",
            extra={
                "customer_id": str(customer_id),
                "event_type": event_type,
                "amount": str(amount) if amount is not None else None,
                "cashback_amount": str(cashback_amount) if cashback_amount is not None else None,
            },
        )


class WhatsAppNotifier:
    """Posts WhatsApp text messages to a messaging gateway.

    ``contact_lookup`` resolves a customer id into ``(phone, name)``; a missing
    phone is logged and skipped. Every failure is logged and swallowed so the
    caller's ledger write is never affected.
    """

    def __init__(
        self,
        *,
        url: str,
        token: str | None,
        title: str,
        contact_lookup: Callable[[UUID], tuple[str | None, str | None]],
        timeout_seconds: float = 5.0,
        http_client: httpx.Client | None = None,
    ):
        self.url = url
        self.token = token
        self.title = title
        self.contact_lookup = contact_lookup
        self.timeout_seconds = timeout_seconds
        self._client = http_client

    def notify(self, customer_id, event_type, amount=None, cashback_amount=None) -> None:
        try:
            if event_type not in EVENT_TYPES:
                raise ValueError(f"Invalid notification type: {event_type}")

            phone, name = self.contact_lookup(customer_id)
            if not phone:
                logger.warning(
                    "notification skipped, customer phone not found",
                    extra={"customer_id": str(customer_id), "event_type": event_type},
                )
                return

            message = build_message(
                event_type,
                title=self.title,
                customer_name=name,
                amount=amount,
                cashback_amount=cashback_amount,
            )
            self._post(
                {
                    "messaging_product": "whatsapp",
                    "to": phone,
                    "type": "text",
                    "text": {"body": message},
                }
            )
        except Exception as e:
            logger.warning(
                "notification delivery failed",
                extra={"customer_id": str(customer_id), "event_type": event_type, "error": str(e)},
            )
            return

        logger.info(
            "notification sent",
            extra={"customer_id": str(customer_id), "event_type": event_type},
        )

    def _post(self, payload: dict) -> None:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        if self._client is not None:
            response = self._client.post(self.url, json=payload, headers=headers, timeout=self.timeout_seconds)
            response.raise_for_status()
            return

        with httpx.Client(timeout=self.timeout_seconds) as client:
            response = client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()


def build_notifier(settings, db) -> Notifier:
    if not settings.notification_url:
        return LoggingNotifier()

    from cashback_engine.models.customer import Customer

    def lookup(customer_id):
        customer = db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            return None, None
        return customer.phone, customer.name

    return WhatsAppNotifier(
        url=settings.notification_url,
        token=settings.notification_token,
        title=settings.notification_title,
        contact_lookup=lookup,
        timeout_seconds=settings.notification_timeout_seconds,
    )
