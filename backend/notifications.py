import asyncio
import logging
import re
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from functools import partial
from typing import List, Optional

from . import config
from .email_templates import (
    PLACEHOLDER_IMAGE,
    EmailContext,
    EmailLine,
    StageSummary,
    render_order_email,
)
from .models import (
    STAGE_BALANCE,
    STAGE_DEPOSIT,
    CreatedDraftOrder,
    Customer,
    NotificationOutcome,
)

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Your order is ready – complete payment anytime!"

STAGE_HEADINGS = {
    STAGE_DEPOSIT: "First payment",
    STAGE_BALANCE: "Final payment",
}

STAGE_BUTTONS = {
    STAGE_DEPOSIT: "Pay now",
    STAGE_BALANCE: "Pay balance",
}


def shop_display_name(shop: str) -> str:
    """``acme-store.myshopify.com`` -> ``acme-store``."""
    name = re.sub(r"^https?://", "", shop or "")
    name = re.sub(r"^www\.", "", name)
    name = re.sub(r"\.myshopify\.com$", "", name)
    name = re.sub(r"\.[^.]+$", "", name)
    return name or "our store"


def _fmt(amount: float, currency: str) -> str:
    return f"{currency} {amount:.2f}".strip()


def _stage_summary(order: CreatedDraftOrder) -> StageSummary:
    heading = STAGE_HEADINGS.get(order.stage, "Payment")
    if order.discount_percent:
        heading = f"{heading} ({order.discount_percent:g}% off)"
    return StageSummary(
        heading=heading,
        button_label=STAGE_BUTTONS.get(order.stage, "Pay now"),
        order_name=order.name,
        total=_fmt(order.total_amount, order.currency_code),
        invoice_url=order.invoice_url,
    )


def build_email_context(
    customer: Customer,
    orders: List[CreatedDraftOrder],
    shop: str,
    now: Optional[datetime] = None,
) -> EmailContext:
    shop_name = shop_display_name(shop)
    year = (now or datetime.now(timezone.utc)).year
    greeting = customer.first_name or "there"

    by_stage = {o.stage: o for o in orders}
    split = [by_stage[s] for s in (STAGE_DEPOSIT, STAGE_BALANCE) if s in by_stage]
    if len(split) == 2:
        return EmailContext(
            shop_name=shop_name,
            greeting_name=greeting,
            plan_message=(
                f"Thank you for shopping with {shop_name}! Your order has been split into two "
                "payments. Complete the first payment now and the final payment whenever you're ready."
            ),
            year=year,
            stages=[_stage_summary(o) for o in split],
        )

    order = orders[0]
    lines = [
        EmailLine(
            title=li.title,
            variant_title=li.variant_title,
            quantity=li.quantity,
            line_total=_fmt(li.line_total, li.currency_code or order.currency_code),
            image_url=li.image_url or PLACEHOLDER_IMAGE,
        )
        for li in order.line_items
    ]
    return EmailContext(
        shop_name=shop_name,
        greeting_name=greeting,
        plan_message=(
            f"Thank you for shopping with {shop_name}! Your draft order has been created "
            "and is ready for payment."
        ),
        year=year,
        order_name=order.name,
        total=_fmt(order.total_amount, order.currency_code),
        invoice_url=order.invoice_url,
        lines=lines,
    )


class EmailNotifier:
    """Sends the order summary over SMTP.

    The workflow awaits :meth:`notify` and reports the outcome to the caller
    (``emailSent`` / ``emailError``). It never raises: a failed send must not
    undo or fail the draft orders that already exist.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float | None = None,
    ):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username if username is not None else config.SMTP_USER
        self.password = password if password is not None else config.SMTP_PASS
        self.timeout = timeout if timeout is not None else config.SMTP_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.username and self.password)

    def build_message(self, customer: Customer, orders: List[CreatedDraftOrder], shop: str) -> EmailMessage:
        ctx = build_email_context(customer, orders, shop)
        msg = EmailMessage()
        msg["Subject"] = EMAIL_SUBJECT
        msg["From"] = formataddr((ctx.shop_name, self.username))
        msg["To"] = customer.email
        msg.set_content("Your order is ready. Open this email in an HTML capable client to see the details.")
        msg.add_alternative(render_order_email(ctx), subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout,
                                  context=ssl.create_default_context()) as server:
                server.login(self.username, self.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=ssl.create_default_context())
                server.login(self.username, self.password)
                server.send_message(msg)

    async def send(self, msg: EmailMessage) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, partial(self._send_sync, msg))

    async def notify(
        self, customer: Optional[Customer], orders: List[CreatedDraftOrder], shop: str
    ) -> NotificationOutcome:
        if not customer or not customer.email or not orders:
            return NotificationOutcome(sent=False)
        if not self.enabled:
            logger.info("SMTP credentials missing; skipping order email")
            return NotificationOutcome(sent=False)
        try:
            msg = self.build_message(customer, orders, shop)
            await self.send(msg)
        except Exception as e:
            logger.warning("Order email to %s failed: %s", customer.email, e)
            return NotificationOutcome(sent=False, error=str(e) or e.__class__.__name__)
        logger.info("Order email sent to %s", customer.email)
        return NotificationOutcome(sent=True)
