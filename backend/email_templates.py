"""HTML for the "your draft order is ready" email.

Everything here works off :class:`EmailContext`; nothing reaches back into
Shopify payloads, so the markup can change without touching the workflow.
"""
from html import escape
from typing import List, Optional

from pydantic import BaseModel, Field

PLACEHOLDER_IMAGE = "https://via.placeholder.com/80"


class EmailLine(BaseModel):
    title: str
    variant_title: Optional[str] = None
    quantity: int
    line_total: str
    image_url: str = PLACEHOLDER_IMAGE


class StageSummary(BaseModel):
    heading: str
    button_label: str = "Pay now"
    order_name: str
    total: str
    invoice_url: Optional[str] = None


class EmailContext(BaseModel):
    shop_name: str
    greeting_name: str
    plan_message: str
    year: int
    order_name: str = ""
    total: str = ""
    invoice_url: Optional[str] = None
    lines: List[EmailLine] = Field(default_factory=list)
    stages: List[StageSummary] = Field(default_factory=list)


def _button(url: Optional[str], label: str) -> str:
    if not url:
        return ""
    return (
        '<div style="text-align:center; margin:24px 0;">'
        f'<a href="{escape(url, quote=True)}" style="display:inline-block; background:#000; color:#fff; '
        'padding:14px 32px; border-radius:6px; text-decoration:none; font-weight:600;">'
        f"{escape(label)}</a></div>"
    )


def _line_html(line: EmailLine) -> str:
    variant = ""
    if line.variant_title and line.variant_title != "Default Title":
        variant = f'<div style="color:#666; font-size:14px;">{escape(line.variant_title)}</div>'
    return f"""
        <div style="display:flex; gap:16px; padding:12px 0; border-bottom:1px solid #eee;">
          <img src="{escape(line.image_url, quote=True)}" width="60" height="60" style="object-fit:cover; border-radius:6px;">
          <div style="flex:1;">
            <div style="font-weight:600;">{escape(line.title)}</div>
            {variant}
            <div style="color:#666; margin-top:4px;">Qty: {line.quantity}</div>
          </div>
          <div style="font-weight:600;">{escape(line.line_total)}</div>
        </div>"""


def _single_summary(ctx: EmailContext) -> str:
    items = "".join(_line_html(line) for line in ctx.lines)
    return f"""
      <div style="background:#f9f9f9; border-radius:8px; padding:20px; margin:24px 0;">
        <h3 style="margin:0 0 16px 0; font-size:16px; color:#333;">Order Summary</h3>
        {items}
        <div style="display:flex; justify-content:space-between; padding-top:16px; font-weight:700; font-size:18px;">
          <span>Total</span>
          <span>{escape(ctx.total)}</span>
        </div>
      </div>
      {_button(ctx.invoice_url, "Complete Payment")}"""


def _stage_summaries(ctx: EmailContext) -> str:
    blocks = []
    for stage in ctx.stages:
        blocks.append(f"""
      <div style="background:#f9f9f9; border-radius:8px; padding:20px; margin:16px 0;">
        <h3 style="margin:0 0 8px 0; font-size:16px; color:#333;">{escape(stage.heading)}</h3>
        <div style="display:flex; justify-content:space-between; color:#333;">
          <span>Order {escape(stage.order_name)}</span>
          <span style="font-weight:700;">{escape(stage.total)}</span>
        </div>
        {_button(stage.invoice_url, stage.button_label)}
      </div>""")
    return "".join(blocks)


def render_order_email(ctx: EmailContext) -> str:
    summary = _stage_summaries(ctx) if ctx.stages else _single_summary(ctx)
    subtitle = f"Order {escape(ctx.order_name)}" if ctx.order_name else "Your payment plan"
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0; padding:0; font-family:-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; background:#f5f5f5;">
  <div style="max-width:600px; margin:0 auto; background:#fff; padding:32px;">
    <div style="text-align:center; margin-bottom:24px;">
      <h1 style="margin:0; font-size:24px; color:#333;">Your Order is Ready!</h1>
      <p style="color:#666; margin-top:8px;">{subtitle}</p>
    </div>
    <p style="color:#333; line-height:1.6;">Hi {escape(ctx.greeting_name)},</p>
    <p style="color:#333; line-height:1.6;">{escape(ctx.plan_message)}</p>
    {summary}
    <p style="color:#666; font-size:14px; line-height:1.6;">
      If you have any questions about your order, please don't hesitate to contact us.
    </p>
    <hr style="border:none; border-top:1px solid #eee; margin:24px 0;">
    <p style="color:#999; font-size:12px; text-align:center;">
      &copy; {ctx.year} {escape(ctx.shop_name)}. All rights reserved.
    </p>
  </div>
</body>
</html>
"""
