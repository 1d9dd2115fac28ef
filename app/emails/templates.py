"""Transactional email templates.

Business code only ever calls :func:`render` with a template name and a dict
of values; the HTML below is presentation and nothing else depends on it.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Callable, Dict, Mapping


@dataclass(frozen=True)
class EmailDocument:
    subject: str
    html: str
    text: str


def format_inr(amount: float) -> str:
    """Group digits the Indian way: 1234567.5 -> '12,34,567.5'."""
    negative = amount < 0
    amount = round(abs(amount), 2)
    whole = int(amount)
    frac = round(amount - whole, 2)
    digits = str(whole)
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    out = ",".join(groups + [tail])
    if frac:
        out += f"{frac:.2f}"[1:].rstrip("0")
    return f"-{out}" if negative else out


def _shell(brand: str, logo_url: str, body: str, footer: str = "") -> str:
    year = datetime.now().year
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;background:#f3f4f6;font-family:Segoe UI,Arial,sans-serif;color:#1f2937;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="padding:24px 12px;">
    <tr>
      <td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="max-width:560px;background:#ffffff;border:1px solid #e5e7eb;border-radius:14px;">
          <tr>
            <td style="padding:28px 24px 8px;text-align:center;">
              <img src="{escape(logo_url)}" alt="{escape(brand)}" style="width:80px;height:80px;border-radius:50%;object-fit:cover;border:3px solid #e5e7eb;">
              <div style="font-size:20px;font-weight:800;margin-top:10px;">{escape(brand)}</div>
            </td>
          </tr>
          {body}
          <tr>
            <td style="padding:14px 24px;border-top:1px solid #e5e7eb;text-align:center;color:#6b7280;font-size:12px;">
              &copy; {year} {escape(brand)}. All rights reserved.{footer}
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _otp(v: Mapping[str, Any]) -> EmailDocument:
    name = escape(v.get("full_name") or "there")
    code = escape(str(v["code"]))
    minutes = int(v.get("ttl_minutes", 10))
    brand = v["brand"]
    body = f"""
          <tr>
            <td style="padding:8px 24px;text-align:center;">
              <h2 style="margin:0 0 8px;">Verify Your Email</h2>
              <p style="color:#4b5563;">Hello {name}! Use the verification code below to complete your registration.</p>
              <div style="display:inline-block;font-size:34px;font-weight:800;letter-spacing:8px;padding:16px 22px;background:#f9fafb;border:1px dashed #9ca3af;border-radius:10px;">{code}</div>
              <p style="color:#6b7280;font-size:14px;">This code will expire in <strong style="color:#374151;">{minutes} minutes</strong>.</p>
              <p style="color:#9ca3af;font-size:13px;">If you didn't request this code, please ignore this email.</p>
            </td>
          </tr>"""
    return EmailDocument(
        subject=f"Verify Your Email - {brand}",
        html=_shell(brand, v["logo_url"], body),
        text=f"Hello {v.get('full_name') or 'there'}! Your verification code is {v['code']}. "
             f"It expires in {minutes} minutes.",
    )


def _newsletter_welcome(v: Mapping[str, Any]) -> EmailDocument:
    brand = v["brand"]
    body = f"""
          <tr>
            <td style="padding:8px 24px 20px;text-align:center;">
              <h2 style="margin:0 0 8px;">Welcome to Our Newsletter!</h2>
              <p style="color:#4b5563;">Thank you for subscribing to the {escape(brand)} newsletter! You're now part of our community.</p>
              <p style="color:#4b5563;">Stay tuned for amazing deals on electronics and furniture!</p>
              <a href="{escape(v['shop_url'])}" style="display:inline-block;padding:12px 24px;border-radius:8px;background:#111827;color:#ffffff;text-decoration:none;font-weight:600;">Start Shopping</a>
            </td>
          </tr>"""
    footer = "<br>You can unsubscribe at any time by clicking the unsubscribe link in our emails."
    return EmailDocument(
        subject=f"Welcome to the {brand} Newsletter!",
        html=_shell(brand, v["logo_url"], body, footer),
        text=f"Thank you for subscribing to the {brand} newsletter!",
    )


def _price_drop(v: Mapping[str, Any]) -> EmailDocument:
    brand = v["brand"]
    product = escape(v["product_name"])
    old_price, new_price, savings = (format_inr(v[k]) for k in ("old_price", "new_price", "savings"))
    if v.get("product_image"):
        image = f'<img src="{escape(v["product_image"])}" style="width:100px;height:100px;border-radius:10px;object-fit:cover;">'
    else:
        image = '<div style="width:100px;height:100px;border-radius:10px;background:#e5e7eb;font-size:36px;line-height:100px;text-align:center;">&#128230;</div>'
    body = f"""
          <tr>
            <td style="padding:8px 24px;text-align:center;">
              <h2 style="margin:0 0 8px;">Price Drop Alert!</h2>
              <p style="color:#4b5563;">Hello <strong>{escape(v["name"])}</strong>, we've got exciting news for you.</p>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px;">
              <table role="presentation" width="100%" style="background:#f9fafb;border-radius:14px;padding:20px;border:1px solid #e5e7eb;">
                <tr>
                  <td width="110">{image}</td>
                  <td>
                    <div style="font-size:16px;font-weight:700;">{product}</div>
                    <div style="color:#9ca3af;text-decoration:line-through;">&#8377;{old_price}</div>
                    <div style="font-size:22px;font-weight:800;color:#059669;">&#8377;{new_price}</div>
                    <span style="display:inline-block;background:#dcfce7;color:#166534;padding:6px 14px;border-radius:999px;font-size:13px;font-weight:600;">Save &#8377;{savings} ({int(v["savings_percent"])}% OFF)</span>
                  </td>
                </tr>
              </table>
            </td>
          </tr>
          <tr>
            <td style="padding:16px 24px 24px;text-align:center;">
              <a href="{escape(v['shop_url'])}" style="display:inline-block;padding:12px 28px;border-radius:10px;background:#111827;color:#ffffff;text-decoration:none;font-weight:600;">Shop Now</a>
              <p style="color:#6b7280;font-size:13px;">Hurry! Limited-time price drop.</p>
            </td>
          </tr>"""
    footer = "<br>You're receiving this because the product is in your wishlist."
    return EmailDocument(
        subject=f"Price Drop Alert! {v['product_name']} is now ₹{new_price}",
        html=_shell(brand, v["logo_url"], body, footer),
        text=f"{v['product_name']} dropped from ₹{old_price} to ₹{new_price}. "
             f"Save ₹{savings} ({int(v['savings_percent'])}% OFF).",
    )


TEMPLATES: Dict[str, Callable[[Mapping[str, Any]], EmailDocument]] = {
    "otp": _otp,
    "newsletter_welcome": _newsletter_welcome,
    "price_drop": _price_drop,
}


def render(template_name: str, values: Mapping[str, Any]) -> EmailDocument:
    try:
        builder = TEMPLATES[template_name]
    except KeyError:
        raise ValueError(f"unknown email template: {template_name}") from None
    return builder(values)
