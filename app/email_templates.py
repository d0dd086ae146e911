# app/email_templates.py
from __future__ import annotations


def money(v) -> str:
    try:
        return f"{float(v):.2f}"
    except Exception:
        return str(v)


# =========================================================
# PAYOUT COMPLETED
# =========================================================
def render_payout_completed_html(
    *,
    vendor_name: str,
    amount,
    batch_number: str,
    utr_number: str | None,
) -> str:
    """Values must already be HTML-escaped by the caller."""
    total = money(amount)

    utr_row = ""
    if utr_number:
        utr_row = f"""
        <div style="display:flex;justify-content:space-between;font-size:14px;margin-bottom:6px;">
          <span style="color:#666;">Transfer reference</span>
          <strong>{utr_number}</strong>
        </div>"""

    return f"""\
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Payout sent</title>
</head>
<body style="margin:0;padding:0;background:#f6f7fb;font-family:Arial,Helvetica,sans-serif;color:#111;">
  <div style="max-width:640px;margin:0 auto;padding:24px;">
    <div style="background:#ffffff;border-radius:14px;padding:22px;border:1px solid #eceef3;">

      <h1 style="font-size:18px;margin:0 0 8px 0;">Payout sent</h1>

      <p style="margin:0 0 16px 0;color:#444;font-size:14px;">
        Hello {vendor_name}, your earnings have been transferred.
      </p>

      <div style="background:#f9fafc;border:1px solid #eceef3;border-radius:12px;padding:14px;">
        <div style="display:flex;justify-content:space-between;font-size:14px;margin-bottom:6px;">
          <span style="color:#666;">Batch</span>
          <strong>{batch_number}</strong>
        </div>
        <div style="display:flex;justify-content:space-between;font-size:14px;margin-bottom:6px;">
          <span style="color:#666;">Amount</span>
          <strong>{total}</strong>
        </div>{utr_row}
      </div>

      <p style="margin:16px 0 0 0;color:#444;font-size:14px;">Best regards,<br/><b>Marketplace Team</b></p>
    </div>
  </div>
</body>
</html>
"""
