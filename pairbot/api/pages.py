"""
Status page

A single self-contained HTML page: connection status, counters, the phone
number form and the QR code panel. It talks to the JSON endpoints with
fetch().
"""
from __future__ import annotations

from html import escape

from ..connection.status import BotStatus

STATUS_COLORS = {
    BotStatus.ONLINE: "#28a745",
    BotStatus.QR_READY: "#ffc107",
    BotStatus.CONNECTING: "#17a2b8",
    BotStatus.DISCONNECTED: "#dc3545",
}

STATUS_TEXTS = {
    BotStatus.ONLINE: "ONLINE - Ready for Pairing",
    BotStatus.QR_READY: "QR READY - Scan to Connect",
    BotStatus.CONNECTING: "CONNECTING...",
    BotStatus.DISCONNECTED: "DISCONNECTED - Retrying...",
}


def status_color(status: BotStatus | str) -> str:
    try:
        return STATUS_COLORS[BotStatus(status)]
    except ValueError:
        return "#6c757d"


def status_text(status: BotStatus | str) -> str:
    try:
        return STATUS_TEXTS[BotStatus(status)]
    except ValueError:
        return "UNKNOWN"


_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{company} - WhatsApp Pairing</title>
<style>
  * {{ margin: 0; padding: 0; box-sizing: border-box; font-family: 'Segoe UI', Roboto, Arial, sans-serif; }}
  body {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); min-height: 100vh;
         display: flex; justify-content: center; align-items: center; padding: 20px; }}
  .container {{ background: #fff; border-radius: 20px; padding: 40px; max-width: 800px; width: 100%; }}
  .header {{ text-align: center; margin-bottom: 30px; }}
  .logo {{ width: 100px; height: 100px; border-radius: 20px; object-fit: cover; }}
  h1 {{ color: #1a73e8; }}
  .badge {{ display: inline-block; padding: 10px 25px; border-radius: 50px; color: #fff;
           background-color: {color}; font-weight: 600; }}
  .stats {{ display: flex; justify-content: space-around; gap: 15px; margin: 20px 0; flex-wrap: wrap; }}
  .stat {{ text-align: center; min-width: 150px; }}
  .stat b {{ display: block; font-size: 2rem; color: #1a73e8; }}
  .pairing {{ background: linear-gradient(135deg, #25D366 0%, #128C7E 100%); color: #fff;
             border-radius: 15px; padding: 30px; margin-bottom: 30px; }}
  input {{ padding: 12px; border-radius: 8px; border: none; width: 60%; }}
  button {{ padding: 12px 20px; border-radius: 8px; border: none; cursor: pointer; }}
  #code {{ font-size: 2.5rem; letter-spacing: 6px; font-weight: 700; margin-top: 15px; }}
  #qr img {{ max-width: 100%; }}
  footer {{ text-align: center; color: #666; font-size: 0.9rem; }}
</style>
</head>
<body>
<div class="container">
  <div class="header">
    <img class="logo" src="{logo_url}" alt="{company}">
    <h1>{company}</h1>
    <p>WhatsApp Pairing Service v{version}</p>
  </div>
  <div style="text-align:center">
    <span class="badge" id="statusBadge">{status_text}</span>
    <div class="stats">
      <div class="stat"><b id="pairingCount">{pairing_count}</b>Active codes</div>
      <div class="stat"><b id="lastCode">{last_code}</b>Last code</div>
      <div class="stat"><b id="qrAttempts">{qr_attempts}</b>QR attempts</div>
    </div>
  </div>
  <div class="pairing">
    <h2>Generate a pairing code</h2>
    <form id="pairForm">
      <input id="phone" name="phoneNumber" placeholder="e.g. {phone_example}" required>
      <button type="submit">Generate</button>
    </form>
    <div id="code"></div>
    <div id="expiry"></div>
  </div>
  <div style="text-align:center; margin-bottom: 30px">
    <button id="qrButton">Show QR code</button>
    <div id="qr"></div>
  </div>
  <footer>Support: {contact} &middot; {email} &middot; <a href="{website}">{website}</a></footer>
</div>
<script>
  document.getElementById('pairForm').addEventListener('submit', async (e) => {{
    e.preventDefault();
    const res = await fetch('/generate-code', {{
      method: 'POST', headers: {{'Content-Type': 'application/json'}},
      body: JSON.stringify({{phoneNumber: document.getElementById('phone').value}})
    }});
    const data = await res.json();
    document.getElementById('code').textContent = data.success ? data.displayCode : data.message;
    document.getElementById('expiry').textContent = data.success ? 'Expires ' + new Date(data.expiresAt).toLocaleTimeString() : '';
  }});
  document.getElementById('qrButton').addEventListener('click', async () => {{
    const res = await fetch('/getqr', {{method: 'POST'}});
    const data = await res.json();
    const qr = document.getElementById('qr');
    qr.innerHTML = '';
    if (data.success) {{
      const img = document.createElement('img');
      img.src = data.qrImage;
      qr.appendChild(img);
    }} else {{
      qr.textContent = data.message;
    }}
  }});
  async function updateStats() {{
    try {{
      const data = await (await fetch('/status')).json();
      const badge = document.getElementById('statusBadge');
      badge.textContent = data.statusText;
      badge.style.backgroundColor = data.statusColor;
      document.getElementById('pairingCount').textContent = data.pairingCodes;
      document.getElementById('lastCode').textContent = data.lastCode || 'None';
      document.getElementById('qrAttempts').textContent = data.qrAttempts;
    }} catch (err) {{ console.log('Status update failed:', err); }}
  }}
  setInterval(updateStats, 5000);
</script>
</body>
</html>
"""


def render_index(
    *,
    company: str,
    version: str,
    logo_url: str,
    contact: str,
    email: str,
    website: str,
    status: BotStatus,
    pairing_count: int,
    last_code: str | None,
    qr_attempts: int,
    phone_example: str,
) -> str:
    """Render the status page"""
    return _PAGE.format(
        company=escape(company),
        version=escape(version),
        logo_url=escape(logo_url, quote=True),
        contact=escape(contact),
        email=escape(email),
        website=escape(website, quote=True),
        color=status_color(status),
        status_text=escape(status_text(status)),
        pairing_count=pairing_count,
        last_code=escape(last_code or "None"),
        qr_attempts=qr_attempts,
        phone_example=escape(phone_example, quote=True),
    )
