"""HTML pages served by the captive portals

Everything interpolated into a page goes through html.escape.
"""

from html import escape
from typing import Optional

_STYLE = """
body{font-family:-apple-system,Segoe UI,Roboto,sans-serif;max-width:420px;margin:24px auto;padding:0 16px;color:#222}
h1{font-size:1.4em}
input[type=text],input[type=password]{width:100%;padding:10px;margin:8px 0;box-sizing:border-box;font-family:monospace}
button,.button{display:inline-block;background:#2da44e;color:#fff;border:0;padding:10px 18px;border-radius:6px;text-decoration:none;font-size:1em}
.error{background:#ffebe9;border:1px solid #ff8182;padding:10px;border-radius:6px}
.ok{background:#dafbe1;border:1px solid #4ac26b;padding:10px;border-radius:6px}
.hint{color:#57606a;font-size:.9em}
"""

# OAuth and portal reason codes -> text shown on the error page
ERROR_MESSAGES = {
    "no_code": "The provider did not return an authorization code.",
    "invalid_state": "The authorization response did not match this session. Start again from this device.",
    "flow_inactive": "No sign-in is in progress on the device.",
    "exchange_failed": "The authorization code could not be exchanged for a token.",
    "no_token": "The provider did not issue an access token.",
    "token_validation_failed": "The provider rejected the new token.",
    "access_denied": "Access was denied on the provider's page.",
    "link_expired": "This link has expired. Generate a new QR code on the device.",
    "unknown_provider": "This device does not know that provider.",
    "redirect_uri_mismatch": "The sign-in request did not come from this device.",
}


def error_message(reason: str) -> str:
    return ERROR_MESSAGES.get(reason, f"Sign-in failed: {reason}")


def render_page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        "<meta name='viewport' content='width=device-width,initial-scale=1'>"
        f"<title>{escape(title)}</title><style>{_STYLE}</style></head>"
        f"<body><h1>{escape(title)}</h1>{body}</body></html>"
    )


def token_form_page(provider_name: str, error: Optional[str] = None, action: str = "/setup") -> str:
    """Manual token entry form, optionally showing a rejection message"""
    notice = f"<p class='error'>{escape(error)}</p>" if error else ""
    body = (
        f"{notice}"
        f"<p>Paste a personal access token for <strong>{escape(provider_name)}</strong>.</p>"
        f"<form method='post' action='{escape(action)}'>"
        "<input type='password' name='token' autocomplete='off' autofocus placeholder='Access token'>"
        "<button type='submit'>Save token</button></form>"
        "<p class='hint'>GitHub: ghp_/github_pat_ tokens. GitLab: glpat- tokens. "
        "Gitee: 32-character tokens.</p>"
    )
    return render_page("Connect your Git account", body)


def oauth_instructions_page(provider_name: str, scope: str) -> str:
    body = (
        f"<p>This device will ask <strong>{escape(provider_name)}</strong> for access with the "
        f"scopes <code>{escape(scope)}</code>.</p>"
        "<p>Your browser will be sent to the provider's sign-in page and back here.</p>"
        "<p><a class='button' href='/start'>Sign in</a></p>"
    )
    return render_page("Sign in", body)


def success_page(message: str = "The device is now connected. You can close this page.") -> str:
    return render_page("Connected", f"<p class='ok'>{escape(message)}</p>")


def error_page(reason: str) -> str:
    body = (
        f"<p class='error'>{escape(error_message(reason))}</p>"
        f"<p class='hint'>Reason: <code>{escape(reason)}</code></p>"
        "<p><a class='button' href='/'>Try again</a></p>"
    )
    return render_page("Sign-in failed", body)


def simulated_consent_page(approve_url: str, deny_url: str) -> str:
    body = (
        "<p>This is the <strong>simulated</strong> provider. No real account is involved.</p>"
        f"<p><a class='button' href='{escape(approve_url)}'>Authorize</a> "
        f"<a href='{escape(deny_url)}'>Deny</a></p>"
    )
    return render_page("Authorize demo app", body)
