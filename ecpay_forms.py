"""HTML pages served to the browser: the auto-submitting ECPay form and the
page users land on after paying."""

from html import escape
from typing import Mapping

FORM_ID = "ecpay_form"


def render_payment_form(params: Mapping[str, str], action_url: str) -> str:
    """Return a form posting ``params`` to ECPay, submitted on page load."""
    fields = "\n".join(
        f'    <input type="hidden" name="{escape(str(k))}" value="{escape(str(v))}">'
        for k, v in params.items()
    )
    return (
        '<form id="{form_id}" method="POST" action="{action}">\n'
        "{fields}\n"
        "</form>\n"
        "<script>document.getElementById('{form_id}').submit();</script>\n"
    ).format(form_id=FORM_ID, action=escape(action_url), fields=fields)


def render_page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html lang="zh-Hant">\n'
        '<head><meta charset="utf-8"><title>{title}</title></head>\n'
        "<body>\n"
        "<h1>{title}</h1>\n"
        "{body}"
        "</body>\n"
        "</html>\n"
    ).format(title=escape(title), body=body)


def render_client_return(query: Mapping[str, str]) -> str:
    """Summarise the gateway's redirect parameters for the shopper."""
    success = query.get("RtnCode") == "1"
    message = query.get("RtnMsg") or "支付完成"
    title = "付款成功" if success else "付款未完成"
    rows = "\n".join(
        f"  <tr><th>{escape(k)}</th><td>{escape(v)}</td></tr>" for k, v in query.items()
    )
    body = f'<p class="{"success" if success else "failure"}">{escape(message)}</p>\n'
    if rows:
        body += f"<table>\n{rows}\n</table>\n"
    return render_page(title, body)
