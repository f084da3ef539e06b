import logging
from typing import Mapping

import requests

logger = logging.getLogger(__name__)

NOTIFY_PATH = "/api/payments/notify"
TOKEN_HEADER = "x-webhook-token"

# Trade fields passed through from n8n to Spring.
NOTIFY_FIELDS = (
    "MerchantTradeNo",
    "TradeNo",
    "RtnCode",
    "RtnMsg",
    "TradeAmt",
    "PaymentDate",
    "PaymentType",
    "PaymentTypeChargeFee",
    "SimulatePaid",
)


def extract_trade_fields(data: Mapping[str, object]) -> dict:
    return {k: data[k] for k in NOTIFY_FIELDS if data.get(k) is not None}


def forward_payment_notice(spring_base: str, secret: str, payload: dict, timeout: float = 10) -> bool:
    """POST ``payload`` to Spring. Failures are logged, never raised."""
    url = f"{spring_base.rstrip('/')}{NOTIFY_PATH}"
    try:
        res = requests.post(
            url,
            json=payload,
            headers={TOKEN_HEADER: secret},
            timeout=timeout,
        )
    except requests.RequestException as e:
        logger.exception("forward to Spring failed: %s", e)
        return False

    if not res.ok:
        logger.error("forward to Spring failed: %s %s", res.status_code, res.text[:500])
        return False
    logger.info("forwarded %s to Spring", payload.get("MerchantTradeNo"))
    return True
