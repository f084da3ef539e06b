"""CheckMacValue signing and verification for ECPay (綠界科技).

ECPay authenticates every request and callback with a ``CheckMacValue``
computed from the flat parameter set:

1. Remove the ``CheckMacValue`` field if present.
2. Sort parameters by their names (byte-wise).
3. Join them as ``key=value`` pairs and wrap with ``HashKey`` and ``HashIV``.
4. URL-encode the result with ECPay's .NET style encoding.
5. Convert to lowercase, compute the digest and output the hex string in
   uppercase.

The same helpers build the signed parameter set for an AIO checkout.
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

import pytz

logger = logging.getLogger(__name__)

CHECK_MAC_FIELD = "CheckMacValue"
ITEM_NAME_MAX_LENGTH = 50
DEFAULT_ITEM_NAME = "未命名商品"
TRADE_NO_MAX_LENGTH = 20

tz = pytz.timezone("Asia/Taipei")

# Characters ECPay leaves untouched. Everything else is percent-encoded,
# including "~" which urllib would keep.
_SAFE_CHARS = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    b"abcdefghijklmnopqrstuvwxyz"
    b"0123456789"
    b"-_.!*()"
)


class EncryptType(enum.Enum):
    MD5 = "0"
    SHA256 = "1"


class InvalidAmountError(ValueError):
    """Raised when a checkout amount is not a positive integer."""


@dataclass(frozen=True)
class MerchantCredentials:
    merchant_id: str
    hash_key: str
    hash_iv: str
    return_url: str
    client_back_url: str


@dataclass(frozen=True)
class CallbackResult:
    is_valid: bool
    computed_checksum: str
    received_checksum: str


def ecpay_url_encode(text: str) -> str:
    """Percent-encode ``text`` the way ECPay's server does.

    Spaces become ``+`` and escapes use lowercase hex.
    """
    out = []
    for byte in text.encode("utf-8"):
        if byte in _SAFE_CHARS:
            out.append(chr(byte))
        elif byte == 0x20:
            out.append("+")
        else:
            out.append(f"%{byte:02x}")
    return "".join(out)


def compute_check_mac_value(
    params: Mapping[str, object],
    credentials: MerchantCredentials,
    encrypt_type: EncryptType = EncryptType.SHA256,
) -> str:
    """Return the ECPay CheckMacValue for ``params``.

    Parameters
    ----------
    params:
        The key/value pairs to sign. Any key named ``"CheckMacValue"`` is
        ignored and values are converted with ``str``.
    credentials:
        Merchant credentials issued by ECPay; only ``hash_key`` and
        ``hash_iv`` take part in the digest.
    encrypt_type:
        ``SHA256`` for AIO checkout, ``MD5`` for the older APIs.
    """
    filtered = {str(k): str(v) for k, v in params.items() if k != CHECK_MAC_FIELD}
    # Code point order matches UTF-8 byte order.
    query = "&".join(f"{k}={v}" for k, v in sorted(filtered.items()))
    raw = f"HashKey={credentials.hash_key}&{query}&HashIV={credentials.hash_iv}"
    encoded = ecpay_url_encode(raw).lower().encode("utf-8")
    if encrypt_type is EncryptType.MD5:
        digest = hashlib.md5(encoded)
    else:
        digest = hashlib.sha256(encoded)
    return digest.hexdigest().upper()


def verify_check_mac_value(
    received: Mapping[str, object],
    credentials: MerchantCredentials,
    encrypt_type: EncryptType = EncryptType.SHA256,
) -> CallbackResult:
    """Check the ``CheckMacValue`` of an inbound callback.

    Never raises on bad input; a missing checksum is simply invalid.
    """
    computed = compute_check_mac_value(received, credentials, encrypt_type)
    value = received.get(CHECK_MAC_FIELD)
    if value is None:
        logger.warning("callback without %s", CHECK_MAC_FIELD)
        return CallbackResult(False, computed, "")
    value = str(value)
    is_valid = hmac.compare_digest(
        value.upper().encode("utf-8"), computed.encode("utf-8")
    )
    if not is_valid:
        logger.warning(
            "CheckMacValue mismatch for MerchantTradeNo=%s",
            received.get("MerchantTradeNo"),
        )
    return CallbackResult(is_valid, computed, value)


def new_merchant_trade_no(prefix: str = "EC") -> str:
    """Return a unique MerchantTradeNo (alphanumeric, at most 20 chars)."""
    stamp = datetime.now(tz).strftime("%y%m%d%H%M%S")
    raw = f"{prefix}{stamp}{uuid.uuid4().hex.upper()}"
    return raw[:TRADE_NO_MAX_LENGTH]


def _validate_amount(amount) -> int:
    if isinstance(amount, bool):
        raise InvalidAmountError(f"invalid amount: {amount!r}")
    if isinstance(amount, int):
        value = amount
    elif isinstance(amount, str) and re.fullmatch(r"[0-9]+", amount.strip()):
        value = int(amount.strip())
    else:
        raise InvalidAmountError(f"invalid amount: {amount!r}")
    if value <= 0:
        raise InvalidAmountError(f"amount must be positive: {amount!r}")
    return value


def build_outbound_parameters(
    amount,
    trade_desc: str,
    item_name: str | None,
    overrides: Mapping[str, object] | None,
    credentials: MerchantCredentials,
) -> dict[str, str]:
    """Assemble the signed AIO checkout parameters.

    ``overrides`` is merged after the defaults, so callers can swap the
    return URLs. The returned dict already contains ``CheckMacValue``.
    """
    total = _validate_amount(amount)
    name = (item_name or DEFAULT_ITEM_NAME)[:ITEM_NAME_MAX_LENGTH]

    params = {
        "MerchantID": credentials.merchant_id,
        "MerchantTradeNo": new_merchant_trade_no(),
        "MerchantTradeDate": datetime.now(tz).strftime("%Y/%m/%d %H:%M:%S"),
        "PaymentType": "aio",
        "TotalAmount": str(total),
        "TradeDesc": trade_desc,
        "ItemName": name,
        "ReturnURL": credentials.return_url,
        "ClientBackURL": credentials.client_back_url,
        "ChoosePayment": "ALL",
        "EncryptType": EncryptType.SHA256.value,
    }
    for key, value in (overrides or {}).items():
        if key != CHECK_MAC_FIELD:
            params[key] = str(value)

    params[CHECK_MAC_FIELD] = compute_check_mac_value(params, credentials)
    logger.info(
        "built checkout %s amount=%s", params["MerchantTradeNo"], params["TotalAmount"]
    )
    return params


__all__ = [
    "CallbackResult",
    "EncryptType",
    "InvalidAmountError",
    "MerchantCredentials",
    "build_outbound_parameters",
    "compute_check_mac_value",
    "ecpay_url_encode",
    "new_merchant_trade_no",
    "verify_check_mac_value",
]
