import hmac
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from config import Settings
from ecpay_forms import render_client_return, render_page, render_payment_form
from notifier import TOKEN_HEADER, extract_trade_fields, forward_payment_notice
from payment_gateway import (
    InvalidAmountError,
    build_outbound_parameters,
    verify_check_mac_value,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CHECKOUT_TRADE_DESC = "購物車結帳"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def read_fields(request: Request) -> dict:
    """Return the request body as a flat dict (JSON or form encoded)."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


# ---------------------------
# 測試頁
# ---------------------------
@router.get("/", response_class=HTMLResponse)
async def test_page(settings: Settings = Depends(get_settings)):
    params = build_outbound_parameters(100, "綠界支付測試", "測試商品", None, settings.credentials)
    return render_page("綠界支付測試", render_payment_form(params, settings.gateway_url))


# ---------------------------
# 購物車送單 → 產生綠界表單
# ---------------------------
@router.post("/checkout")
async def checkout(request: Request, settings: Settings = Depends(get_settings)):
    body = await read_fields(request)
    if not body:
        return PlainTextResponse("缺少結帳資料", status_code=400)

    overrides = {}
    if settings.use_relay_return:
        overrides["ClientBackURL"] = settings.client_return_url
    try:
        params = build_outbound_parameters(
            body.get("amount"),
            CHECKOUT_TRADE_DESC,
            str(body.get("itemName") or ""),
            overrides,
            settings.credentials,
        )
    except InvalidAmountError as e:
        logger.info("[checkout] rejected: %s", e)
        return PlainTextResponse("金額不合法", status_code=400)

    logger.info("[checkout] ClientBackURL → %s", params["ClientBackURL"])
    return HTMLResponse(render_payment_form(params, settings.gateway_url))


# ---------------------------
# 綠界 Server-to-Server 回傳
# ---------------------------
@router.post("/return")
async def gateway_return(request: Request, settings: Settings = Depends(get_settings)):
    data = await read_fields(request)
    if not data:
        return PlainTextResponse("缺少回調數據", status_code=400)

    result = verify_check_mac_value(data, settings.credentials)
    if not result.is_valid:
        return PlainTextResponse("簽章驗證失敗", status_code=400)

    logger.info(
        "[return] verified MerchantTradeNo=%s RtnCode=%s",
        data.get("MerchantTradeNo"),
        data.get("RtnCode"),
    )
    return PlainTextResponse("1|OK")


# ---------------------------
# n8n → relay 內部通知
# ---------------------------
@router.post("/notify")
async def notify(request: Request, settings: Settings = Depends(get_settings)):
    token = request.headers.get(TOKEN_HEADER) or ""
    if not hmac.compare_digest(token.encode("utf-8"), settings.notify_secret.encode("utf-8")):
        return PlainTextResponse("Forbidden", status_code=403)

    payload = extract_trade_fields(await read_fields(request))
    logger.info("[notify] received from n8n: %s", payload)

    # 轉發失敗仍回 200，避免 n8n 重送
    await run_in_threadpool(
        forward_payment_notice, settings.spring_base, settings.notify_secret, payload
    )
    return PlainTextResponse("ok")


# ---------------------------
# 使用者導回頁
# ---------------------------
@router.get("/clientReturn", response_class=HTMLResponse)
async def client_return(request: Request):
    return render_client_return(dict(request.query_params))
