import os
from dataclasses import dataclass

from dotenv import load_dotenv

from payment_gateway import MerchantCredentials

load_dotenv()

REQUIRED_VARS = (
    "MERCHANTID",
    "HASHKEY",
    "HASHIV",
    "RETURN_URL",
    "CLIENT_BACK_URL",
    "SPRING_BASE",
    "NOTIFY_SECRET",
)

SANDBOX_GATEWAY_URL = "https://payment-stage.ecpay.com.tw/Cashier/AioCheckOut/V5"
PRODUCTION_GATEWAY_URL = "https://payment.ecpay.com.tw/Cashier/AioCheckOut/V5"


class ConfigError(RuntimeError):
    """Raised when required environment variables are missing."""

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__("環境變數缺少或不合法：" + " / ".join(self.missing))


@dataclass(frozen=True)
class Settings:
    credentials: MerchantCredentials
    spring_base: str
    notify_secret: str
    use_relay_return: bool = False
    relay_base: str = "http://localhost:8000"
    sandbox: bool = True
    log_level: str = "INFO"

    @property
    def gateway_url(self) -> str:
        return SANDBOX_GATEWAY_URL if self.sandbox else PRODUCTION_GATEWAY_URL

    @property
    def client_return_url(self) -> str:
        return f"{self.relay_base.rstrip('/')}/ecpay/clientReturn"


def _flag(value, default=False):
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ=None) -> Settings:
    """Build ``Settings`` from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    values = {name: (env.get(name) or "").strip() for name in REQUIRED_VARS}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigError(missing)

    return Settings(
        credentials=MerchantCredentials(
            merchant_id=values["MERCHANTID"],
            hash_key=values["HASHKEY"],
            hash_iv=values["HASHIV"],
            return_url=values["RETURN_URL"],
            client_back_url=values["CLIENT_BACK_URL"],
        ),
        spring_base=values["SPRING_BASE"].rstrip("/"),
        notify_secret=values["NOTIFY_SECRET"],
        use_relay_return=env.get("USE_RELAY_RETURN", "").strip() == "1",
        relay_base=(env.get("RELAY_BASE") or "http://localhost:8000").strip(),
        sandbox=_flag(env.get("ECPAY_SANDBOX"), default=True),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )
