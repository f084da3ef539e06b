import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from config import Settings
from main import create_app
from payment_gateway import MerchantCredentials


@pytest.fixture
def settings():
    return Settings(
        credentials=MerchantCredentials(
            merchant_id="3002607",
            hash_key="pwFHCqoQZGmho4w6",
            hash_iv="EkRm7iFT261dpevs",
            return_url="https://relay.example.com/ecpay/return",
            client_back_url="https://shop.example.com/payment/done",
        ),
        spring_base="http://spring.internal:8080",
        notify_secret="s3cret",
    )


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings))
