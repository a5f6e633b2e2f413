"""
config.py — Runtime Configuration for the Sales Order Service

All settings are read once from environment variables at import time.
Defaults target a local development setup with the mock OMS backend
(`mock_services/mock_order_backend.py`) listening on port 8002.
"""

import os

# Order Management System (OMS) backend
OMS_BASE_URL = os.environ.get("OMS_BASE_URL", "http://localhost:8002")
OMS_CONNECT_TIMEOUT = float(os.environ.get("OMS_CONNECT_TIMEOUT", "5.0"))
OMS_READ_TIMEOUT = float(os.environ.get("OMS_READ_TIMEOUT", "8.0"))

# Order dates are always computed in this zone, never in the host's local zone
BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Tegucigalpa")

SEARCH_DEBOUNCE_MS = int(os.environ.get("SEARCH_DEBOUNCE_MS", "300"))
COMMENTS_DEBOUNCE_MS = int(os.environ.get("COMMENTS_DEBOUNCE_MS", "500"))

# Persistent key-value store for the customer/category context
CONTEXT_STORE_PATH = os.environ.get("CONTEXT_STORE_PATH", ".sales_context.json")

IMAGE_BASE_URL = os.environ.get("IMAGE_BASE_URL", "https://pub-266f56f2e24d4d3b8e8abdb612029f2f.r2.dev")
DEFAULT_PRICE_LIST = os.environ.get("DEFAULT_PRICE_LIST", "1")

LOG_FILE = os.environ.get("LOG_FILE", "order_submission.log")
