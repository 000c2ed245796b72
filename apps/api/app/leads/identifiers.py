from __future__ import annotations

import random
import threading
import time
import uuid

_lock = threading.Lock()
_last_issued: dict[str, int] = {}


def _stamp(prefix: str) -> str:
    # Last six digits of epoch millis followed by three random digits. A value
    # that collides with the previous one in the same millisecond is bumped.
    candidate = (int(time.time() * 1000) % 1_000_000) * 1000 + random.randint(0, 999)
    with _lock:
        previous = _last_issued.get(prefix, -1)
        if candidate <= previous and previous // 1000 == candidate // 1000:
            candidate = previous + 1
        _last_issued[prefix] = candidate
    return f"{prefix}{candidate % 1_000_000_000:09d}"


def new_lead_id() -> str:
    return f"LEAD_{uuid.uuid4()}"


def new_lead_number() -> str:
    return _stamp("LD")


def new_product_id() -> str:
    return _stamp("PROD")


def new_payment_id() -> str:
    return _stamp("PAY")


def new_vendor_id() -> str:
    return _stamp("VEN")


def new_order_no() -> str:
    return _stamp("ORD")


def new_followup_id() -> str:
    return _stamp("FU")


def new_sale_id() -> str:
    return _stamp("SL")


def new_target_id() -> str:
    return _stamp("TGT")
