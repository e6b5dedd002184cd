from __future__ import annotations

import os
from typing import Generator
from chemstock.app.db.session import SessionLocal

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def atomic_decrement_enabled() -> bool:
    return os.getenv("STOCK_ATOMIC_DECREMENT", "").strip().lower() in {"1", "true", "yes"}
