# Ensure the repository root is on sys.path so `print_agent` can be imported in tests.

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

import pytest
from PIL import Image, ImageDraw

from print_agent.core.config import RenderConfig, get_profile


class FakeEngine:
    """
    Stand-in for the headless browser: writes a white PNG of the requested
    width with a black bar across the top rows.
    """

    def __init__(self, height: int = 40, bar: int = 8, fail: Optional[Exception] = None) -> None:
        self.height = height
        self.bar = bar
        self.fail = fail
        self.calls: List[Dict[str, Any]] = []

    def screenshot(self, markup: str, width: int, scale: float, timeout: float, path: str) -> None:
        self.calls.append({"markup": markup, "width": width, "scale": scale, "timeout": timeout, "path": path})
        if self.fail is not None:
            raise self.fail
        img = Image.new("RGB", (width, self.height), "white")
        ImageDraw.Draw(img).rectangle([0, 0, width - 1, self.bar - 1], fill="black")
        img.save(path, format="PNG")


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def render_config(tmp_path) -> RenderConfig:
    return RenderConfig(cache_path=str(tmp_path / "render-cache"))


@pytest.fixture
def mm58():
    return get_profile("MM_58")


@pytest.fixture
def ticket_content() -> Dict[str, Any]:
    return {
        "header": {
            "restaurantName": "Spice Route",
            "kotNumber": 42,
            "kotType": "Dine In",
            "customerName": "Asha",
            "orderType": "Table 7",
            "waiterName": "Ravi",
            "date": "2024-05-01 19:30",
        },
        "items": [
            {"name": "Paneer Tikka", "quantity": 2, "status": "NEW"},
            {"name": "Dal Makhani", "quantity": 1, "status": "modified"},
            {"name": "Garlic Naan", "quantity": 4, "status": "CANCELLED"},
        ],
        "note": "Less spicy",
    }


@pytest.fixture
def bill_content() -> Dict[str, Any]:
    return {
        "header": {
            "restaurantName": "Spice Route",
            "address": "12 MG Road",
            "gstin": "29ABCDE1234F1Z5",
            "phoneNo": "080-1234",
            "invoice": "INV-9",
            "customerName": "Asha",
            "orderType": "Takeaway",
            "date": "2024-05-01 20:10",
        },
        "items": [
            {"name": "Burger", "price": 40, "quantity": 1},
            {"name": "Fries", "price": 30, "quantity": 2},
        ],
        "summary": {
            "subTotal": 100,
            "discount": 0,
            "discountAmount": 0,
            "sgst": 2.5,
            "cgst": 2.5,
            "rounded": 0,
            "total": 105,
        },
    }
