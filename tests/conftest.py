import io
import os
import sys
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'memelytics' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage")

from memelytics.domain.entities.editor_state import TextItem  # noqa: E402
from memelytics.domain.services.geometry import Size  # noqa: E402
from memelytics.domain.services.text_metrics import TextMeasurer  # noqa: E402

TEST_WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"


class FixedMeasurer(TextMeasurer):
    """Deterministic text boxes: half the font size per character."""

    def measure(self, item: TextItem) -> Size:
        return Size(w=max(1, len(item.text or " ")) * item.size * 0.5, h=float(item.size))


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    arr = np.zeros((h, w, 3), dtype=np.uint8)
    arr[:, :] = color
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def solid(w, h, color=(255, 0, 0, 255)) -> Image.Image:
    return Image.new("RGBA", (w, h), color)


@pytest.fixture()
def measurer() -> FixedMeasurer:
    return FixedMeasurer()


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from memelytics.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # a wallet-shaped token is taken as the wallet itself in disabled mode
    return {"Authorization": f"Bearer {TEST_WALLET}"}


@pytest.fixture()
def wallet() -> str:
    return TEST_WALLET.lower()


@pytest.fixture()
def png_bytes():
    return make_png_bytes


@pytest.fixture()
def solid_image():
    return solid
