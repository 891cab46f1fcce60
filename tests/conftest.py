import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from narrator.config import Settings, get_settings  # noqa: E402
from narrator.services import gcs  # noqa: E402


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the developer's `.env` and project directories."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\nfile = off\nretention_hours = 0\n")
    return Settings(
        _env_file=None,
        tts_base_url="http://tts.test/v1",
        tts_api_key="test-key",
        documents_dir=tmp_path / "documents",
        log_dir=tmp_path / "logs",
        logging_settings_path=config_file,
    )


@pytest.fixture(autouse=True)
def reset_cached_settings():
    get_settings.cache_clear()
    gcs.reset_cache()
    yield
    get_settings.cache_clear()
    gcs.reset_cache()


@pytest.fixture
def make_pdf():
    """Build an in-memory PDF with one page per string."""
    import fitz

    def _make(*pages: str) -> bytes:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    return _make
