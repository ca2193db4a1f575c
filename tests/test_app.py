"""Tests for the Streamlit dashboard, driven through streamlit's AppTest."""

import pytest
from streamlit.testing.v1 import AppTest

from cashflow.config import get_settings


@pytest.fixture
def app(monkeypatch, tmp_path) -> AppTest:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("CASHFLOW_STORAGE_BACKEND", "memory")
    get_settings.cache_clear()
    yield AppTest.from_file("../app/main.py", default_timeout=30)
    get_settings.cache_clear()


class TestBillsPage:
    """Tests for the Bills page."""

    def test_generate_keeps_duplicates_by_default(self, app):
        """The skip checkbox starts unticked, matching BillGenerationFlow.generate."""
        app.run()
        app.sidebar.radio[0].set_value("🧾 Bills").run()

        assert not app.exception
        skip = [c for c in app.checkbox if c.label.startswith("Skip bills")]
        assert len(skip) == 1
        assert skip[0].value is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
