"""
Tests for book configuration
Run with: pytest tests/test_book_config.py -v
"""

import pytest

from numbers_book.core.book_config import BookConfig


class TestBookConfig:

    def test_defaults(self):
        cfg = BookConfig()
        assert cfg.payout_multiplier == 80
        assert cfg.house_margin_estimate == 0.72
        assert cfg.default_global_limit == 5000

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BOOK_PAYOUT_MULTIPLIER", "90")
        monkeypatch.setenv("BOOK_HOUSE_MARGIN", "0.5")
        monkeypatch.setenv("BOOK_GLOBAL_LIMIT", "2500")

        cfg = BookConfig.from_env()

        assert cfg == BookConfig(payout_multiplier=90, house_margin_estimate=0.5, default_global_limit=2500)

    @pytest.mark.parametrize("kwargs", [
        {"payout_multiplier": 0},
        {"house_margin_estimate": 1.5},
        {"house_margin_estimate": -0.1},
        {"default_global_limit": -1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            BookConfig(**kwargs)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
