import pytest

from jobcrawler.config import Settings


def test_reconcile_mode_is_normalized():
    assert Settings(reconcile_mode=" Update ").reconcile_mode == "update"
    assert Settings(reconcile_mode="ignore").reconcile_mode == "ignore"


def test_unknown_reconcile_mode_is_rejected():
    with pytest.raises(ValueError, match="reconcile_mode"):
        Settings(reconcile_mode="merge")
