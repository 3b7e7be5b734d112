import pytest

import pricing


def test_below_free_shipping_threshold():
    summary = pricing.checkout_summary(450)
    assert summary.shipping_fee == 50
    assert summary.tax == pytest.approx(81.00)
    assert summary.grand_total == pytest.approx(581.00)
    assert summary.amount_to_free_shipping == pytest.approx(50)


def test_above_free_shipping_threshold():
    summary = pricing.checkout_summary(600)
    assert summary.shipping_fee == 0
    assert summary.tax == pytest.approx(108.00)
    assert summary.grand_total == pytest.approx(708.00)
    assert summary.amount_to_free_shipping == 0


def test_threshold_itself_still_pays_shipping():
    summary = pricing.checkout_summary(500)
    assert summary.shipping_fee == 50
    assert summary.grand_total == pytest.approx(640.00)


def test_empty_cart():
    summary = pricing.checkout_summary(0)
    assert summary.tax == 0
    assert summary.shipping_fee == 50
    assert summary.grand_total == 50


def test_policy_comes_from_config(monkeypatch):
    monkeypatch.setattr(pricing.config, "TAX_RATE", 0.05)
    monkeypatch.setattr(pricing.config, "FREE_SHIPPING_THRESHOLD", 1000)
    monkeypatch.setattr(pricing.config, "SHIPPING_FEE", 99)
    summary = pricing.checkout_summary(600)
    assert summary.tax == pytest.approx(30.00)
    assert summary.shipping_fee == 99
    assert summary.grand_total == pytest.approx(729.00)
