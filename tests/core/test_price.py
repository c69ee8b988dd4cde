from __future__ import annotations

from decimal import Decimal

import pytest

from cpamm_quote.core.price import (
    get_price_change,
    get_price_from_sqrt_price,
    get_price_impact,
    get_sqrt_price_from_price,
)

ONE_Q64 = 1 << 64


def test_price_from_sqrt_price() -> None:
    assert get_price_from_sqrt_price(ONE_Q64, 6, 6) == Decimal(1)
    assert get_price_from_sqrt_price(2 * ONE_Q64, 6, 6) == Decimal(4)
    assert get_price_from_sqrt_price(ONE_Q64, 9, 6) == Decimal(1000)
    assert get_price_from_sqrt_price(ONE_Q64, 6, 9) == Decimal("0.001")


def test_sqrt_price_from_price() -> None:
    assert get_sqrt_price_from_price("1", 6, 6) == ONE_Q64
    assert get_sqrt_price_from_price(4, 6, 6) == 2 * ONE_Q64
    assert get_sqrt_price_from_price(Decimal("1000"), 9, 6) == ONE_Q64


def test_sqrt_price_from_price_floors() -> None:
    sqrt_price = get_sqrt_price_from_price("2", 6, 6)
    assert sqrt_price * sqrt_price <= 2 * ONE_Q64 * ONE_Q64 < (sqrt_price + 1) ** 2


def test_sqrt_price_from_price_rejects_float_and_negative() -> None:
    with pytest.raises(TypeError):
        get_sqrt_price_from_price(1.5, 6, 6)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        get_sqrt_price_from_price("-1", 6, 6)


def test_price_change() -> None:
    assert get_price_change(2 * ONE_Q64, ONE_Q64) == Decimal(300)
    assert get_price_change(ONE_Q64, ONE_Q64) == Decimal(0)
    with pytest.raises(ValueError):
        get_price_change(ONE_Q64, 0)


def test_price_impact_zero_input() -> None:
    assert get_price_impact(0, 0, ONE_Q64, True, 6, 6) == Decimal(0)


def test_price_impact_requires_output() -> None:
    with pytest.raises(ValueError):
        get_price_impact(1, 0, ONE_Q64, True, 6, 6)


def test_price_impact_at_spot_is_zero() -> None:
    assert get_price_impact(1_000, 1_000, ONE_Q64, False, 6, 6) == Decimal(0)


def test_price_impact_one_percent() -> None:
    impact = get_price_impact(1_000, 990, ONE_Q64, True, 6, 6)
    assert abs(impact - Decimal(1)) < Decimal("1e-60")
