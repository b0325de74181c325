"""PriceFilter: Normalize raw prices against the oracle whitelist.

The chain expects exactly one vote per whitelisted denom. A missing denom is
worse than an explicit abstain, so the filter:
    1. Removes prices whose denom ("u" + lowercase currency) is not whitelisted
    2. Zeroes prices for currencies the operator did not ask to vote on
    3. Adds abstain entries for whitelisted denoms without a price

.. code-block:: python

    >>> filter_prices(
    ...     [PricePoint("USD", "1.0"), PricePoint("KRW", "1200.0")],
    ...     whitelist=["uusd", "ukrw"],
    ...     denoms=["usd"],
    ... )
    [PricePoint(currency='USD', price='1.0'), PricePoint(currency='KRW', price='0.000000000000000000')]
"""

from __future__ import annotations

from collections.abc import Iterable

from .PriceSource import PricePoint

# Zero exchange rate marks an abstain vote.
ABSTAIN_PRICE = "0.000000000000000000"

DENOM_PREFIX = "u"


def to_denom(currency: str) -> str:
    """Convert a currency symbol to its micro denom ("KRW" -> "ukrw")."""
    return f"{DENOM_PREFIX}{currency.lower()}"


def to_currency(denom: str) -> str:
    """Convert a micro denom to its currency symbol ("ukrw" -> "KRW")."""
    return denom[len(DENOM_PREFIX):].upper()


def fill_abstain_prices(
    prices: Iterable[PricePoint], whitelist: Iterable[str]
) -> list[PricePoint]:
    """Build abstain prices for whitelisted denoms missing from prices.

    :param prices: Already filtered prices.
    :param whitelist: Oracle whitelist denoms.
    :returns: Abstain entries in whitelist order.
    """
    present = {to_denom(p.currency) for p in prices}
    return [
        PricePoint(currency=to_currency(denom), price=ABSTAIN_PRICE)
        for denom in dict.fromkeys(whitelist)
        if denom not in present
    ]


def filter_prices(
    prices: Iterable[PricePoint],
    whitelist: Iterable[str],
    denoms: Iterable[str],
) -> list[PricePoint]:
    """Produce one price per whitelisted denom.

    :param prices: Raw prices from the price source.
    :param whitelist: Oracle whitelist denoms (e.g. "ukrw").
    :param denoms: Currencies the operator votes on, lower-cased (e.g. "krw").
    :returns: Filtered prices followed by synthesized abstain prices.
    """
    whitelist = list(whitelist)
    allowed = set(whitelist)
    requested = {d.lower() for d in denoms}

    filtered: list[PricePoint] = []
    seen: set[str] = set()
    for point in prices:
        denom = to_denom(point.currency)
        if denom not in allowed or denom in seen:
            continue
        seen.add(denom)

        if point.currency.lower() not in requested:
            filtered.append(PricePoint(currency=point.currency, price=ABSTAIN_PRICE))
        else:
            filtered.append(point)

    return filtered + fill_abstain_prices(filtered, whitelist)
