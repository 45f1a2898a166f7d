"""
Bank Service - Nigerian bank list for payouts and transfers

The list comes from Paystack and is memoized in process for a few hours.
When Paystack cannot be reached a static list of major banks is served
instead (and not cached, so the next call retries).
"""
import logging
import time
from typing import List, Optional

from marketplace.connectors.paystack_connector import PaystackConnector
from marketplace.core.config import settings
from marketplace.domain.bank import Bank

logger = logging.getLogger(__name__)

FALLBACK_BANKS = [
    Bank(code="011", name="First Bank of Nigeria"),
    Bank(code="033", name="United Bank for Africa"),
    Bank(code="044", name="Access Bank"),
    Bank(code="057", name="Zenith Bank"),
    Bank(code="058", name="Guaranty Trust Bank"),
    Bank(code="070", name="Fidelity Bank"),
    Bank(code="076", name="Polaris Bank"),
    Bank(code="214", name="FCMB"),
    Bank(code="215", name="Unity Bank"),
    Bank(code="221", name="Stanbic IBTC Bank"),
    Bank(code="232", name="Sterling Bank"),
    Bank(code="035", name="Wema Bank"),
]


def normalize_banks(rows: List[dict]) -> List[Bank]:
    """Active NGN nuban banks, unique by code, sorted by name"""
    by_code = {}
    for row in rows or []:
        if row.get('active') is False:
            continue
        if (row.get('currency') or 'NGN').upper() != 'NGN':
            continue
        if (row.get('type') or 'nuban').lower() != 'nuban':
            continue
        code = str(row.get('code') or '').strip()
        name = str(row.get('name') or '').strip()
        if not code or not name or code in by_code:
            continue
        by_code[code] = Bank(country="NG", code=code, name=name)

    return sorted(by_code.values(), key=lambda bank: bank.name.lower())


class BankService:
    """TTL-memoized bank list"""

    def __init__(self, connector: Optional[PaystackConnector] = None, ttl_seconds: Optional[int] = None):
        self._connector = connector
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.BANK_CACHE_TTL_SECONDS
        self._cache: Optional[List[Bank]] = None
        self._cached_at = 0.0

    def _is_fresh(self) -> bool:
        return self._cache is not None and (time.time() - self._cached_at) < self.ttl_seconds

    async def list_banks(self) -> List[Bank]:
        if self._is_fresh():
            return self._cache

        try:
            connector = self._connector or PaystackConnector()
            banks = normalize_banks(await connector.list_banks("NGN"))
            if not banks:
                raise ValueError("Paystack returned no NGN banks")
        except Exception as e:
            logger.warning(f"Bank list unavailable, serving fallback list: {e}")
            return list(FALLBACK_BANKS)

        self._cache = banks
        self._cached_at = time.time()
        logger.info(f"Cached {len(banks)} banks for {self.ttl_seconds}s")
        return banks

    def clear(self):
        self._cache = None
        self._cached_at = 0.0


_bank_service: Optional[BankService] = None


def get_bank_service() -> BankService:
    """Get the process-wide BankService (singleton)"""
    global _bank_service
    if _bank_service is None:
        _bank_service = BankService()
    return _bank_service
