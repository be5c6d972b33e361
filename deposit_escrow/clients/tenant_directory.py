# deposit_escrow/clients/tenant_directory.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol

import httpx

from ..config import settings
from ..domain.money import parse_amount, to_money
from ..errors import ServiceUnavailable

log = logging.getLogger("escrow.tenant_directory")


class TenantDirectory(Protocol):
    def get_monthly_rent(self, tenant_id: int) -> Optional[Decimal]: ...


class HttpTenantDirectory:
    """
    Reads a tenant's monthly rent from the tenancy directory service.

    GET {base}/tenants/{tenant_id}/monthly-rent -> {"monthly_rent": 12000}
      404 / null rent     -> None (unknown, the cap check is skipped)
      transport / 5xx     -> ServiceUnavailable (never guess a rent)
      non-numeric rent    -> ServiceUnavailable (a corrupt answer is not "unknown")
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.token = token
        self.timeout = float(timeout)
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def get_monthly_rent(self, tenant_id: int) -> Optional[Decimal]:
        url = f"{self.base}/tenants/{int(tenant_id)}/monthly-rent"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                r = client.get(url, headers=self._headers())
                if r.status_code == 404:
                    return None
                r.raise_for_status()
                data: Any = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("tenant directory lookup failed", extra={"tenant_id": int(tenant_id)}, exc_info=True)
            raise ServiceUnavailable(
                "directory_unavailable",
                "Tenant directory is unavailable; retry later",
                tenant_id=int(tenant_id),
            ) from e

        if not isinstance(data, dict):
            raise ServiceUnavailable(
                "directory_unavailable",
                "Tenant directory returned an unexpected body; retry later",
                tenant_id=int(tenant_id),
            )
        raw = data.get("monthly_rent")
        if raw is None:
            return None
        try:
            return parse_amount(raw)
        except ValueError as e:
            log.error("tenant directory returned a non-numeric rent", extra={"tenant_id": int(tenant_id)})
            raise ServiceUnavailable(
                "directory_unavailable",
                "Tenant directory returned an unreadable rent; retry later",
                tenant_id=int(tenant_id),
            ) from e


class StaticTenantDirectory:
    """In-process rent table (CLI seeding, local runs without a directory service)."""

    def __init__(self, rents: Optional[Mapping[int, Any]] = None) -> None:
        self._rents: dict[int, Decimal] = {int(k): to_money(v) for k, v in (rents or {}).items()}

    def set_rent(self, tenant_id: int, monthly_rent: Any) -> None:
        self._rents[int(tenant_id)] = to_money(monthly_rent)

    def get_monthly_rent(self, tenant_id: int) -> Optional[Decimal]:
        return self._rents.get(int(tenant_id))


def get_tenant_directory() -> TenantDirectory:
    if settings.tenant_directory_url:
        return HttpTenantDirectory(
            settings.tenant_directory_url,
            token=settings.tenant_directory_token,
            timeout=settings.tenant_directory_timeout,
        )
    return StaticTenantDirectory()
