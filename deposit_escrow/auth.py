# deposit_escrow/auth.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request

from .config import settings


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str  # owner | tenant | admin

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


ROLES = ("owner", "tenant", "admin")


def _header(request: Request, name: str) -> str:
    return (request.headers.get(name) or "").strip()


def get_principal(request: Request) -> Principal:
    """
    Actor identity for every escrow operation.

    Modes:
      - dev:     X-User-Id / X-User-Role headers are trusted as sent
      - gateway: same headers, stamped by an authenticating proxy in front of us
    Identity issuance itself is out of scope here.
    """
    mode = (settings.auth_mode or "dev").strip().lower()
    if mode not in ("dev", "gateway"):
        raise HTTPException(status_code=401, detail="Not authenticated")

    raw_id = _header(request, settings.dev_header_user_id)
    if not raw_id:
        raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_id}")
    try:
        user_id = int(raw_id)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {settings.dev_header_user_id}")

    role = _header(request, settings.dev_header_user_role).lower() or "tenant"
    if role not in ROLES:
        raise HTTPException(status_code=403, detail=f"Unknown role {role!r}")

    request.state.user_id = user_id
    return Principal(user_id=user_id, role=role)


def _require_role(p: Principal, *allowed: str) -> None:
    if p.role not in allowed and not p.is_admin:
        raise HTTPException(status_code=403, detail=f"Requires role {' or '.join(allowed)}")


def require_owner(p: Principal = Depends(get_principal)) -> Principal:
    _require_role(p, "owner")
    return p


def require_tenant(p: Principal = Depends(get_principal)) -> Principal:
    _require_role(p, "tenant")
    return p


def ensure_self_or_staff(p: Principal, tenant_id: Optional[int]) -> None:
    """Tenants only see and act on their own escrow records."""
    if p.role == "tenant" and tenant_id is not None and int(tenant_id) != p.user_id:
        raise HTTPException(status_code=403, detail="Tenants can only access their own deposit")
