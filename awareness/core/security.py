"""Request identity and maintenance-token checks.

Authentication happens upstream; the gateway forwards the verified tenant and
employee as headers. Maintenance routes additionally require the admin token.
"""
import hmac
from dataclasses import dataclass

TENANT_HEADER = "x-tenant-id"
EMPLOYEE_HEADER = "x-employee-id"
ADMIN_TOKEN_HEADER = "x-admin-token"


@dataclass(frozen=True)
class Identity:
    tenant_id: str
    employee_id: str


def identity_from_headers(headers) -> Identity | None:
    """Return the forwarded identity, or None when either header is missing/blank."""
    tenant_id = (headers.get(TENANT_HEADER) or "").strip()
    employee_id = (headers.get(EMPLOYEE_HEADER) or "").strip()
    if not tenant_id or not employee_id:
        return None
    return Identity(tenant_id=tenant_id, employee_id=employee_id)


def verify_admin_token(token: str | None, expected: str) -> bool:
    """Constant-time comparison against the configured admin token."""
    if not token or not expected:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))
