"""Merchant context resolution for API requests.

The calling merchant is identified by the X-Merchant-ID header. Token
verification happens upstream of this service.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, status

MERCHANT_HEADER = "X-Merchant-ID"


@dataclass(frozen=True)
class MerchantContext:
    """Identity of the merchant a request acts for."""

    merchant_id: uuid.UUID
    actor: str = "system"


async def get_current_merchant(
    x_merchant_id: Annotated[str | None, Header(alias=MERCHANT_HEADER)] = None,
    x_actor: Annotated[str | None, Header(alias="X-Actor")] = None,
) -> MerchantContext:
    """FastAPI dependency resolving the merchant context from request headers.

    Raises:
        HTTPException: 401 when the header is missing or not a UUID.
    """
    if not x_merchant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {MERCHANT_HEADER} header",
        )
    try:
        merchant_id = uuid.UUID(x_merchant_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {MERCHANT_HEADER} header",
        ) from exc
    return MerchantContext(merchant_id=merchant_id, actor=x_actor or "system")
