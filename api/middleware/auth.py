from __future__ import annotations

from fastapi import HTTPException, Request

USER_HEADER = "X-User-Id"


def get_user_id_from_request(request: Request) -> str:
    # Dev-friendly auth shim. Production deployments put real authentication in front of this service.
    return str(request.headers.get(USER_HEADER) or "").strip()


async def get_current_user_id(request: Request) -> str:
    user_id = get_user_id_from_request(request)
    if not user_id:
        raise HTTPException(status_code=401, detail=f"missing {USER_HEADER} header")
    return user_id
