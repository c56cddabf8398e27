from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

security = HTTPBearer(auto_error=False)


def get_request_token(
    token: Optional[str] = Header(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """
    Token from the `token` header, falling back to `Authorization: Bearer`.
    Missing tokens are not rejected here; the account manager answers 401 for them.
    """
    if token:
        return token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None
