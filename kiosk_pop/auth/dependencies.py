import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kiosk_pop.auth.clerk import verify_clerk_token
from kiosk_pop.db.deps import get_session
from kiosk_pop.db.repositories.orgs import OrgsRepository

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: str
    org_id: str


def _claimed_org(claims: Dict[str, Any]) -> Optional[str]:
    orgs = claims.get("orgs") or [{}]
    first = orgs[0] if isinstance(orgs, list) and orgs and isinstance(orgs[0], dict) else {}
    return claims.get("org_id") or claims.get("organization_id") or first.get("id")


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_clerk_token(credentials.credentials)
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

    orgs_repo = OrgsRepository(session)
    external_org_id = _claimed_org(claims)
    org = orgs_repo.get_by_external_id(external_org_id) if external_org_id else None
    if org is not None:
        logger.debug("Resolved org from Clerk token", extra={"external_org_id": external_org_id, "sub": user_id})
        return AuthContext(user_id=user_id, org_id=str(org.id))

    membership = orgs_repo.first_membership(user_id)
    if membership is None:
        logger.warning(
            "No org membership for caller",
            extra={"sub": user_id, "external_org_id": external_org_id},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No org membership found")

    logger.debug("Resolved org from membership", extra={"sub": user_id, "org_id": membership.org_id})
    return AuthContext(user_id=user_id, org_id=str(membership.org_id))
