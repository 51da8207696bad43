"""Shared API dependencies for authentication and app-owned services."""

from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tandem_chat.core.errors import AuthError
from tandem_chat.db.session import get_db
from tandem_chat.services.auth import AuthGateway, TokenClaims, get_auth_gateway
from tandem_chat.services.conversations import ConversationResolver, get_conversation_resolver
from tandem_chat.services.relay import MessageRelay
from tandem_chat.services.sessions import SessionRegistry

# Missing credentials are reported by get_current_claims with the same 401 as bad ones.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]
AuthGatewayDep = Annotated[AuthGateway, Depends(get_auth_gateway)]
ResolverDep = Annotated[ConversationResolver, Depends(get_conversation_resolver)]


def get_registry(connection: HTTPConnection) -> SessionRegistry:
    """Return the presence registry owned by the running application."""
    registry: SessionRegistry = connection.app.state.registry
    return registry


def get_relay(connection: HTTPConnection) -> MessageRelay:
    """Return the message relay owned by the running application."""
    relay: MessageRelay = connection.app.state.relay
    return relay


RegistryDep = Annotated[SessionRegistry, Depends(get_registry)]
RelayDep = Annotated[MessageRelay, Depends(get_relay)]


def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    gateway: AuthGatewayDep,
) -> TokenClaims:
    """Verify the bearer token before any handler side effect.

    Raises:
        HTTPException: 401 with a uniform detail for any token problem.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthError().to_http()
    try:
        return gateway.verify_token(credentials.credentials)
    except AuthError as err:
        raise err.to_http() from err


# Type alias for current user dependency
CurrentClaimsDep = Annotated[TokenClaims, Depends(get_current_claims)]
