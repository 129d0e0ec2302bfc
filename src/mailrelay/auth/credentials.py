"""Gmail OAuth2 for the relay's read-only mailbox access.

The relay only ever reads mail, so it asks for ``gmail.readonly`` and nothing
else.  A token cached from an earlier run is reused and refreshed when it has
expired; a token that cannot be refreshed (revoked, or issued for other
scopes) falls back to the interactive browser consent.
"""

from __future__ import annotations

from pathlib import Path

import google.auth.transport.requests
import structlog
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]
from googleapiclient.discovery import Resource, build

logger = structlog.get_logger()

DEFAULT_GMAIL_SCOPES: list[str] = ["https://www.googleapis.com/auth/gmail.readonly"]

DEFAULT_TOKEN_PATH: str = "token.json"
DEFAULT_CREDENTIALS_PATH: str = "credentials.json"


def _refreshed(creds: Credentials, token_path: Path) -> Credentials | None:
    """Refresh an expired token, or return ``None`` if Google refuses."""
    logger.info("Refreshing expired Gmail token", token_path=str(token_path))
    try:
        creds.refresh(google.auth.transport.requests.Request())
    except RefreshError as exc:
        logger.warning("Gmail token refresh rejected, authorizing again", error=str(exc))
        return None
    return creds


def _authorize(credentials_path: Path, scopes: list[str]) -> Credentials:
    logger.info("Starting interactive Gmail authorization", credentials_path=str(credentials_path))
    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
    return flow.run_local_server(port=0)


def get_gmail_credentials(
    token_path: str | Path = DEFAULT_TOKEN_PATH,
    credentials_path: str | Path = DEFAULT_CREDENTIALS_PATH,
    scopes: list[str] | None = None,
) -> Credentials:
    """Return credentials for reading the relayed mailbox.

    Args:
        token_path: Where the OAuth2 token is cached between runs.  Created,
            together with missing parent directories, after a refresh or a
            new authorization.
        credentials_path: The OAuth2 client-secrets file downloaded from the
            Google Cloud console.
        scopes: Scopes to request; ``DEFAULT_GMAIL_SCOPES`` if omitted.

    Returns:
        Credentials usable by ``get_gmail_service``.
    """
    scopes = scopes or DEFAULT_GMAIL_SCOPES
    token_path = Path(token_path)

    creds: Credentials | None = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)  # type: ignore[no-untyped-call]
        if creds.valid:
            return creds
        if creds.expired and creds.refresh_token:
            creds = _refreshed(creds, token_path)
        else:
            creds = None

    if creds is None:
        creds = _authorize(Path(credentials_path), scopes)

    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
    logger.debug("Saved Gmail token", token_path=str(token_path))
    return creds


def get_gmail_service(credentials: Credentials | None = None) -> Resource:
    """Build the Gmail API v1 resource the relay reads from.

    The discovery document is not cached on disk; the relay is a long-running
    process that builds the service once.
    """
    return build(
        "gmail",
        "v1",
        credentials=credentials if credentials is not None else get_gmail_credentials(),
        cache_discovery=False,
    )
