"""Firebase Admin SDK initialization and ID token verification."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

from app.schemas.users import IdentityInfo

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Looks for credentials in order:
    1. ``firebase_config_json`` (raw service account JSON, e.g. from the environment)
    2. ``firebase_credentials_path`` (service account file)
    3. Application Default Credentials
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("Firebase already initialized")
        return

    try:
        cred = None

        if firebase_config_json:
            logger.info("Initializing Firebase with JSON string from environment")
            cred = credentials.Certificate(json.loads(firebase_config_json))

        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("Initializing Firebase with JSON file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("Firebase initialized with default credentials")

    except Exception as e:
        logger.error("Failed to initialize Firebase", error=str(e))
        raise


async def verify_firebase_token(id_token: str) -> IdentityInfo:
    """
    Verify a Firebase ID token and return the identity it proves.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Stable uid plus email, display name and photo URL

    Raises:
        ValueError: If the token is invalid, expired or cannot be verified
    """
    try:
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)
    except auth.InvalidIdTokenError as e:
        logger.warning("Invalid or expired Firebase ID token", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}")
    except Exception as e:
        logger.error("Firebase token verification failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}")

    logger.info("Firebase token verified", uid=decoded_token.get("uid"))

    return IdentityInfo(
        uid=decoded_token["uid"],
        email=decoded_token.get("email") or "",
        display_name=decoded_token.get("name"),
        photo_url=decoded_token.get("picture"),
    )
