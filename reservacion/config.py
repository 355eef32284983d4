import logging
import os

# AWS
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")

# DynamoDB tables
EVENTS_TABLE = os.environ.get("EVENTS_TABLE", "Events")
RESERVATIONS_TABLE = os.environ.get("RESERVATIONS_TABLE", "Reservations")
USERS_TABLE = os.environ.get("USERS_TABLE", "Users")

# S3 bucket for event images
IMAGE_BUCKET = os.environ.get("IMAGE_BUCKET", "reservacion-event-images")

# Cognito (optional: without these every request is anonymous)
COGNITO_REGION = os.environ.get("COGNITO_REGION") or AWS_REGION
COGNITO_USER_POOL_ID = os.environ.get("COGNITO_USER_POOL_ID")
COGNITO_APP_CLIENT_ID = os.environ.get("COGNITO_APP_CLIENT_ID")

# Password change and account deletion need a login newer than this (seconds)
RECENT_LOGIN_SECONDS = int(os.environ.get("RECENT_LOGIN_SECONDS", "300"))

# Built single-page app served by the preview shim
HOSTING_DIR = os.environ.get(
    "HOSTING_DIR", os.path.join(os.path.dirname(os.path.dirname(__file__)), "hosting")
)

# Origin used in shareable links; falls back to the request host when empty
PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "")

# Social preview
# Comma-separated override of the built-in crawler list in preview.py
CRAWLER_USER_AGENTS = tuple(
    p.strip() for p in os.environ.get("CRAWLER_USER_AGENTS", "").split(",") if p.strip()
) or None
DEFAULT_PREVIEW_TITLE = os.environ.get("DEFAULT_PREVIEW_TITLE", "Reservaciones")
DEFAULT_PREVIEW_DESCRIPTION = os.environ.get(
    "DEFAULT_PREVIEW_DESCRIPTION", "Create reservations for your favorite events"
)
DEFAULT_PREVIEW_IMAGE = os.environ.get(
    "DEFAULT_PREVIEW_IMAGE", "https://reservacion-48a62.web.app/logo512-v2.png"
)
PREVIEW_DESCRIPTION_SUFFIX = " Haz una reservación haciendo clic en este link."

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
