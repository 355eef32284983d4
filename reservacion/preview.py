"""
Serves the built single-page app and, for link-preview crawlers hitting an
event page, rewrites the social meta tags with the event's details.
"""
import html
import logging
import os
import re
from typing import Callable, Iterable, Optional, Tuple

from werkzeug.security import safe_join

from . import config
from .models import Event

logger = logging.getLogger(__name__)

CRAWLER_USER_AGENTS = (
    "facebookexternalhit",
    "WhatsApp",
    "Twitterbot",
    "LinkedInBot",
    "Slackbot",
    "TelegramBot",
)

CONTENT_TYPES = {
    ".js": "application/javascript",
    ".css": "text/css",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",
    ".json": "application/json",
    ".txt": "text/plain",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
}

CONFIG_ERROR = "Server configuration error. Please contact support."
GENERIC_ERROR = "An error occurred. Please try again later."

_EVENT_PATH = re.compile(r"/(?:reservation|join)/([^/?]+)")

_META_TAGS = {
    "og:title": "title",
    "og:description": "description",
    "og:image": "image",
    "twitter:title": "title",
    "twitter:description": "description",
    "twitter:image": "image",
}
_TITLE_TAG = re.compile(r"<title>[^<]*</title>")

Page = Tuple[bytes, int, str]


def is_crawler(user_agent: Optional[str], patterns: Optional[Iterable[str]] = None) -> bool:
    agent = (user_agent or "").lower()
    if not agent:
        return False
    patterns = CRAWLER_USER_AGENTS if patterns is None else patterns
    return any(p.lower() in agent for p in patterns if p)


def event_id_from_path(path: str) -> Optional[str]:
    match = _EVENT_PATH.search(path or "")
    return match.group(1) if match else None


def _literal(value: str):
    # re.sub treats backslashes in a string replacement as escapes
    return lambda _match: value


def preview_values(event: Event) -> dict:
    title = event.title or config.DEFAULT_PREVIEW_TITLE
    if event.description:
        description = event.description + config.PREVIEW_DESCRIPTION_SUFFIX
    else:
        description = config.DEFAULT_PREVIEW_DESCRIPTION
    image = event.image_url if event.has_image else config.DEFAULT_PREVIEW_IMAGE
    return {"title": title, "description": description, "image": image}


def rewrite_meta(document: str, title: str, description: str, image_url: str) -> str:
    values = {
        "title": html.escape(title, quote=True),
        "description": html.escape(description, quote=True),
        "image": html.escape(image_url, quote=True),
    }
    for prop, source in _META_TAGS.items():
        pattern = re.compile(r'<meta property="' + re.escape(prop) + r'" content="[^"]*" />')
        tag = f'<meta property="{prop}" content="{values[source]}" />'
        document = pattern.sub(_literal(tag), document, count=1)
    return _TITLE_TAG.sub(_literal(f"<title>{values['title']}</title>"), document, count=1)


def _static_asset(path: str, hosting_dir: str) -> Optional[Page]:
    ext = os.path.splitext(path)[1].lower()
    if ext not in CONTENT_TYPES:
        return None
    file_path = safe_join(hosting_dir, path.lstrip("/"))
    if not file_path or not os.path.isfile(file_path):
        return None
    with open(file_path, "rb") as fh:
        return fh.read(), 200, CONTENT_TYPES[ext]


def _event_preview(document: str, event_id: str,
                   lookup_event: Callable[[str], Optional[Event]]) -> str:
    try:
        event = lookup_event(event_id)
    except Exception as e:
        # keep the default tags
        logger.error("Error fetching event %s for preview: %s", event_id, e)
        return document
    if event is None:
        return document
    values = preview_values(event)
    return rewrite_meta(document, values["title"], values["description"], values["image"])


def render_page(path: str, user_agent: Optional[str], hosting_dir: str,
                lookup_event: Callable[[str], Optional[Event]],
                crawler_patterns: Optional[Iterable[str]] = None) -> Page:
    """Return ``(body, status, content_type)`` for any non-API path."""
    try:
        asset = _static_asset(path, hosting_dir)
        if asset is not None:
            return asset

        index_path = os.path.join(hosting_dir, "index.html")
        if not os.path.isfile(index_path):
            return CONFIG_ERROR.encode("utf-8"), 500, "text/plain"
        with open(index_path, encoding="utf-8") as fh:
            document = fh.read()

        event_id = event_id_from_path(path)
        if event_id and is_crawler(user_agent, crawler_patterns):
            document = _event_preview(document, event_id, lookup_event)

        return document.encode("utf-8"), 200, "text/html"
    except Exception:
        logger.exception("Fatal error serving %s", path)
        return GENERIC_ERROR.encode("utf-8"), 500, "text/plain"
