"""Amazon Associates tagging for outbound shopping links."""
import logging
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from .config import settings

logger = logging.getLogger(__name__)

VALID_AMAZON_DOMAINS = (
    "amazon.com",
    "amazon.co.uk",
    "amazon.de",
    "amazon.fr",
    "amazon.it",
    "amazon.es",
    "amazon.ca",
    "amazon.co.jp",
    "amazon.in",
    "amazon.com.au",
    "amazon.com.br",
    "amazon.com.mx",
)


def get_affiliate_tag() -> str:
    return (settings.AMAZON_ASSOCIATE_TAG or "").strip()


def is_affiliate_configured() -> bool:
    tag = get_affiliate_tag()
    return bool(tag) and tag.lower() != "none"


def is_valid_amazon_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    host = parsed.hostname.lower()
    return any(host == domain or host.endswith("." + domain) for domain in VALID_AMAZON_DOMAINS)


def add_affiliate_tag(url: str) -> str:
    """
    Returns `url` with the configured associate tag set.
    Non-Amazon links, links already carrying our tag, and calls made while
    no tag is configured come back unchanged.
    """
    if not url or not is_affiliate_configured() or not is_valid_amazon_url(url):
        return url

    tag = get_affiliate_tag()
    parsed = urlparse(url)
    query = parse_qsl(parsed.query, keep_blank_values=True)
    if any(key == "tag" and value == tag for key, value in query):
        return url

    query = [(key, value) for key, value in query if key != "tag"]
    query.append(("tag", tag))
    tagged = urlunparse(parsed._replace(query=urlencode(query)))
    logger.debug(f"Tagged affiliate URL: {tagged}")
    return tagged
