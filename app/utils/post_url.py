import re
from typing import Optional

# https://x.com/<user>/status/<id>, anything after the id is ignored
POST_URL_RE = re.compile(r"^https://(twitter\.com|x\.com)/(\w+)/status/(\d+)")


def canonicalize_post_url(raw_url: Optional[str]) -> Optional[str]:
    """Canonical form of a social post URL, or ``None`` if it is not one.

    Query string, fragment and any trailing path are dropped so the same
    post always maps to the same key.
    """
    if not raw_url:
        return None
    match = POST_URL_RE.match(raw_url.strip())
    if not match:
        return None
    domain, username, post_id = match.groups()
    return f"https://{domain}/{username}/status/{post_id}"
