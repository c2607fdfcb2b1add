# compmatch/utils/urls.py
from __future__ import annotations

import re
from typing import Iterable, List, Optional
from urllib.parse import unquote, urljoin, urlparse, urlunparse

_EXT_RE = re.compile(r"\.(html?|php|aspx?|jsp)$", re.IGNORECASE)
_PRODUCT_ID_RE = re.compile(r"^(p|dp|ip|item|product)$", re.IGNORECASE)


def domain_of(url: str) -> str:
    """
    Bare host of a URL, lower-cased, without ``www.`` and port.

    Accepts bare domains too ("www.shop.com" -> "shop.com").
    """
    if not url:
        return ""
    u = str(url).strip()
    if "://" not in u:
        u = "http://" + u
    host = (urlparse(u).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def host_matches(host: str, domain: str) -> bool:
    """True if host is ``domain`` or one of its subdomains."""
    host = host.lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def resolve(base_url: str, ref: Optional[str]) -> str:
    """Absolute form of ``ref`` relative to the page it was found on."""
    if not ref:
        return ""
    ref = ref.strip()
    if ref.startswith("//"):
        scheme = urlparse(base_url).scheme or "https"
        return f"{scheme}:{ref}"
    return urljoin(base_url, ref)


def canon_url(u: str) -> str:
    """
    Canonical key for de-duplicating result URLs.

    Drops fragment and trailing slash, lower-cases the host and strips
    ``www.``. Query strings are kept since many shops put the product id
    there.
    """
    if not u:
        return ""
    p = urlparse(str(u).strip())
    host = (p.netloc or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = p.path.rstrip("/") or "/"
    return urlunparse((p.scheme.lower() or "https", host, path, "", p.query, ""))


def dedupe_urls(urls: Iterable[str]) -> List[str]:
    """Preserve first-seen order."""
    seen = set()
    out: List[str] = []
    for u in urls:
        key = canon_url(u)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(u)
    return out


def title_from_url(url: str, max_segments: int = 2) -> str:
    """
    Human-ish title from the last path segments of a URL.

    https://shop.com/kitchen/acme-blender_500w.html -> "kitchen acme blender 500w"
    Pure-numeric segments and short id markers (``/p/``, ``/dp/``) are skipped.
    """
    if not url:
        return ""
    parts = [unquote(seg) for seg in urlparse(url).path.split("/") if seg]
    parts = [p for p in parts if not p.isdigit() and not _PRODUCT_ID_RE.match(p)]
    if not parts:
        return ""
    picked = parts[-max_segments:]
    words = []
    for seg in picked:
        seg = _EXT_RE.sub("", seg)
        seg = re.sub(r"[-_+]+", " ", seg)
        words.append(seg.strip())
    return " ".join(w for w in words if w)
