# --- Global log sanitizer to stop HTML body spam --------------------------------
# WordPress and Shopify error pages come back as full HTML documents; both the
# log filter and the gateways' error messages use summarize_html() on them.
import logging, re

_HTML_SIG_RE = re.compile(r'(?is)<!DOCTYPE html|<html[^>]*>')
_TITLE_RE    = re.compile(r'(?is)<title[^>]*>(.*?)</title>')
_TAG_RE      = re.compile(r'(?is)<[^>]+>')
_SCRIPT_RE   = re.compile(r'(?is)<(script|style)[^>]*>.*?</\1>')

def _strip_tags(s: str) -> str:
    s = _SCRIPT_RE.sub('', s)
    s = _TAG_RE.sub(' ', s)
    return re.sub(r'\s+', ' ', s).strip()

def looks_like_html(s: str) -> bool:
    return isinstance(s, str) and bool(_HTML_SIG_RE.search(s))

def summarize_html(s: str, limit: int = 200) -> str:
    title = None
    m = _TITLE_RE.search(s)
    if m:
        title = _strip_tags(m.group(1))
    preview = title or _strip_tags(s)[:limit]
    return f"{preview} [HTML {len(s)} chars trimmed]"

class HtmlTrimFilter(logging.Filter):
    """If a log message contains a large HTML blob, replace it with a short summary."""
    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        if len(msg) > 200 and looks_like_html(msg):
            record.msg = summarize_html(msg)
            record.args = ()
        return True

def install_html_filter(names=("", "uvicorn", "uvicorn.error")) -> None:
    """Install once on common loggers (root + uvicorn family)."""
    for name in names:
        lg = logging.getLogger(name)
        if not any(isinstance(f, HtmlTrimFilter) for f in lg.filters):
            lg.addFilter(HtmlTrimFilter())
# --------------------------------------------------------------------------------
