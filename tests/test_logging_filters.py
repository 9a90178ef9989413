import logging

from stocksync.logging_filters import HtmlTrimFilter, install_html_filter, looks_like_html, summarize_html

PAGE = "<!DOCTYPE html><html><head><title>Service Unavailable</title><style>p{}</style></head>" + "<p>x</p>" * 100 + "</html>"


def test_detects_and_summarizes_html():
    assert looks_like_html(PAGE)
    assert not looks_like_html('{"message": "nope"}')
    summary = summarize_html(PAGE)
    assert summary.startswith("Service Unavailable")
    assert f"[HTML {len(PAGE)} chars trimmed]" in summary


def test_filter_rewrites_long_html_messages():
    record = logging.LogRecord("uvicorn.error", logging.ERROR, __file__, 1, "body: %s", (PAGE,), None)
    assert HtmlTrimFilter().filter(record)
    assert "<html" not in record.getMessage()

    short = logging.LogRecord("uvicorn.error", logging.INFO, __file__, 1, "ok", (), None)
    HtmlTrimFilter().filter(short)
    assert short.getMessage() == "ok"


def test_install_is_idempotent():
    name = "stocksync.test.filters"
    install_html_filter((name,))
    install_html_filter((name,))
    assert sum(isinstance(f, HtmlTrimFilter) for f in logging.getLogger(name).filters) == 1
