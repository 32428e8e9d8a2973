"""
harvest.transcript
降级导出：采集或合并失败时，把缓存记录按时间序拼成一份独立的 HTML。
"""

from __future__ import annotations

import html as _html
from typing import Iterable

from .cache import ItemRecord

_CSS = (
    "html,body{min-height:100%;} "
    "body{background:#111;color:#ddd;font-family:sans-serif;margin:0;overflow:auto} "
    "a{color:#9ab} img{max-width:100%} *{box-sizing:border-box} "
    "pre,code{white-space:pre-wrap} ol{margin:0;padding:0}"
)


def render_transcript(records: Iterable[ItemRecord], title: str = "Captured Chat Transcript") -> str:
    """records 需已排好序（见 Merger.plan）。"""
    items = "".join(
        f'<li style="padding:8px 0;border-bottom:1px solid rgba(255,255,255,0.06)">{r.html}</li>'
        for r in records
    )
    safe_title = _html.escape(title or "Captured Chat Transcript")
    body = (
        '<div id="harvest-root" style="min-height:100vh;overflow:auto">'
        '<section id="harvest-transcript" style="max-width:1000px;margin:0 auto;padding:8px">'
        '<div style="position:sticky;top:0;background:#111;padding:8px 0;font-weight:bold;z-index:1">'
        f"{safe_title}</div>"
        f'<ol style="list-style:none;padding:0;margin:0">{items}</ol>'
        "</section></div>"
    )
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<title>{safe_title}</title>"
        '<meta name="viewport" content="width=device-width,initial-scale=1">'
        f"<style>{_CSS}</style></head><body>{body}</body></html>"
    )
