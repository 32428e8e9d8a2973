"""
harvest.media
消息项 HTML 中的媒体地址修正：懒加载属性提升为真实属性，相对地址转绝对地址。

live_media 是页面端按 `img, video, source, iframe, embed` 文档顺序采到的
{src, srcset, poster}（src 为 currentSrc/src 属性解析后的值），与克隆 HTML 中
同一选择器的命中顺序一一对应。
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import Tag

from . import constants as C
from .classifier import first_element

_KEEP_SCHEMES = ("data:", "blob:", "javascript:")


def absolutize(url: str, base_url: Optional[str]) -> str:
    u = (url or "").strip()
    if not u or not base_url or u.lower().startswith(_KEEP_SCHEMES):
        return u
    return urljoin(base_url, u)


def absolutize_srcset(srcset: str, base_url: Optional[str]) -> str:
    """逐项转换 srcset 中的 URL，保留宽度/密度描述符。"""
    if not srcset or "data:" in srcset:
        return srcset
    parts: List[str] = []
    for candidate in srcset.split(","):
        candidate = candidate.strip()
        if not candidate:
            continue
        bits = candidate.split(None, 1)
        url = absolutize(bits[0], base_url)
        parts.append(url if len(bits) == 1 else f"{url} {bits[1]}")
    return ", ".join(parts)


def _usable(url: Any) -> Optional[str]:
    u = str(url or "").strip()
    if not u or u == "about:blank":
        return None
    return u


def _promote(el: Tag, live: Dict[str, Any], base_url: Optional[str]) -> None:
    lazy = next((el.get(a) for a in C.LAZY_SRC_ATTRS if _usable(el.get(a))), None)
    src = _usable(lazy) or _usable(live.get("src")) or _usable(el.get("src"))
    if src:
        el["src"] = absolutize(src, base_url)
    elif el.get("src") == "about:blank":
        del el["src"]
    for attr in C.LAZY_SRC_ATTRS:
        if el.has_attr(attr):
            del el[attr]

    srcset = _usable(el.get("data-srcset")) or _usable(live.get("srcset")) or _usable(el.get("srcset"))
    if srcset:
        el["srcset"] = absolutize_srcset(srcset, base_url)
    if el.has_attr("data-srcset"):
        del el["data-srcset"]

    if el.name == "video":
        poster = _usable(el.get("poster")) or _usable(live.get("poster"))
        if poster:
            el["poster"] = absolutize(poster, base_url)


def resolve_media(html: str, base_url: Optional[str], live_media: Optional[Sequence[Dict[str, Any]]] = None) -> str:
    """返回修正后的 HTML；无法解析时原样返回。"""
    root = first_element(html)
    if root is None:
        return html
    live = list(live_media or [])
    for i, el in enumerate(root.select(C.MEDIA_SELECTOR)):
        _promote(el, live[i] if i < len(live) and isinstance(live[i], dict) else {}, base_url)
    return str(root)
