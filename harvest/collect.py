"""
Harvest | Python + Playwright 虚拟列表聊天记录采集脚本

接口：
    collect(url: str, out_root: str = "workspace/data", ...) -> str | dict

产物目录：<out_root>/<domain_sanitized>/<YYYYMMDDHHMMSS>/
    - dom.html         （合并完成后的整页 HTML，交给外部归档工具使用）
    - records.json     （按时间序排列的采集记录：key/order/sequence/html）
    - transcript.html  （采集或合并失败时的降级导出）
    - meta.json        （元信息：URL/状态/计数/停止原因/warnings/耗时）

流程：打开页面（本地启动或 CDP 接管已登录的浏览器）-> 可选就绪选择器/人工验证
-> acquire（滚动采集）-> merge（按时间序重建列表）-> capture（默认写 page.content()）。

需要浏览器内核：`python -m playwright install chromium`。
"""

from __future__ import annotations

import json
import os
import time
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from .acquisition import AcquireResult, acquire
from .browser import open_page
from .config import AcquireConfig, SelectorConfig
from .constants import ARTIFACTS, HARVEST_FORMAT_VERSION
from .errors import HarvestError
from .merger import Merger, MergeResult
from .session import HarvestSession
from .transcript import render_transcript
from .utils import (
    ensure_unique_dir,
    load_json_config,
    sanitize_domain,
    timestamp_yyyymmddhhmmss,
    validate_url,
    write_json,
    write_text,
)


def capture_dom(session: HarvestSession, out_dir: str) -> str:
    """默认的整页捕获：写出当前文档 HTML，返回文件路径。"""
    path = os.path.join(out_dir, ARTIFACTS["dom_html"])
    write_text(path, session.bridge.content())
    return path


def _base_meta(url: str, domain_key: str, ts: str, started_epoch: float) -> Dict[str, Any]:
    return {
        "url": url,
        "domain": urlparse(url).netloc,
        "domain_sanitized": domain_key,
        "timestamp": ts,
        "harvest_format_version": HARVEST_FORMAT_VERSION,
        "tool": "playwright-python",
        "started_epoch": started_epoch,
    }


def collect(
    url: str,
    out_root: str = "workspace/data",
    timeout_ms: int = 45000,
    *,
    acquire_config: Optional[AcquireConfig] = None,
    selectors: Optional[SelectorConfig] = None,
    raise_on_error: bool = False,
    nav_wait_until: str = "domcontentloaded",
    ready_selector: Optional[str] = None,
    ready_selector_timeout_ms: int = 15000,
    human_verify: bool = False,
    headless: bool = False,
    cdp_url: Optional[str] = None,
    reuse_current_page: bool = False,
    device: Optional[str] = None,
    viewport: Any = None,
    storage_state: Optional[str] = None,
    capture: Optional[Callable[[HarvestSession, str], str]] = capture_dom,
    return_info: bool = False,
    verbose: bool = True,
) -> str | Dict[str, Any]:
    """采集 url 对应的聊天页面并写出产物，返回产物目录（或 return_info 时返回信息字典）。"""

    def _v(msg: str) -> None:
        if verbose:
            print(f"[harvest] {msg}")

    started_epoch = time.time()
    ts = timestamp_yyyymmddhhmmss()
    domain_key = sanitize_domain(url)
    out_dir = ensure_unique_dir(os.path.join(out_root, domain_key, ts))
    _v(f"out_dir={out_dir}")

    meta = _base_meta(url, domain_key, ts, started_epoch)
    warnings: List[Dict[str, Any]] = []
    artifacts: Dict[str, Optional[str]] = {}
    acq: Optional[AcquireResult] = None
    mres: Optional[MergeResult] = None
    status = "ok"
    error: Optional[HarvestError] = None

    try:
        validate_url(url)
        with open_page(
            url,
            headless=headless,
            timeout_ms=timeout_ms,
            wait_until=nav_wait_until,
            cdp_url=cdp_url,
            device=device,
            viewport=viewport,
            storage_state=storage_state,
            reuse_current_page=reuse_current_page,
        ) as (page, launch_warnings):
            warnings.extend(launch_warnings)
            meta["final_url"] = page.url

            if ready_selector:
                try:
                    page.wait_for_selector(ready_selector, state="visible", timeout=max(1, int(ready_selector_timeout_ms)))
                except Exception as _rse:
                    warnings.append({"code": "READY_SELECTOR_TIMEOUT", "stage": "navigate", "selector": ready_selector, "error": str(_rse)})

            # 人工验证/登录：暂停直到回车（建议有头模式）
            if human_verify:
                print("[INFO] human_verify: 请在浏览器窗口完成登录/验证并打开目标会话，完成后回到终端按回车继续……", flush=True)
                try:
                    input()
                except EOFError:
                    page.wait_for_timeout(10000)

            session = HarvestSession.for_page(page, selectors, verbose=verbose)
            try:
                acq = acquire(session, acquire_config)
                _v(f"acquire: ok={acq.ok} loaded={acq.loaded_count} reason={acq.stop_reason or acq.error}")

                merger = Merger(session)
                ordered = merger.plan(session.cache.snapshot())
                records_path = os.path.join(out_dir, ARTIFACTS["records"])
                write_json(records_path, [r.to_dict() for r in ordered])
                artifacts["records"] = records_path

                if acq.ok:
                    mres = merger.merge()
                    _v(f"merge: ok={mres.ok} inserted={mres.inserted_count}/{mres.total_count}")
                if acq.ok and mres is not None and mres.ok and capture is not None:
                    try:
                        artifacts["dom_html"] = capture(session, out_dir)
                    except Exception as ce:
                        warnings.append({"code": "CAPTURE_ERROR", "stage": "capture", "error": str(ce)})
                else:
                    status = "partial"
                if status == "partial" or "dom_html" not in artifacts:
                    transcript_path = os.path.join(out_dir, ARTIFACTS["transcript"])
                    title = session.bridge.title() or "Captured Chat Transcript"
                    write_text(transcript_path, render_transcript(ordered, title))
                    artifacts["transcript"] = transcript_path
                    status = "partial"
            finally:
                warnings.extend(session.warnings)
                session.close()
    except HarvestError as he:
        status = "failed"
        error = he
        _v(f"error: {he}")

    meta.update(
        {
            "status": status,
            "acquire": acq.to_dict() if acq else None,
            "merge": mres.to_dict() if mres else None,
            "config": {
                "acquire": (acquire_config or AcquireConfig()).__dict__,
                "selectors": (selectors or SelectorConfig()).__dict__,
            },
            "artifacts": {k: os.path.basename(v) for k, v in artifacts.items() if v},
            "warnings": warnings,
            "finished_epoch": time.time(),
        }
    )
    if error is not None:
        meta.update({"error_code": error.code, "error_stage": error.stage, "error": error.message})
    write_json(os.path.join(out_dir, ARTIFACTS["meta"]), meta)

    if error is not None and raise_on_error:
        raise error
    if return_info:
        return {"out_dir": out_dir, **meta}
    return out_dir


def _cli() -> int:
    import argparse

    p = argparse.ArgumentParser(description="Harvest a virtualized chat history using Playwright.")
    p.add_argument("url", help="Chat URL, e.g. https://discord.com/channels/@me/<id>")
    p.add_argument("--out-root", default="workspace/data", help="Output root directory (default: workspace/data)")
    p.add_argument("--timeout-ms", type=int, default=45000, help="Navigation timeout in ms")
    p.add_argument("--raise-on-error", action="store_true", help="Raise HarvestError on fatal errors")
    p.add_argument("--config", type=str, default=None, help="Path to JSON config file ({acquire: {...}, selectors: {...}})")
    p.add_argument("--wait-until", type=str, default="domcontentloaded", choices=["domcontentloaded", "load", "networkidle", "commit"])
    p.add_argument("--ready-selector", type=str, default=None, help="Wait for this selector visible before harvesting")
    p.add_argument("--ready-selector-timeout-ms", type=int, default=15000)
    p.add_argument("--human-verify", action="store_true", help="Pause after navigation to log in / pass verification")
    p.add_argument("--headless", action="store_true", help="Run browser headless (default: headed)")
    p.add_argument("--cdp-url", type=str, default=None, help="Attach to a running Chrome, e.g. http://127.0.0.1:9222")
    p.add_argument("--reuse-current-page", action="store_true", help="With --cdp-url: harvest the already open page without navigating")
    p.add_argument("--device", type=str, default=None, help="Playwright device descriptor name")
    p.add_argument("--viewport", type=str, default=None, help="Viewport as WxH, e.g. 1280x900")
    p.add_argument("--storage-state", type=str, default=None, help="Playwright storage_state JSON with login cookies")
    # 采集参数
    p.add_argument("--max-items", type=int, default=0, help="Stop once this many items are cached (0 = unbounded)")
    p.add_argument("--stability-window-ms", type=int, default=1200)
    p.add_argument("--no-growth-limit", type=int, default=15)
    p.add_argument("--no-stop-at-top", dest="stop_at_top", action="store_false", help="Stop on no-growth instead of reaching the top")
    p.set_defaults(stop_at_top=True)
    p.add_argument("--max-iterations", type=int, default=2000)
    p.add_argument("--return-info", action="store_true", help="Print result info as JSON")
    p.add_argument("--no-verbose", dest="verbose", action="store_false", help="Disable verbose logging")
    p.set_defaults(verbose=True)
    args = p.parse_args()

    cfg = load_json_config(args.config)
    # 优先级：JSON 配置 > 环境变量 HARVEST_<NAME> > CLI/默认值
    cli_acquire = AcquireConfig(
        max_items=args.max_items or None,
        stability_window_ms=args.stability_window_ms,
        no_growth_limit=args.no_growth_limit,
        stop_at_top=args.stop_at_top,
        max_iterations=args.max_iterations,
    )
    acquire_config = AcquireConfig.from_env(cli_acquire).with_overrides(cfg.get("acquire"))
    selectors = SelectorConfig.from_mapping(cfg.get("selectors") if isinstance(cfg.get("selectors"), dict) else {})

    result = collect(
        args.url,
        args.out_root,
        args.timeout_ms,
        acquire_config=acquire_config,
        selectors=selectors,
        raise_on_error=args.raise_on_error,
        nav_wait_until=cfg.get("nav_wait_until", args.wait_until),
        ready_selector=cfg.get("ready_selector", args.ready_selector),
        ready_selector_timeout_ms=cfg.get("ready_selector_timeout_ms", args.ready_selector_timeout_ms),
        human_verify=cfg.get("human_verify", args.human_verify),
        headless=cfg.get("headless", args.headless),
        cdp_url=cfg.get("cdp_url", args.cdp_url),
        reuse_current_page=cfg.get("reuse_current_page", args.reuse_current_page),
        device=cfg.get("device", args.device),
        viewport=cfg.get("viewport", args.viewport),
        storage_state=cfg.get("storage_state", args.storage_state),
        return_info=args.return_info,
        verbose=cfg.get("verbose", args.verbose),
    )
    if args.return_info:
        print(json.dumps(result, ensure_ascii=False, indent=2, default=str))
    else:
        print(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(_cli())
