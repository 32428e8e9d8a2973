"""
harvest.context_utils
为 Playwright 构建 BrowserContext 参数的工具，解耦 collect 主流程。
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple


def make_context_args(
    pw,
    device_name: Optional[str],
    viewport_tuple: Optional[Tuple[int, int]],
    default_viewport: Dict[str, int],
    warnings: List[dict],
    *,
    storage_state: Optional[str] = None,
    locale: Optional[str] = None,
) -> Dict[str, Any]:
    """根据设备名/自定义视口/登录态文件生成 new_context 的参数字典。

    规则：
    - device_name 在 pw.devices 中存在时以其描述为基底，否则记 warning。
    - viewport_tuple 显式提供时覆盖设备视口；最终未设置则回退 default_viewport。
    - storage_state 指向的文件存在时用于恢复登录态（聊天页面通常需要登录）。
    - 任何异常会记录到 warnings 而不抛出。
    """
    args: Dict[str, Any] = {}
    try:
        if device_name:
            descriptor = None
            try:
                descriptor = pw.devices.get(device_name)
            except Exception:
                warnings.append({"code": "DEVICE_ACCESS_ERROR", "stage": "launch", "device": device_name})
            if descriptor:
                args.update(descriptor)
            else:
                warnings.append({"code": "DEVICE_NOT_FOUND", "stage": "launch", "device": device_name})
        if viewport_tuple:
            args["viewport"] = {"width": int(viewport_tuple[0]), "height": int(viewport_tuple[1])}
        if storage_state:
            if os.path.exists(storage_state):
                args["storage_state"] = storage_state
            else:
                warnings.append({"code": "STORAGE_STATE_MISSING", "stage": "launch", "path": storage_state})
        if locale:
            args["locale"] = locale
    except Exception as e:
        warnings.append({"code": "CONTEXT_ARGS_ERROR", "stage": "launch", "error": str(e)})
    if "viewport" not in args:
        args["viewport"] = dict(default_viewport)
    return args
