"""
harvest.scripts
页面端 JS 片段，由 PageBridge 通过 page.evaluate / element.evaluate 执行。

约定：
- 不在 window 上挂任何状态；元素引用表（registry）由 Python 侧以 JSHandle 持有，
  通过参数传入（ref -> WeakRef(el)，el -> ref）。
- 每个片段内部自行 try/catch，单个节点失败不影响整体返回。
"""

CREATE_REGISTRY = "() => ({ next: 1, byRef: new Map(), byEl: new WeakMap() })"

# 单个候选选择器 -> 可滚动元素（自身或最近的可滚动祖先）
FIND_SCROLLER = """
(sel) => {
  const isScrollable = (el) => {
    if (!el) return false;
    const cs = getComputedStyle(el);
    return /(auto|scroll)/.test(cs.overflowY) && el.scrollHeight > el.clientHeight;
  };
  let el = null;
  try { el = document.querySelector(sel); } catch (_) { return null; }
  let n = el;
  while (n && n !== document.documentElement) {
    if (isScrollable(n)) return n;
    n = n.parentElement;
  }
  return null;
}
"""

ROOT_SCROLLER = """
() => {
  const s = document.scrollingElement || document.documentElement;
  if (!s) return null;
  return s.scrollHeight > s.clientHeight ? s : null;
}
"""

SCROLL_METRICS = """
(el) => ({
  top: el.scrollTop || 0,
  height: el.scrollHeight || 0,
  client: el.clientHeight || 0,
  connected: !!el.isConnected
})
"""

# op = { mode: 'top' | 'bottom' | 'by', amount }
SCROLL = """
(el, op) => {
  if (!el || !el.isConnected) return false;
  let delta = 0;
  if (op.mode === 'top') {
    delta = -50;
    el.scrollTop = 0;
  } else if (op.mode === 'bottom') {
    delta = Math.max(50, el.scrollHeight - el.scrollTop);
    el.scrollTop = el.scrollHeight;
  } else {
    delta = op.amount || 0;
    el.scrollTop = Math.max(0, el.scrollTop + delta);
  }
  try { el.dispatchEvent(new WheelEvent('wheel', { deltaY: delta, bubbles: true, cancelable: true })); } catch (_) {}
  try { el.dispatchEvent(new Event('scroll', { bubbles: true })); } catch (_) {}
  return true;
}
"""

# a = { registry, ref, offset }
SCROLL_TO_REF = """
(el, a) => {
  const w = a.registry.byRef.get(a.ref);
  const node = w && w.deref();
  if (!el || !el.isConnected || !node || !node.isConnected) return false;
  let target = 0;
  try {
    const nr = node.getBoundingClientRect();
    const sr = el.getBoundingClientRect();
    target = Math.max(0, nr.top - sr.top + el.scrollTop - a.offset);
  } catch (_) {
    target = Math.max(0, (node.offsetTop || 0) - a.offset);
  }
  // 只改 el.scrollTop，外层祖先不动，保留 offset 余量
  el.scrollTop = target;
  try { el.dispatchEvent(new WheelEvent('wheel', { deltaY: -150, bubbles: true, cancelable: true })); } catch (_) {}
  try { el.dispatchEvent(new Event('scroll', { bubbles: true })); } catch (_) {}
  return true;
}
"""

_FIND_CONTAINER = """
  let container = null;
  for (const s of a.listSelectors) {
    try { container = document.querySelector(s); } catch (_) { container = null; }
    if (container) break;
  }
"""

_MEDIA_OF = """
  const mediaOf = (el) => Array.from(el.querySelectorAll('img, video, source, iframe, embed')).map((m) => ({
    src: m.currentSrc || m.src || m.getAttribute('src') || '',
    srcset: m.srcset || m.getAttribute('srcset') || '',
    poster: m.poster || ''
  }));
"""

# a = { registry, listSelectors, itemSelectors }
COLLECT_ITEMS = (
    """
(a) => {
  const reg = a.registry;
  for (const [r, w] of reg.byRef) { if (!w.deref()) reg.byRef.delete(r); }
"""
    + _FIND_CONTAINER
    + _MEDIA_OF
    + """
  const found = new Set();
  const add = (el) => { if (el) found.add(el); };
  for (const s of a.itemSelectors) {
    try {
      if (container) container.querySelectorAll(s).forEach(add);
      else if (!s.includes(':scope')) document.querySelectorAll(s).forEach(add);
    } catch (_) {}
  }
  // 只保留最外层命中（li 内的 article 不重复计入）
  const nodes = Array.from(found).filter((el) => {
    let p = el.parentElement;
    while (p && p !== container) {
      if (found.has(p)) return false;
      p = p.parentElement;
    }
    return true;
  });
  nodes.sort((x, y) => (x.compareDocumentPosition(y) & Node.DOCUMENT_POSITION_FOLLOWING) ? -1 : 1);
  const items = [];
  for (const el of nodes) {
    try {
      if (!el.isConnected) continue;
      let r = reg.byEl.get(el);
      if (!r) {
        r = reg.next++;
        reg.byEl.set(el, r);
        reg.byRef.set(r, new WeakRef(el));
      }
      items.push({ ref: r, html: el.outerHTML, media: mediaOf(el) });
    } catch (_) {}
  }
  return { items, baseUrl: document.baseURI, container: !!container };
}
"""
)

# a = { listSelectors, boundaryPhrases }
BOUNDARY_PRESENT = (
    """
(a) => {
  const has = (t) => {
    const s = (t || '').toLowerCase();
    return a.boundaryPhrases.some((p) => s.includes(p));
  };
"""
    + _FIND_CONTAINER
    + """
  if (container) {
    for (const child of Array.from(container.children).slice(0, 3)) {
      if (has(child.textContent)) return true;
    }
    if (has(container.textContent)) return true;
  }
  const body = document.body;
  return !!body && has(body.innerText || body.textContent);
}
"""
)

# a = { listSelectors, boundaryPhrases, headerSelectors, avatarSelectors }
CAPTURE_HEADER = (
    """
(a) => {
  const lower = (el) => ((el && el.textContent) || '').toLowerCase();
  const hasPhrase = (el) => { const t = lower(el); return a.boundaryPhrases.some((p) => t.includes(p)); };
  const q = (root, sel) => { try { return sel ? root.querySelector(sel) : null; } catch (_) { return null; } };
  const avatarSel = a.avatarSelectors.join(', ');
  const profileSel = "[class*='profile'], [class*='emptyState'], [class*='empty']";
  const hasAvatar = (el) => !!q(el, avatarSel) || !!q(el, profileSel);
  const mentions = (el, words) => { const t = lower(el); return words.some((w) => t.includes(w)); };
"""
    + _FIND_CONTAINER
    + _MEDIA_OF
    + """
  let found = null;
  let strategy = '';
  if (container) {
    for (const child of Array.from(container.children).slice(0, 5)) {
      if (hasPhrase(child) || (hasAvatar(child) && mentions(child, ['beginning', 'mutual', 'server']))) {
        found = child; strategy = 'container-child'; break;
      }
    }
  }
  if (!found && document.body && hasPhrase(document.body)) {
    let deepest = document.body;
    for (;;) {
      const next = Array.from(deepest.children).find((c) => hasPhrase(c));
      if (!next) break;
      deepest = next;
    }
    let candidate = deepest;
    let parent = deepest.parentElement;
    for (let i = 0; i < 8 && parent; i++) {
      if (hasAvatar(parent)) { candidate = parent; break; }
      parent = parent.parentElement;
    }
    found = candidate; strategy = 'boundary-text';
  }
  if (!found) {
    outer: for (const sel of a.headerSelectors) {
      let list = [];
      try { list = Array.from(document.querySelectorAll(sel)); } catch (_) { continue; }
      for (const el of list) {
        if (mentions(el, ['beginning', 'direct message']) || !!q(el, avatarSel)) {
          found = el; strategy = 'empty-state'; break outer;
        }
      }
    }
  }
  if (!found && avatarSel) {
    const large = Array.from(document.querySelectorAll(avatarSel)).filter((img) => {
      try { const r = img.getBoundingClientRect(); return r.width > 80 && r.height > 80; } catch (_) { return false; }
    });
    if (large.length) {
      let parent = large[0].parentElement;
      for (let i = 0; i < 15 && parent; i++) {
        if (mentions(parent, ['beginning', 'direct message', 'mutual', 'server'])) {
          found = parent; strategy = 'large-avatar'; break;
        }
        parent = parent.parentElement;
      }
    }
  }
  if (!found) return null;
  return { html: found.outerHTML, media: mediaOf(found), strategy, baseUrl: document.baseURI };
}
"""
)

# a = { stabilityMs, maxWaitMs }；rAF 轮询 + setTimeout 兜底，两条退出路径都会 disconnect
WAIT_QUIET = """
(a) => new Promise((resolve) => {
  const start = performance.now();
  let last = start;
  let mutations = 0;
  let done = false;
  const obs = new MutationObserver((records) => { last = performance.now(); mutations += records.length; });
  obs.observe(document, { subtree: true, childList: true, characterData: true, attributes: true });
  const finish = (stable) => {
    if (done) return;
    done = true;
    obs.disconnect();
    clearTimeout(timer);
    resolve({ stable, waitedMs: Math.round(performance.now() - start), mutations });
  };
  const timer = setTimeout(() => finish(false), a.maxWaitMs + 50);
  const tick = () => {
    if (done) return;
    const now = performance.now();
    if (now - last >= a.stabilityMs) return finish(true);
    if (now - start >= a.maxWaitMs) return finish(false);
    requestAnimationFrame(tick);
  };
  requestAnimationFrame(tick);
})
"""

LOCATE_CONTAINER = (
    """
(a) => {
"""
    + _FIND_CONTAINER
    + """
  return container || document.querySelector('main');
}
"""
)

# a = { htmls, scroller, spacerPx }
REPLACE_CHILDREN = """
async (el, a) => {
  const wait = (ms) => new Promise((r) => setTimeout(r, ms));
  Array.from(el.children).forEach((c) => c.remove());
  const tpl = document.createElement('template');
  let inserted = 0;
  for (const html of a.htmls) {
    tpl.innerHTML = (html || '').trim();
    const node = tpl.content.firstElementChild;
    if (!node) continue;
    el.appendChild(document.importNode(node, true));
    inserted++;
  }
  if (a.spacerPx > 0) {
    const spacer = document.createElement('div');
    spacer.style.height = a.spacerPx + 'px';
    spacer.style.width = '100%';
    spacer.style.flexShrink = '0';
    spacer.setAttribute('data-harvest-spacer', 'true');
    el.appendChild(spacer);
  }
  const scroller = (a.scroller && a.scroller.isConnected) ? a.scroller : el.closest("[class*='scroller']");
  if (scroller) {
    try {
      const ss = getComputedStyle(scroller);
      if (ss.overflowY === 'hidden' || ss.overflowY === 'clip') scroller.style.overflowY = 'auto';
      const cs = getComputedStyle(el);
      if (cs.maxHeight && cs.maxHeight !== 'none') el.style.maxHeight = 'none';
      void el.offsetHeight;
      await wait(100);
      scroller.scrollTop = scroller.scrollHeight;
      await wait(100);
      const maxScroll = scroller.scrollHeight - scroller.clientHeight;
      if (scroller.scrollTop < maxScroll - 10) scroller.scrollTop = scroller.scrollHeight;
    } catch (_) {}
  }
  return inserted;
}
"""
