"""
In-page JavaScript used by :mod:`guardr.browser.page_host`.

``HELPERS`` installs ``window.__guardr`` once per document: element
refs, snapshots, visibility, first-seen stamping, a mutation counter
and the auto-run watch hook.  It is registered as an init script and
also prefixed to every evaluation, so documents that loaded before
registration still get it.
"""

from __future__ import annotations

import json

from guardr.consent import constants

_HELPERS_TEMPLATE = r"""
(() => {
  if (window.__guardr) return;

  const TOKENS = __TOKENS__;
  const CONTROL_SELECTOR = 'button, a, summary, [role="button"], [role="tab"], [role="link"], '
    + 'input[type="button"], input[type="submit"], [aria-expanded], [onclick]';
  const TOGGLE_SELECTOR = 'input[type="checkbox"], [role="switch"], [role="checkbox"]';
  const LOCK_CLASSES = ['no-scroll', 'noscroll', 'modal-open', 'overflow-hidden', 'disable-scroll', 'scroll-lock'];
  const CONSENT_TEXT = /cookie|consent|privacy|gdpr|datenschutz|cookies/i;

  const firstSeen = new WeakMap();
  let nextRef = 1;
  let mutations = 0;
  let watching = false;
  let lastNotify = 0;
  let loadTime = null;
  let pendingCapture = null;

  const now = () => Date.now() / 1000;
  const className = (el) => (typeof el.className === 'string' ? el.className : '');
  const text = (el, limit) => ((el && (el.innerText || el.textContent)) || '').replace(/\s+/g, ' ').trim().slice(0, limit);
  const isToggle = (el) => el.matches(TOGGLE_SELECTOR);

  const boxVisible = (el) => {
    if (!el || !el.isConnected) return false;
    const style = getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden' || parseFloat(style.opacity) === 0) return false;
    const rect = el.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0;
  };

  const labelFor = (el) => el.closest('label')
    || (el.id ? document.querySelector(`label[for="${CSS.escape(el.id)}"]`) : null);

  // Styled switches hide the input behind a visible label.
  const isVisible = (el) => boxVisible(el) || (!!el && el.isConnected && isToggle(el) && boxVisible(labelFor(el)));

  const stamp = (el) => {
    if (!firstSeen.has(el) && isVisible(el)) firstSeen.set(el, now());
    return firstSeen.get(el);
  };

  const refOf = (el) => {
    let ref = el.getAttribute('data-guardr-ref');
    if (!ref) {
      ref = 'g' + (nextRef++);
      el.setAttribute('data-guardr-ref', ref);
    }
    return ref;
  };
  const byRef = (ref) => document.querySelector(`[data-guardr-ref="${ref}"]`);

  const checkedOf = (el) => {
    if (el.tagName === 'INPUT') return !!el.checked;
    const state = el.getAttribute('aria-checked');
    return state === null ? null : state === 'true';
  };

  const associated = (el) => {
    const parts = [];
    const ids = el.getAttribute('aria-labelledby');
    if (ids) ids.split(/\s+/).forEach((id) => { const t = document.getElementById(id); if (t) parts.push(text(t, 200)); });
    const label = labelFor(el);
    if (label) parts.push(text(label, 200));
    return parts.filter(Boolean).join(' ').slice(0, 200);
  };

  const containerText = (el) => {
    let node = el.parentElement;
    for (let i = 0; node && i < 4; i++, node = node.parentElement) {
      const t = text(node, 400);
      if (t.length >= 3) return t;
    }
    return '';
  };

  const wouldNavigate = (el) => {
    const tag = el.tagName.toLowerCase();
    if (tag === 'button' || el.type === 'submit' || el.type === 'button') return false;
    if (el.hasAttribute('onclick')) return false;
    if (el.getAttribute('role') === 'button' && !el.hasAttribute('href')) return false;
    const href = el.getAttribute('href');
    if (href === null) return false;
    const trimmed = href.trim();
    return !(trimmed === '' || trimmed.startsWith('#') || /^javascript:\s*(void\s*\(?\s*0?\s*\)?)?\s*;?\s*$/i.test(trimmed));
  };

  const scopeOf = (el) => {
    const controls = el.getAttribute('aria-controls');
    if (controls) {
      const target = document.getElementById(controls.split(/\s+/)[0]);
      if (target) return refOf(target);
    }
    if (el.tagName === 'SUMMARY' && el.parentElement) return refOf(el.parentElement);
    return null;
  };

  const snapshot = (el) => {
    const style = getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const z = parseInt(style.zIndex, 10);
    const toggle = isToggle(el);
    const expanded = el.getAttribute('aria-expanded');
    const isInput = el.tagName === 'INPUT';
    return {
      ref: refOf(el),
      tag: el.tagName.toLowerCase(),
      role: el.getAttribute('role') || '',
      input_type: isInput ? (el.type || '') : '',
      text: isInput && !toggle ? (el.value || '') : text(el, 2000),
      aria_label: el.getAttribute('aria-label') || '',
      title: el.getAttribute('title') || '',
      associated_text: associated(el),
      container_text: toggle ? containerText(el) : '',
      id_tokens: [el.id || '', className(el)].filter(Boolean),
      visible: isVisible(el),
      position: style.position,
      z_index: Number.isFinite(z) ? z : 0,
      width: rect.width,
      height: rect.height,
      disabled: !!(el.disabled || el.getAttribute('aria-disabled') === 'true'),
      checked: toggle ? checkedOf(el) : null,
      is_toggle: toggle,
      aria_modal: el.getAttribute('aria-modal') === 'true',
      in_nav: !!el.closest('nav, [role="navigation"]'),
      would_navigate: wouldNavigate(el),
      active: el.getAttribute('aria-selected') === 'true' || el.getAttribute('aria-current') === 'true'
        || /\b(active|selected|current)\b/.test(className(el)),
      expanded: expanded === null
        ? (el.tagName === 'SUMMARY' && el.parentElement ? !!el.parentElement.open : null)
        : expanded === 'true',
      scope_ref: scopeOf(el),
      first_seen: stamp(el) || now(),
    };
  };

  const hasToken = (el) => {
    const ids = `${el.id || ''} ${className(el)}`.toLowerCase();
    return TOKENS.some((t) => ids.includes(t));
  };

  const isCandidate = (el) => {
    const style = getComputedStyle(el);
    const z = parseInt(style.zIndex, 10);
    const dialog = el.tagName === 'DIALOG' || ['dialog', 'alertdialog'].includes(el.getAttribute('role'))
      || el.getAttribute('aria-modal') === 'true';
    const overlay = style.position === 'fixed' || style.position === 'sticky'
      || (style.position === 'absolute' && Number.isFinite(z) && z > 0);
    return (dialog || overlay || hasToken(el)) && boxVisible(el) && text(el, 20).length > 0;
  };

  const candidates = () => Array.from(document.querySelectorAll('body *')).filter(isCandidate).slice(0, 150);

  const scoped = (scopeRef, selector, limit) => {
    const root = scopeRef ? byRef(scopeRef) : document;
    if (!root) return [];
    return Array.from(root.querySelectorAll(selector))
      .filter((el) => scopeRef || isVisible(el))
      .slice(0, limit);
  };

  const hide = (ref) => {
    const el = byRef(ref);
    if (!el) return false;
    el.style.setProperty('display', 'none', 'important');
    el.setAttribute('aria-hidden', 'true');
    const vw = window.innerWidth;
    const vh = window.innerHeight;
    for (const node of document.querySelectorAll('body > *')) {
      const style = getComputedStyle(node);
      const rect = node.getBoundingClientRect();
      if (style.position === 'fixed' && rect.width >= vw * 0.9 && rect.height >= vh * 0.9 && text(node, 10).length === 0) {
        node.style.setProperty('display', 'none', 'important');
      }
    }
    for (const node of [document.documentElement, document.body]) {
      if (!node) continue;
      node.style.setProperty('overflow', 'auto', 'important');
      node.style.removeProperty('position');
      node.classList.remove(...LOCK_CLASSES);
    }
    return !isVisible(el);
  };

  const observer = new MutationObserver((records) => {
    mutations++;
    if (!watching || typeof window.__guardrNotify !== 'function') return;
    const t = Date.now();
    if (t - lastNotify < 500) return;
    for (const record of records) {
      for (const node of record.addedNodes) {
        if (node.nodeType !== 1) continue;
        if (hasToken(node) || node.tagName === 'DIALOG' || ['dialog', 'alertdialog'].includes(node.getAttribute('role'))
            || CONSENT_TEXT.test(text(node, 500))) {
          lastNotify = t;
          window.__guardrNotify();
          return;
        }
      }
    }
  });
  observer.observe(document.documentElement || document, { childList: true, subtree: true, attributes: true });

  const markLoaded = () => { if (loadTime === null) loadTime = now(); };
  if (document.readyState === 'complete') {
    const nav = performance.getEntriesByType('navigation')[0];
    loadTime = nav && nav.loadEventEnd ? (performance.timeOrigin + nav.loadEventEnd) / 1000 : now();
  } else {
    window.addEventListener('load', markLoaded, { once: true });
  }

  // Stamp overlay-like elements as they become visible.
  const startedAt = Date.now();
  const sampler = setInterval(() => {
    if (document.body) candidates().forEach(stamp);
    if (Date.now() - startedAt > 90000) clearInterval(sampler);
  }, 1000);

  window.__guardr = {
    now,
    loadTime: () => (loadTime === null ? now() : loadTime),
    mutations: () => mutations,
    byRef,
    isVisible: (ref) => isVisible(byRef(ref)),
    snapshot,
    candidates: () => candidates().map(snapshot),
    controls: (scopeRef) => scoped(scopeRef, CONTROL_SELECTOR, 400).filter((el) => !isToggle(el)).map(snapshot),
    toggles: (scopeRef) => scoped(scopeRef, TOGGLE_SELECTOR, 500).map(snapshot),
    readChecked: (ref) => { const el = byRef(ref); return el ? checkedOf(el) : null; },
    forceChecked: (ref, value) => {
      const el = byRef(ref);
      if (!el) return false;
      if (el.tagName === 'INPUT') el.checked = value;
      else el.setAttribute('aria-checked', String(value));
      el.dispatchEvent(new Event('input', { bubbles: true }));
      el.dispatchEvent(new Event('change', { bubbles: true }));
      return checkedOf(el) === value;
    },
    activate: (ref) => { const el = byRef(ref); if (!el) return false; el.click(); return true; },
    hide,
    captureClick: (timeoutMs) => new Promise((resolve) => {
      let timer = null;
      const finish = (value) => {
        document.removeEventListener('click', handler, true);
        clearTimeout(timer);
        pendingCapture = null;
        resolve(value);
      };
      const handler = (ev) => {
        const target = ev.target && ev.target.closest ? (ev.target.closest(CONTROL_SELECTOR) || ev.target) : null;
        if (!target) return;
        ev.preventDefault();
        ev.stopPropagation();
        finish(snapshot(target));
      };
      if (pendingCapture) pendingCapture();
      pendingCapture = () => finish(null);
      timer = setTimeout(() => finish(null), timeoutMs);
      document.addEventListener('click', handler, true);
    }),
    cancelCapture: () => { if (pendingCapture) pendingCapture(); },
    watch: () => { watching = true; },
    unwatch: () => { watching = false; },
  };
})();
"""

HELPERS = _HELPERS_TEMPLATE.replace("__TOKENS__", json.dumps(list(constants.IDENTIFIER_TOKENS)))

DETECT_CMPS = r"""
(signatures) => {
  const found = [];
  for (const sig of signatures) {
    const byGlobal = sig.globals.some((g) => typeof window[g] !== 'undefined');
    const bySelector = sig.selectors.some((s) => { try { return !!document.querySelector(s); } catch (e) { return false; } });
    const byCookie = sig.cookies.some((c) => document.cookie.includes(c + '='));
    if (byGlobal || bySelector || byCookie) found.push(sig.name);
  }
  return found;
}
"""

GENERIC_PRESENT = r"""
(selectors) => selectors.some((s) => { try { return !!document.querySelector(s); } catch (e) { return false; } })
"""

TCF_DATA = r"""
() => new Promise((resolve) => {
  if (typeof window.__tcfapi !== 'function') { resolve(null); return; }
  const timer = setTimeout(() => resolve(null), 1500);
  try {
    window.__tcfapi('getTCData', 2, (data, ok) => {
      clearTimeout(timer);
      if (!ok || !data) { resolve(null); return; }
      resolve({
        cmpId: data.cmpId || null,
        gdprApplies: data.gdprApplies,
        purpose: {
          consents: (data.purpose && data.purpose.consents) || {},
          legitimateInterests: (data.purpose && data.purpose.legitimateInterests) || {},
        },
      });
    });
  } catch (e) {
    clearTimeout(timer);
    resolve(null);
  }
})
"""

# Navigation-safety check run against a locator before clicking it.
IS_SAFE_TO_CLICK = r"""
el => {
  const tag = el.tagName.toLowerCase();
  if (tag === 'button' || el.type === 'submit' || el.type === 'button') return true;
  if (el.hasAttribute('onclick')) return true;
  if (el.getAttribute('role') === 'button' && !el.hasAttribute('href')) return true;
  const href = el.getAttribute('href');
  if (href === null || href === undefined) return true;
  const trimmed = href.trim();
  return trimmed === '' || trimmed.startsWith('#') || /^javascript:\s*(void\s*\(?\s*0?\s*\)?)?\s*;?\s*$/i.test(trimmed);
}
"""

# Automation-signal masking applied to every page of the session.
STEALTH = r"""
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-GB', 'en-US', 'en'] });
if (!window.chrome) {
  window.chrome = { runtime: {} };
}
"""
