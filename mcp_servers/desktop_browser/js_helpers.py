"""JavaScript snippets evaluated in the page.

Each builder returns a self-invoking expression; arguments are embedded with
``json.dumps`` so selectors and values are always valid JS string literals.
"""

from __future__ import annotations

import json
import re

_ELEMENT_EXISTS_JS = "(() => !!document.querySelector(__SELECTOR__))()"

_ELEMENT_CENTER_JS = """
(() => {
    const el = document.querySelector(__SELECTOR__);
    if (!el) return null;
    try {
        el.scrollIntoView({ behavior: 'instant', block: 'center', inline: 'center' });
    } catch (e) {
        // ignore
    }
    const r = el.getBoundingClientRect();
    if (!r.width && !r.height) return { hidden: true };
    return { x: r.x + r.width / 2, y: r.y + r.height / 2 };
})()
"""

_ELEMENT_PAGE_RECT_JS = """
(() => {
    const el = document.querySelector(__SELECTOR__);
    if (!el) return null;
    try {
        el.scrollIntoView({ behavior: 'instant', block: 'center', inline: 'center' });
    } catch (e) {
        // ignore
    }
    const r = el.getBoundingClientRect();
    return {
        x: r.x + window.scrollX,
        y: r.y + window.scrollY,
        width: r.width,
        height: r.height,
    };
})()
"""

_FOCUS_JS = """
(() => {
    const el = document.querySelector(__SELECTOR__);
    if (!el) return false;
    try {
        el.scrollIntoView({ behavior: 'instant', block: 'center', inline: 'center' });
    } catch (e) {
        // ignore
    }
    el.focus();
    return true;
})()
"""

_SELECT_JS = """
(() => {
    const el = document.querySelector(__SELECTOR__);
    if (!el) return { error: 'notFound' };
    if (String(el.tagName || '').toLowerCase() !== 'select') return { error: 'notSelect' };
    const values = new Set([__VALUE__]);
    for (const option of el.options) {
        option.selected = values.has(option.value);
        if (option.selected && !el.multiple) break;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    el.dispatchEvent(new Event('change', { bubbles: true }));
    return {};
})()
"""

# Runs the user's script with console methods temporarily wrapped so their
# output can be returned alongside the result.
_EVALUATE_WITH_CONSOLE_JS = """
(async (script) => {
    const logs = [];
    const originalConsole = { ...console };
    ['log', 'info', 'warn', 'error'].forEach(method => {
        console[method] = (...args) => {
            logs.push(`[${method}] ${args.join(' ')}`);
            originalConsole[method](...args);
        };
    });
    try {
        const result = await eval(script);
        return { result, logs, isUndefined: result === undefined };
    } finally {
        Object.assign(console, originalConsole);
    }
})(__SCRIPT__)
"""


_PLACEHOLDER = re.compile(r"__([A-Z]+)__")


def _fill(template: str, **values: str) -> str:
    # Single pass: an inserted literal is never re-scanned for placeholders.
    return _PLACEHOLDER.sub(lambda m: json.dumps(values[m.group(1).lower()]), template)


def element_exists_js(selector: str) -> str:
    return _fill(_ELEMENT_EXISTS_JS, selector=selector)


def element_center_js(selector: str) -> str:
    return _fill(_ELEMENT_CENTER_JS, selector=selector)


def element_page_rect_js(selector: str) -> str:
    return _fill(_ELEMENT_PAGE_RECT_JS, selector=selector)


def focus_js(selector: str) -> str:
    return _fill(_FOCUS_JS, selector=selector)


def select_js(selector: str, value: str) -> str:
    return _fill(_SELECT_JS, selector=selector, value=value)


def evaluate_with_console_js(script: str) -> str:
    return _fill(_EVALUATE_WITH_CONSOLE_JS, script=script)
