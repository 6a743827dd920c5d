"""Tool schema definitions."""

from __future__ import annotations

from typing import Any

NAVIGATE_TOOL: dict[str, Any] = {
    "name": "puppeteer_navigate",
    "description": "Navigate to a URL",
    "inputSchema": {
        "type": "object",
        "properties": {
            "url": {"type": "string"},
        },
        "required": ["url"],
    },
}

SCREENSHOT_TOOL: dict[str, Any] = {
    "name": "puppeteer_screenshot",
    "description": "Take a screenshot of the current page or a specific element",
    "inputSchema": {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Name for the screenshot"},
            "selector": {"type": "string", "description": "CSS selector for element to screenshot"},
            "width": {"type": "number", "description": "Width in pixels (default: 800)"},
            "height": {"type": "number", "description": "Height in pixels (default: 600)"},
        },
        "required": ["name"],
    },
}

CLICK_TOOL: dict[str, Any] = {
    "name": "puppeteer_click",
    "description": "Click an element on the page",
    "inputSchema": {
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector for element to click"},
        },
        "required": ["selector"],
    },
}

FILL_TOOL: dict[str, Any] = {
    "name": "puppeteer_fill",
    "description": "Fill out an input field",
    "inputSchema": {
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector for input field"},
            "value": {"type": "string", "description": "Value to fill"},
        },
        "required": ["selector", "value"],
    },
}

SELECT_TOOL: dict[str, Any] = {
    "name": "puppeteer_select",
    "description": "Select an element on the page with Select tag",
    "inputSchema": {
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector for element to select"},
            "value": {"type": "string", "description": "Value to select"},
        },
        "required": ["selector", "value"],
    },
}

HOVER_TOOL: dict[str, Any] = {
    "name": "puppeteer_hover",
    "description": "Hover an element on the page",
    "inputSchema": {
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector for element to hover"},
        },
        "required": ["selector"],
    },
}

EVALUATE_TOOL: dict[str, Any] = {
    "name": "puppeteer_evaluate",
    "description": "Execute JavaScript in the browser console",
    "inputSchema": {
        "type": "object",
        "properties": {
            "script": {"type": "string", "description": "JavaScript code to execute"},
        },
        "required": ["script"],
    },
}

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    NAVIGATE_TOOL,
    SCREENSHOT_TOOL,
    CLICK_TOOL,
    FILL_TOOL,
    SELECT_TOOL,
    HOVER_TOOL,
    EVALUATE_TOOL,
]
