"""
Conservative HTML minification for prompts.

Shrinks slide HTML before it is embedded in a model prompt without changing
what the slide says: text is never rewritten, image marker comments survive,
and <pre>, <textarea> and <script> bodies are left untouched.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from agents.editing.image_markers import has_markers
from setup_logging_optimized import get_logger

logger = get_logger(__name__)

_PROTECTED_BLOCK_RE = re.compile(r'<(pre|textarea|script)\b[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK_RE = re.compile(r'(<style\b[^>]*>)(.*?)(</style\s*>)', re.IGNORECASE | re.DOTALL)
_STYLE_ATTR_RE = re.compile(r'(?<![-\w])style\s*=\s*(["\'])(.*?)\1', re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r'<!--.*?-->', re.DOTALL)
_CSS_COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
_EMPTY_ATTR_RE = re.compile(r'\s+(?:class|style|title|id)\s*=\s*(?:""|\'\')', re.IGNORECASE)
_HEX_COLOR_RE = re.compile(r'#([0-9a-fA-F])\1([0-9a-fA-F])\2([0-9a-fA-F])\3(?![0-9a-fA-F])')
_PLACEHOLDER = "\x00MINIFY_PROTECTED_{}\x00"
_PLACEHOLDER_RE = re.compile(r'\x00MINIFY_PROTECTED_(\d+)\x00')


@dataclass
class MinifyOptions:
    remove_comments: bool = True
    remove_empty_attributes: bool = True
    collapse_whitespace: bool = True
    minify_css: bool = True
    shorten_hex_colors: bool = True


def _minify_css(css: str, shorten_hex: bool = True) -> str:
    css = _CSS_COMMENT_RE.sub("", css)
    css = re.sub(r'\s+', " ", css)
    css = re.sub(r'\s*([{};,>])\s*', r'\1', css)
    # Only around declaration colons; selector pseudo-classes need their leading space
    css = re.sub(r'([{;])\s*([-\w]+)\s*:\s*', r'\1\2:', css)
    css = css.replace(";}", "}")
    if shorten_hex:
        css = _HEX_COLOR_RE.sub(r'#\1\2\3', css)
    return css.strip()


def _split_declarations(style: str) -> List[str]:
    """Split on ';' outside parentheses and quoted strings, e.g. url(data:image/png;base64,...)."""
    parts = []
    current = []
    depth = 0
    quote = None
    for char in style:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == ";" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def _minify_inline_style(style: str, shorten_hex: bool = True) -> str:
    declarations = []
    for declaration in _split_declarations(style):
        if ":" not in declaration:
            if declaration.strip():
                # Not a declaration we understand; keep the attribute as written
                return style
            continue
        prop, value = declaration.split(":", 1)
        value = re.sub(r'\s+', " ", value.strip())
        if shorten_hex:
            value = _HEX_COLOR_RE.sub(r'#\1\2\3', value)
        declarations.append(f"{prop.strip()}:{value}")
    return ";".join(declarations)


def _keep_comment(comment: str) -> bool:
    return has_markers(comment) or comment.startswith("<!--[if") or comment.startswith("<![endif]")


def minify_html(html: str, options: Optional[MinifyOptions] = None) -> str:
    """Minify HTML conservatively; see module docstring for what is preserved."""
    if not html:
        return html or ""
    options = options or MinifyOptions()

    protected = []

    def _protect(match: re.Match) -> str:
        protected.append(match.group(0))
        return _PLACEHOLDER.format(len(protected) - 1)

    minified = _PROTECTED_BLOCK_RE.sub(_protect, html)

    if options.remove_comments:
        minified = _COMMENT_RE.sub(lambda m: m.group(0) if _keep_comment(m.group(0)) else "", minified)

    if options.minify_css:
        minified = _STYLE_BLOCK_RE.sub(
            lambda m: m.group(1) + _minify_css(m.group(2), options.shorten_hex_colors) + m.group(3),
            minified,
        )
        minified = _STYLE_ATTR_RE.sub(
            lambda m: f'style={m.group(1)}{_minify_inline_style(m.group(2), options.shorten_hex_colors)}{m.group(1)}',
            minified,
        )

    if options.remove_empty_attributes:
        minified = _EMPTY_ATTR_RE.sub("", minified)

    if options.collapse_whitespace:
        # Line breaks between tags are formatting; a plain space between inline tags is content
        minified = re.sub(r'>[ \t]*[\r\n]\s*<', '><', minified)
        minified = re.sub(r'\s+', " ", minified)
        minified = minified.strip()

    return _PLACEHOLDER_RE.sub(lambda m: protected[int(m.group(1))], minified)


def calculate_token_savings(original: str, minified: str) -> Dict[str, float]:
    """Approximate savings at ~4 characters per token."""
    original_length = len(original or "")
    minified_length = len(minified or "")
    saved = original_length - minified_length
    return {
        "original_length": original_length,
        "minified_length": minified_length,
        "saved_chars": saved,
        "saved_percent": round(saved / original_length * 100, 1) if original_length else 0.0,
        "estimated_tokens_saved": max(0, saved) // 4,
    }


def minify_for_ai(html: str) -> str:
    """Default prompt minification, logs the savings."""
    minified = minify_html(html)
    if html:
        savings = calculate_token_savings(html, minified)
        logger.debug(
            f"[MINIFY] {savings['original_length']} -> {savings['minified_length']} chars "
            f"({savings['saved_percent']}%, ~{savings['estimated_tokens_saved']} tokens)"
        )
    return minified
