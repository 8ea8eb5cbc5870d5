"""Default caption presentation and built-in style templates.

WHY: New captions need a complete style and position before the user has
touched anything, and users pick from a handful of ready-made looks far
more often than they tweak individual fields. Centralizing these as
importable constants lets the timeline apply a template by id without
knowing its contents.

HOW: DEFAULT_STYLE and DEFAULT_POSITION are frozen IR instances. Each
template maps an id to a display name and a partial style dict, which is
merged over the caption's current style when applied.

RULES:
- Templates are partial styles — fields they omit keep their current value
- Template styles use a bilingual (Latin + Arabic) font stack
- Templates are frozen constants — never mutate them at runtime
"""

from typing import Any, Dict

from reel_timeline.core.ir import CaptionStyle, Padding, Position

DEFAULT_STYLE = CaptionStyle()
DEFAULT_POSITION = Position(x=540, y=1500)  # center-bottom for 9:16

FONT_STACK_AR_EN = 'Inter, "Noto Sans Arabic", system-ui, sans-serif'

TEMPLATE_CLASSIC: Dict[str, Any] = {
    "font_size": 50,
    "font_family": FONT_STACK_AR_EN,
    "font_weight": "600",
    "color": "#FFFFFF",
    "background_color": "rgba(0, 0, 0, 0.78)",
    "text_align": "center",
    "padding": Padding(top=14, right=24, bottom=14, left=24),
    "max_width": 820,
    "letter_spacing": 0.5,
    "line_height": 1.25,
}

TEMPLATE_MINIMAL: Dict[str, Any] = {
    "font_size": 46,
    "font_family": FONT_STACK_AR_EN,
    "color": "#FFFFFF",
    "background_color": "transparent",
    "text_align": "center",
    "stroke_color": "#000000",
    "stroke_width": 2.5,
    "padding": Padding(top=8, right=16, bottom=8, left=16),
    "max_width": 800,
    "letter_spacing": 0,
    "line_height": 1.3,
}

TEMPLATE_BOLD: Dict[str, Any] = {
    "font_size": 54,
    "font_family": FONT_STACK_AR_EN,
    "font_weight": "bold",
    "color": "#FFFFFF",
    "background_color": "rgba(0, 0, 0, 0.85)",
    "text_align": "center",
    "stroke_color": "#000000",
    "stroke_width": 2,
    "padding": Padding(top=16, right=28, bottom=16, left=28),
    "max_width": 840,
    "letter_spacing": 0.5,
    "line_height": 1.2,
}

TEMPLATE_HIGHLIGHT: Dict[str, Any] = {
    "font_size": 48,
    "font_family": FONT_STACK_AR_EN,
    "font_weight": "bold",
    "color": "#1a1a1a",
    "background_color": "#FFE135",
    "text_align": "center",
    "padding": Padding(top=12, right=22, bottom=12, left=22),
    "max_width": 800,
}

TEMPLATE_KARAOKE: Dict[str, Any] = {
    "font_size": 52,
    "font_family": FONT_STACK_AR_EN,
    "font_weight": "bold",
    "color": "#FFFFFF",
    "background_color": "transparent",
    "text_align": "center",
    "stroke_color": "#000000",
    "stroke_width": 2,
    "karaoke": True,
    "karaoke_active_color": "#FFE135",
}

# Template lookup by id: id -> (display name, partial style)
STYLE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "default-classic": {"name": "Classic", "style": TEMPLATE_CLASSIC},
    "default-minimal": {"name": "Minimal", "style": TEMPLATE_MINIMAL},
    "default-bold": {"name": "Bold", "style": TEMPLATE_BOLD},
    "default-highlight": {"name": "Highlight", "style": TEMPLATE_HIGHLIGHT},
    "default-karaoke": {"name": "Karaoke", "style": TEMPLATE_KARAOKE},
}
