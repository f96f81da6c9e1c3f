"""
theme.py
======================

Material 風のテーマ定義と、Streamlit への適用。

配色の決め方（優先順）:
1. ダイナミックカラーが要求され、ホストが対応していればアクセントカラーから生成
2. ダークモードなら組み込みのダークパレット
3. それ以外はライトパレット

タイポグラフィと角丸は固定値。
"""

from __future__ import annotations

import colorsys
from dataclasses import dataclass, replace
from typing import Optional

import streamlit as st

from .platform import PlatformCapabilities


@dataclass(frozen=True)
class ColorScheme:
    primary: str
    on_primary: str
    primary_container: str
    secondary: str
    background: str
    on_background: str
    surface: str
    on_surface: str
    surface_variant: str
    outline: str
    error: str
    correct: str
    incorrect: str
    is_dark: bool = False
    is_dynamic: bool = False


@dataclass(frozen=True)
class Typography:
    font_family: str = (
        '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, '
        '"Helvetica Neue", Arial, "Noto Sans JP", sans-serif'
    )
    body_size: str = "1rem"
    title_size: str = "1.25rem"
    label_size: str = "0.8rem"
    line_height: float = 1.6


@dataclass(frozen=True)
class Shapes:
    small: str = "4px"
    medium: str = "12px"
    large: str = "16px"


# ----------------------------------------------------------------------
#  組み込みパレット（Material 3 baseline）
# ----------------------------------------------------------------------
LIGHT_COLOR_SCHEME = ColorScheme(
    primary="#6750a4",
    on_primary="#ffffff",
    primary_container="#eaddff",
    secondary="#625b71",
    background="#fffbfe",
    on_background="#1c1b1f",
    surface="#fffbfe",
    on_surface="#1c1b1f",
    surface_variant="#e7e0ec",
    outline="#79747e",
    error="#b3261e",
    correct="#2e7d32",
    incorrect="#b3261e",
)

DARK_COLOR_SCHEME = ColorScheme(
    primary="#d0bcff",
    on_primary="#381e72",
    primary_container="#4f378b",
    secondary="#ccc2dc",
    background="#1c1b1f",
    on_background="#e6e1e5",
    surface="#1c1b1f",
    on_surface="#e6e1e5",
    surface_variant="#49454f",
    outline="#938f99",
    error="#f2b8b5",
    correct="#81c784",
    incorrect="#f2b8b5",
    is_dark=True,
)

TYPOGRAPHY = Typography()
SHAPES = Shapes()


# ----------------------------------------------------------------------
#  ダイナミックカラー
# ----------------------------------------------------------------------
def _parse_hex(color: str) -> tuple:
    c = color.strip().lstrip("#")
    if len(c) == 3:
        c = "".join(ch * 2 for ch in c)
    if len(c) != 6:
        raise ValueError(f"invalid color: {color!r}")
    return tuple(int(c[i:i + 2], 16) / 255.0 for i in (0, 2, 4))


def _tone(hue: float, saturation: float, lightness: float) -> str:
    r, g, b = colorsys.hls_to_rgb(hue, lightness, saturation)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def dynamic_color_scheme(seed: str, dark: bool) -> ColorScheme:
    """
    ホストのアクセントカラー seed から配色を作る。

    色相は seed のまま、明度だけライト / ダーク用に振り分ける。
    """
    h, _, s = colorsys.rgb_to_hls(*_parse_hex(seed))
    s = max(s, 0.35)
    neutral = min(s, 0.08)

    if dark:
        scheme = ColorScheme(
            primary=_tone(h, s, 0.80),
            on_primary=_tone(h, s, 0.20),
            primary_container=_tone(h, s, 0.30),
            secondary=_tone(h, s * 0.35, 0.78),
            background=_tone(h, neutral, 0.11),
            on_background=_tone(h, neutral, 0.90),
            surface=_tone(h, neutral, 0.11),
            on_surface=_tone(h, neutral, 0.90),
            surface_variant=_tone(h, neutral * 2, 0.30),
            outline=_tone(h, neutral, 0.60),
            error=DARK_COLOR_SCHEME.error,
            correct=DARK_COLOR_SCHEME.correct,
            incorrect=DARK_COLOR_SCHEME.incorrect,
            is_dark=True,
        )
    else:
        scheme = ColorScheme(
            primary=_tone(h, s, 0.40),
            on_primary="#ffffff",
            primary_container=_tone(h, s, 0.90),
            secondary=_tone(h, s * 0.35, 0.40),
            background=_tone(h, neutral, 0.99),
            on_background=_tone(h, neutral, 0.11),
            surface=_tone(h, neutral, 0.99),
            on_surface=_tone(h, neutral, 0.11),
            surface_variant=_tone(h, neutral * 2, 0.90),
            outline=_tone(h, neutral, 0.48),
            error=LIGHT_COLOR_SCHEME.error,
            correct=LIGHT_COLOR_SCHEME.correct,
            incorrect=LIGHT_COLOR_SCHEME.incorrect,
        )
    return replace(scheme, is_dynamic=True)


def resolve_color_scheme(
    capabilities: PlatformCapabilities,
    dynamic_color: bool = True,
    dark_theme: Optional[bool] = None,
) -> ColorScheme:
    """優先順位に従って配色を 1 つ選ぶ。dark_theme 省略時はホストの状態に従う。"""
    dark = capabilities.dark_mode if dark_theme is None else dark_theme

    if dynamic_color and capabilities.supports_dynamic_color:
        return dynamic_color_scheme(capabilities.dynamic_color_seed, dark)
    if dark:
        return DARK_COLOR_SCHEME
    return LIGHT_COLOR_SCHEME


# ----------------------------------------------------------------------
#  Streamlit への適用
# ----------------------------------------------------------------------
def is_system_in_dark_theme() -> bool:
    """Streamlit が報告するブラウザ側のテーマ。取れない場合はライト扱い。"""
    theme = getattr(st.context, "theme", None)
    return getattr(theme, "type", None) == "dark"


def generate_css(
    scheme: ColorScheme,
    typography: Typography = TYPOGRAPHY,
    shapes: Shapes = SHAPES,
) -> str:
    """配色に応じたグローバル CSS を生成する。"""

    return f"""
    <style>
    .stApp {{
        background: {scheme.background};
        color: {scheme.on_background};
        font-family: {typography.font_family};
    }}

    .mq-question-box {{
        background: {scheme.surface};
        color: {scheme.on_surface};
        padding: 1rem;
        border-radius: {shapes.medium};
        border: 1px solid {scheme.outline};
        font-size: {typography.body_size};
        line-height: {typography.line_height};
        margin: 0.5rem 0 0.75rem 0;
    }}

    .mq-title {{
        font-weight: 600;
        font-size: {typography.title_size};
        color: {scheme.primary};
    }}

    .mq-tags {{
        display: flex;
        flex-wrap: wrap;
        gap: 0.25rem;
        font-size: {typography.label_size};
    }}

    .mq-tag {{
        padding: 0.1rem 0.5rem;
        border-radius: 999px;
        background: {scheme.surface_variant};
        border: 1px solid {scheme.outline};
    }}

    .mq-answer {{
        padding: 0.6rem 0.9rem;
        border-radius: {shapes.small};
        border: 1px solid {scheme.outline};
        margin-bottom: 0.4rem;
    }}

    .mq-answer-correct {{
        background: {scheme.correct}22;
        border-color: {scheme.correct};
    }}

    .mq-answer-incorrect {{
        background: {scheme.incorrect}22;
        border-color: {scheme.incorrect};
    }}

    .mq-explanation-box {{
        padding: 0.9rem;
        border-radius: {shapes.medium};
        background: {scheme.primary_container};
        line-height: {typography.line_height};
    }}

    .mq-image {{
        max-width: 100%;
        border-radius: {shapes.small};
    }}

    .mq-crossfade {{
        animation: mq-fade-in 0.3s ease-out;
    }}

    @keyframes mq-fade-in {{
        from {{ opacity: 0; }}
        to {{ opacity: 1; }}
    }}
    </style>
    """


def app_theme(
    capabilities: PlatformCapabilities,
    dynamic_color: bool = True,
    dark_theme: Optional[bool] = None,
) -> ColorScheme:
    """
    配色を決めて CSS をページに注入し、決まった ColorScheme を返す。

    Streamlit のスクリプトは毎回上から評価されるので、ページ描画の先頭で呼ぶ。
    """
    if dark_theme is None:
        dark_theme = is_system_in_dark_theme()
    scheme = resolve_color_scheme(capabilities, dynamic_color=dynamic_color, dark_theme=dark_theme)
    st.markdown(generate_css(scheme), unsafe_allow_html=True)
    return scheme
