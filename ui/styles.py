"""
Qt stylesheets for OTPDeck.

Both themes are rendered from one template so widgets look the same apart
from colour.
"""

from string import Template

DARK_PALETTE = {
    "base": "#1e1e2e",
    "surface": "#313244",
    "border": "#45475a",
    "muted": "#7f849c",
    "text": "#cdd6f4",
    "accent": "#89b4fa",
    "accent_hover": "#b4befe",
    "danger": "#f38ba8",
    "header": "#181825",
}

LIGHT_PALETTE = {
    "base": "#eff1f5",
    "surface": "#ffffff",
    "border": "#ccd0da",
    "muted": "#6c6f85",
    "text": "#4c4f69",
    "accent": "#1e66f5",
    "accent_hover": "#7287fd",
    "danger": "#d20f39",
    "header": "#e6e9ef",
}

_TEMPLATE = Template(
    """
QWidget {
    background-color: $base;
    color: $text;
    font-family: "Segoe UI", "SF Pro Display", "Ubuntu", sans-serif;
    font-size: 14px;
}
QWidget#header { background-color: $header; border-bottom: 1px solid $border; }

QPushButton {
    background-color: $surface;
    color: $text;
    border: 1px solid $border;
    border-radius: 8px;
    padding: 6px 14px;
}
QPushButton:hover { border-color: $muted; }
QPushButton#btn_primary { background-color: $accent; color: $base; border: none; font-weight: 700; }
QPushButton#btn_primary:hover { background-color: $accent_hover; }
QPushButton#btn_danger { background: transparent; color: $danger; border: 1px solid $danger; }

QLineEdit, QComboBox, QSpinBox {
    background-color: $surface;
    border: 1px solid $border;
    border-radius: 8px;
    padding: 6px 10px;
}
QLineEdit:focus, QComboBox:focus, QSpinBox:focus { border-color: $accent; }

QFrame#card { background-color: $surface; border: 1px solid $border; border-radius: 12px; }
QFrame#card QLabel { background: transparent; }

QLabel#lbl_title { font-size: 20px; font-weight: 700; }
QLabel#lbl_issuer { color: $muted; font-size: 12px; }
QLabel#lbl_account_name { font-size: 14px; font-weight: 600; }
QLabel#lbl_code { font-family: "JetBrains Mono", "Consolas", monospace; font-size: 28px; color: $accent; }
QLabel#lbl_remaining { color: $muted; font-size: 11px; }
QLabel#lbl_error { color: $danger; }

QProgressBar { background-color: $border; border: none; border-radius: 3px; max-height: 6px; }
QProgressBar::chunk { background-color: $accent; border-radius: 3px; }
QProgressBar[low="true"]::chunk { background-color: $danger; }

QTabWidget::pane { border: 1px solid $border; border-radius: 8px; }
QTabBar::tab { padding: 8px 16px; background: $base; }
QTabBar::tab:selected { color: $accent; border-bottom: 2px solid $accent; }
QScrollArea { border: none; }
"""
)


def build_stylesheet(palette: dict) -> str:
    return _TEMPLATE.substitute(palette)


DARK_STYLESHEET = build_stylesheet(DARK_PALETTE)
LIGHT_STYLESHEET = build_stylesheet(LIGHT_PALETTE)


def stylesheet_for(dark_mode: bool) -> str:
    return DARK_STYLESHEET if dark_mode else LIGHT_STYLESHEET
