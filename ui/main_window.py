"""
Main application window for OTPDeck.

Layout
------
┌──────────────────────────────────────────────────┐
│  OTPDeck                 [☀/🌙] [⋯] [+ Add]     │
├──────────────────────────────────────────────────┤
│  🔍 Search accounts…                             │
├──────────────────────────────────────────────────┤
│  ┌────────────────────────────────────────────┐  │
│  │  Issuer                    [Copy] [Delete] │  │
│  │  Account Name                              │  │
│  │  123 456                  ▓▓▓▓░░░   28 s   │  │
│  └────────────────────────────────────────────┘  │
└──────────────────────────────────────────────────┘

Codes are produced by :class:`core.scheduler.AccountCodeScheduler` threads;
the window only reads the published map on a GUI timer.
"""

import logging
from typing import Dict, List, Optional

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QApplication,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMenu,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from core.accounts import AccountService
from core.models import Account, GeneratedCode
from core.scheduler import AccountCodeScheduler
from core.utils import format_otp
from qr.scanner import qr_available
from storage.database import AccountDatabase
from storage.vault import SecretVault
from ui.styles import stylesheet_for

logger = logging.getLogger(__name__)

CLIPBOARD_CLEAR_DELAY_MS = 15_000
UI_REFRESH_MS = 250
_LOW_SECONDS = 5
_REFRESH_INTERVAL_CHOICES = (15, 30, 60)


class _SchedulerBridge(QObject):
    """Re-emits scheduler callbacks (worker threads) as queued Qt signals."""

    error = pyqtSignal(str, str)        # account id, message
    accounts_changed = pyqtSignal(object)


# ── Account card widget ───────────────────────────────────────────────────────

class AccountCard(QFrame):
    """A card that displays one account's code and countdown."""

    copy_requested = pyqtSignal(str)     # emits the OTP code
    delete_requested = pyqtSignal(str)   # emits account id

    def __init__(self, account: Account, show_seconds: bool = True,
                 parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.account = account
        self._code: Optional[GeneratedCode] = None
        self._stale: Optional[GeneratedCode] = None
        self.setObjectName("card")
        self._build_ui()
        self.set_show_seconds(show_seconds)

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setContentsMargins(16, 12, 16, 12)
        root.setSpacing(4)

        top_row = QHBoxLayout()
        self._lbl_issuer = QLabel(self.account.issuer or "—")
        self._lbl_issuer.setObjectName("lbl_issuer")
        top_row.addWidget(self._lbl_issuer)
        top_row.addStretch()

        btn_copy = QPushButton("Copy")
        btn_copy.setObjectName("btn_primary")
        btn_copy.clicked.connect(self._on_copy)
        top_row.addWidget(btn_copy)

        btn_delete = QPushButton("Delete")
        btn_delete.setObjectName("btn_danger")
        btn_delete.clicked.connect(lambda: self.delete_requested.emit(self.account.id))
        top_row.addWidget(btn_delete)
        root.addLayout(top_row)

        self._lbl_name = QLabel(self.account.name)
        self._lbl_name.setObjectName("lbl_account_name")
        root.addWidget(self._lbl_name)

        code_row = QHBoxLayout()
        self._lbl_code = QLabel("— — —")
        self._lbl_code.setObjectName("lbl_code")
        self._lbl_code.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
        code_row.addWidget(self._lbl_code)
        code_row.addStretch()

        self._progress = QProgressBar()
        self._progress.setFixedWidth(100)
        self._progress.setTextVisible(False)
        self._progress.setRange(0, 1000)
        code_row.addWidget(self._progress)

        self._lbl_remaining = QLabel("")
        self._lbl_remaining.setObjectName("lbl_remaining")
        self._lbl_remaining.setFixedWidth(32)
        code_row.addWidget(self._lbl_remaining)
        root.addLayout(code_row)

    # ── Public API ────────────────────────────────────────────────────

    def matches(self, needle: str) -> bool:
        needle = needle.strip().lower()
        return not needle or needle in self.account.name.lower() \
            or needle in self.account.issuer.lower()

    def set_show_seconds(self, show: bool) -> None:
        self._lbl_remaining.setVisible(show)

    def update_account(self, account: Account) -> None:
        self.account = account
        self._lbl_issuer.setText(account.issuer or "—")
        self._lbl_name.setText(account.name)

    def show_code(self, code: Optional[GeneratedCode]) -> None:
        if code is None or code is self._stale:
            return
        self._stale = None
        if code == self._code:
            return
        self._code = code
        self._lbl_code.setText(format_otp(code.code))
        # The bar drains as the window elapses.
        self._progress.setValue(int((1.0 - code.progress) * 1000))
        low = code.remaining_seconds <= _LOW_SECONDS
        if self._progress.property("low") != str(low).lower():
            self._progress.setProperty("low", str(low).lower())
            self._progress.style().unpolish(self._progress)
            self._progress.style().polish(self._progress)
        self._lbl_remaining.setText(f"{code.remaining_seconds}s")

    def show_error(self, stale: Optional[GeneratedCode] = None) -> None:
        """Show ERROR until a code other than ``stale`` is published."""
        self._code = None
        self._stale = stale
        self._lbl_code.setText("ERROR")

    def _on_copy(self) -> None:
        if self._code is not None:
            self.copy_requested.emit(self._code.code)


# ── Main window ───────────────────────────────────────────────────────────────

class MainWindow(QMainWindow):
    """OTPDeck main window."""

    def __init__(self, db: AccountDatabase, vault: SecretVault) -> None:
        super().__init__()
        self._db = db
        self._vault = vault
        self._prefs = db.get_preferences()
        self._cards: Dict[str, AccountCard] = {}
        self._clipboard_clear_timer: Optional[QTimer] = None

        self._bridge = _SchedulerBridge(self)
        self._bridge.error.connect(self._on_code_error)
        self._bridge.accounts_changed.connect(self._sync_cards)
        self._scheduler = AccountCodeScheduler(
            vault, on_error=lambda account_id, exc: self._bridge.error.emit(account_id, str(exc))
        )
        self._service = AccountService(db, vault, self._scheduler)

        self._setup_ui()
        self._apply_theme()
        self._db.subscribe(self._on_accounts_changed)

        self._refresh_timer = QTimer(self)
        self._refresh_timer.timeout.connect(self._refresh_codes)
        self._refresh_timer.start(UI_REFRESH_MS)

    # ── UI construction ───────────────────────────────────────────────

    def _setup_ui(self) -> None:
        self.setWindowTitle("OTPDeck")
        self.setMinimumSize(480, 600)

        central = QWidget()
        self.setCentralWidget(central)
        root = QVBoxLayout(central)
        root.setContentsMargins(0, 0, 0, 0)
        root.setSpacing(0)

        header = QWidget()
        header.setObjectName("header")
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(20, 14, 20, 14)

        title = QLabel("OTPDeck")
        title.setObjectName("lbl_title")
        header_layout.addWidget(title)
        header_layout.addStretch()

        self._btn_theme = QPushButton()
        self._btn_theme.setToolTip("Toggle light/dark mode")
        self._btn_theme.clicked.connect(self._toggle_theme)
        header_layout.addWidget(self._btn_theme)

        btn_menu = QPushButton("⋯")
        btn_menu.setMenu(self._build_settings_menu())
        header_layout.addWidget(btn_menu)

        btn_add = QPushButton("+ Add")
        btn_add.setObjectName("btn_primary")
        btn_add.clicked.connect(self._on_add_account)
        header_layout.addWidget(btn_add)
        root.addWidget(header)

        self._search = QLineEdit()
        self._search.setPlaceholderText("🔍  Search accounts…")
        self._search.textChanged.connect(self._filter_cards)
        search_wrap = QWidget()
        search_layout = QHBoxLayout(search_wrap)
        search_layout.setContentsMargins(20, 8, 20, 8)
        search_layout.addWidget(self._search)
        root.addWidget(search_wrap)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        self._cards_widget = QWidget()
        self._cards_layout = QVBoxLayout(self._cards_widget)
        self._cards_layout.setContentsMargins(16, 16, 16, 16)
        self._cards_layout.setSpacing(10)
        self._empty_lbl = QLabel("No accounts yet.\nClick  + Add  to get started.")
        self._empty_lbl.setObjectName("lbl_issuer")
        self._empty_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._cards_layout.addWidget(self._empty_lbl)
        self._cards_layout.addStretch()
        scroll.setWidget(self._cards_widget)
        root.addWidget(scroll)

        self._status = self.statusBar()

    def _build_settings_menu(self) -> QMenu:
        menu = QMenu(self)

        show_seconds = QAction("Show seconds", self, checkable=True)
        show_seconds.setChecked(self._prefs.show_seconds)
        show_seconds.toggled.connect(self._set_show_seconds)
        menu.addAction(show_seconds)

        haptic = QAction("Feedback on copy", self, checkable=True)
        haptic.setChecked(self._prefs.haptic_feedback)
        haptic.toggled.connect(lambda on: self._set_preference("haptic_feedback", on))
        menu.addAction(haptic)

        interval_menu = menu.addMenu("Refresh interval")
        for seconds in _REFRESH_INTERVAL_CHOICES:
            action = QAction(f"{seconds} s", self, checkable=True)
            action.setChecked(self._prefs.refresh_interval == seconds)
            action.triggered.connect(
                lambda _checked, s=seconds: self._set_preference("refresh_interval", s)
            )
            interval_menu.addAction(action)
        return menu

    # ── Preferences ───────────────────────────────────────────────────

    def _set_preference(self, name: str, value) -> None:
        try:
            self._prefs = self._db.update_preference(name, value)
        except Exception:
            logger.exception("Failed to save preference %s", name)
            self._status.showMessage("Failed to save preference.", 3000)

    def _apply_theme(self) -> None:
        QApplication.instance().setStyleSheet(stylesheet_for(self._prefs.dark_mode))  # type: ignore[union-attr]
        self._btn_theme.setText("☀" if self._prefs.dark_mode else "🌙")

    def _toggle_theme(self) -> None:
        self._set_preference("dark_mode", not self._prefs.dark_mode)
        self._apply_theme()

    def _set_show_seconds(self, show: bool) -> None:
        self._set_preference("show_seconds", show)
        for card in self._cards.values():
            card.set_show_seconds(show)

    # ── Account list ──────────────────────────────────────────────────

    def _on_accounts_changed(self, accounts: List[Account]) -> None:
        """Store listener: keep the scheduler and the cards in step."""
        self._scheduler.reconcile(accounts)
        self._bridge.accounts_changed.emit(accounts)

    def _sync_cards(self, accounts: List[Account]) -> None:
        wanted = {a.id for a in accounts}
        for account_id in [i for i in self._cards if i not in wanted]:
            card = self._cards.pop(account_id)
            self._cards_layout.removeWidget(card)
            card.deleteLater()

        for position, account in enumerate(accounts):
            card = self._cards.get(account.id)
            if card is None:
                card = AccountCard(account, self._prefs.show_seconds)
                card.copy_requested.connect(self._copy_to_clipboard)
                card.delete_requested.connect(self._on_delete_account)
                self._cards[account.id] = card
            else:
                card.update_account(account)
                self._cards_layout.removeWidget(card)
            # Keep recency order; the empty-state label sits at index 0.
            self._cards_layout.insertWidget(position + 1, card)

        self._empty_lbl.setVisible(not self._cards)
        self._filter_cards(self._search.text())

    def _refresh_codes(self) -> None:
        codes = self._scheduler.codes
        for account_id, card in self._cards.items():
            if not card.isHidden():
                card.show_code(codes.get(account_id))

    def _on_code_error(self, account_id: str, message: str) -> None:
        card = self._cards.get(account_id)
        if card is not None:
            card.show_error(self._scheduler.code_for(account_id))
        self._status.showMessage(f"Failed to generate code: {message}", 3000)

    def _filter_cards(self, text: str) -> None:
        for card in self._cards.values():
            card.setVisible(card.matches(text))

    # ── Account actions ───────────────────────────────────────────────

    def _on_add_account(self) -> None:
        from ui.add_account import AddAccountDialog

        dlg = AddAccountDialog(self._service, self, qr_available=qr_available())
        dlg.account_added.connect(
            lambda account: self._status.showMessage(f"Account '{account.name}' added.", 3000)
        )
        dlg.exec()

    def _on_delete_account(self, account_id: str) -> None:
        card = self._cards.get(account_id)
        name = card.account.label if card else account_id
        reply = QMessageBox.question(
            self,
            "Delete Account",
            f"Permanently delete '{name}'?\nThis cannot be undone.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.Cancel,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        try:
            self._service.delete(account_id)
            self._status.showMessage(f"Account '{name}' deleted.", 3000)
        except Exception as exc:
            logger.exception("Failed to delete account")
            QMessageBox.critical(self, "Error", f"Failed to delete account:\n{exc}")

    # ── Clipboard ─────────────────────────────────────────────────────

    def _copy_to_clipboard(self, code: str) -> None:
        clipboard = QApplication.clipboard()
        clipboard.setText(code)
        if self._prefs.haptic_feedback:
            QApplication.beep()
        self._status.showMessage("Code copied! Clearing in 15 s…", CLIPBOARD_CLEAR_DELAY_MS)

        if self._clipboard_clear_timer:
            self._clipboard_clear_timer.stop()
        self._clipboard_clear_timer = QTimer(self)
        self._clipboard_clear_timer.setSingleShot(True)
        self._clipboard_clear_timer.timeout.connect(lambda: self._clear_clipboard(code))
        self._clipboard_clear_timer.start(CLIPBOARD_CLEAR_DELAY_MS)

    @staticmethod
    def _clear_clipboard(code: str) -> None:
        clipboard = QApplication.clipboard()
        # Leave anything the user copied since untouched.
        if clipboard.text() == code:
            clipboard.clear()

    # ── Cleanup ───────────────────────────────────────────────────────

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._refresh_timer.stop()
        self._db.unsubscribe(self._on_accounts_changed)
        self._scheduler.stop(timeout=2.0)
        super().closeEvent(event)
