"""
Master password dialog: creates the vault password on first run and
unlocks the vault afterwards.
"""

from typing import Optional

from PyQt6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QLabel,
    QLineEdit,
    QVBoxLayout,
    QWidget,
)

MIN_PASSWORD_LENGTH = 8


class UnlockDialog(QDialog):
    """Prompt for the master password; :attr:`password` is set on accept."""

    def __init__(
        self,
        parent: Optional[QWidget] = None,
        is_new: bool = False,
        message: str = "",
    ) -> None:
        super().__init__(parent)
        self._is_new = is_new
        self.password: Optional[str] = None
        self._setup_ui(message)

    def _setup_ui(self, message: str) -> None:
        title = "Create Master Password" if self._is_new else "Unlock OTPDeck"
        self.setWindowTitle(title)
        self.setMinimumWidth(380)
        self.setModal(True)

        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(28, 28, 28, 28)

        title_lbl = QLabel(title)
        title_lbl.setObjectName("lbl_title")
        layout.addWidget(title_lbl)

        info = QLabel(
            "This password encrypts your secrets and cannot be recovered."
            if self._is_new
            else "Enter your master password to unlock the vault."
        )
        info.setWordWrap(True)
        info.setObjectName("lbl_issuer")
        layout.addWidget(info)

        self._edit_pw = self._password_field("Master password")
        layout.addWidget(self._edit_pw)

        self._edit_confirm: Optional[QLineEdit] = None
        if self._is_new:
            self._edit_confirm = self._password_field("Confirm master password")
            layout.addWidget(self._edit_confirm)

        self._lbl_error = QLabel(message)
        self._lbl_error.setObjectName("lbl_error")
        self._lbl_error.setWordWrap(True)
        layout.addWidget(self._lbl_error)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        ok = buttons.button(QDialogButtonBox.StandardButton.Ok)
        ok.setObjectName("btn_primary")
        ok.setText("Create" if self._is_new else "Unlock")
        buttons.accepted.connect(self._on_accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _password_field(self, placeholder: str) -> QLineEdit:
        edit = QLineEdit()
        edit.setEchoMode(QLineEdit.EchoMode.Password)
        edit.setPlaceholderText(placeholder)
        edit.returnPressed.connect(self._on_accept)
        return edit

    def _on_accept(self) -> None:
        pw = self._edit_pw.text()
        if self._is_new and len(pw) < MIN_PASSWORD_LENGTH:
            self._lbl_error.setText(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
            )
            return
        if self._edit_confirm is not None and pw != self._edit_confirm.text():
            self._lbl_error.setText("Passwords do not match.")
            self._edit_confirm.clear()
            return
        if not pw:
            return
        self.password = pw
        self.accept()
