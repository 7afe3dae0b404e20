"""
Add account dialog: manual entry (with QR preview) or otpauth URI import.
"""

import logging
from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QColor, QImage, QPainter, QPixmap
from PyQt6.QtWidgets import (
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from core.accounts import AccountService
from core.hotp import Algorithm
from core.utils import sanitize_secret
from qr.parser import build_otpauth_uri

logger = logging.getLogger(__name__)

_QR_SIZE = 200
_MANUAL_TAB, _URI_TAB = 0, 1


def render_qr(text: str, size: int = _QR_SIZE) -> QPixmap:
    """Render ``text`` as a black-on-white QR code pixmap."""
    import qrcode

    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, border=4)
    qr.add_data(text)
    qr.make(fit=True)
    matrix = qr.get_matrix()
    cell = max(1, size // len(matrix))
    image = QImage(cell * len(matrix), cell * len(matrix), QImage.Format.Format_RGB32)
    image.fill(Qt.GlobalColor.white)
    painter = QPainter(image)
    black = QColor(0, 0, 0)
    for r, row in enumerate(matrix):
        for c, dark in enumerate(row):
            if dark:
                painter.fillRect(c * cell, r * cell, cell, cell, black)
    painter.end()
    return QPixmap.fromImage(image)


class AddAccountDialog(QDialog):
    """
    Collects a new account and hands it to :class:`core.accounts.AccountService`.

    Emits :attr:`account_added` with the stored :class:`core.models.Account`.
    """

    account_added = pyqtSignal(object)

    def __init__(
        self,
        service: AccountService,
        parent: Optional[QWidget] = None,
        qr_available: bool = False,
    ) -> None:
        super().__init__(parent)
        self._service = service
        self._qr_available = qr_available
        self._setup_ui()
        self._generate_secret()

    # ── UI construction ───────────────────────────────────────────────

    def _setup_ui(self) -> None:
        self.setWindowTitle("Add Account")
        self.setMinimumWidth(460)
        self.setModal(True)

        root = QVBoxLayout(self)
        root.setSpacing(16)
        root.setContentsMargins(24, 24, 24, 24)

        self._tabs = QTabWidget()
        self._tabs.addTab(self._build_manual_tab(), "Manual Entry")
        self._tabs.addTab(self._build_uri_tab(), "QR / URI")
        root.addWidget(self._tabs)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.button(QDialogButtonBox.StandardButton.Save).setObjectName("btn_primary")
        buttons.accepted.connect(self._on_save)
        buttons.rejected.connect(self.reject)
        root.addWidget(buttons)

    def _build_manual_tab(self) -> QWidget:
        tab = QWidget()
        form = QFormLayout(tab)
        form.setSpacing(12)

        self._edit_name = QLineEdit()
        self._edit_name.setPlaceholderText("e.g. user@example.com")
        form.addRow("Account Name *", self._edit_name)

        self._edit_issuer = QLineEdit()
        self._edit_issuer.setPlaceholderText("e.g. GitHub")
        form.addRow("Issuer", self._edit_issuer)

        self._edit_secret = QLineEdit()
        self._edit_secret.setPlaceholderText("Base32 secret key")
        btn_generate = QPushButton("⟳")
        btn_generate.setFixedWidth(32)
        btn_generate.setToolTip("Generate a new random secret")
        btn_generate.clicked.connect(self._generate_secret)
        secret_row = QHBoxLayout()
        secret_row.addWidget(self._edit_secret)
        secret_row.addWidget(btn_generate)
        form.addRow("Secret *", secret_row)

        self._combo_algorithm = QComboBox()
        for alg in Algorithm:
            self._combo_algorithm.addItem(alg.value, alg.value)
        form.addRow("Algorithm", self._combo_algorithm)

        self._spin_digits = QSpinBox()
        self._spin_digits.setRange(6, 8)
        self._spin_digits.setValue(6)
        form.addRow("Digits", self._spin_digits)

        self._spin_period = QSpinBox()
        self._spin_period.setRange(1, 300)
        self._spin_period.setValue(30)
        self._spin_period.setSuffix(" s")
        form.addRow("Period", self._spin_period)

        self._lbl_qr = QLabel()
        self._lbl_qr.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._lbl_qr.setFixedSize(_QR_SIZE, _QR_SIZE)
        self._lbl_qr.setToolTip("Scan this QR code with any authenticator app")
        form.addRow("QR Code", self._lbl_qr)

        for edit in (self._edit_name, self._edit_issuer, self._edit_secret):
            edit.textChanged.connect(self._refresh_qr)
        self._combo_algorithm.currentIndexChanged.connect(self._refresh_qr)
        self._spin_digits.valueChanged.connect(self._refresh_qr)
        self._spin_period.valueChanged.connect(self._refresh_qr)
        return tab

    def _build_uri_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)
        layout.setSpacing(12)

        layout.addWidget(QLabel("Paste otpauth:// URI"))
        self._edit_uri = QLineEdit()
        self._edit_uri.setPlaceholderText("otpauth://totp/Issuer:account?secret=…")
        layout.addWidget(self._edit_uri)

        if self._qr_available:
            btn_scan = QPushButton("📷  Scan QR Code (Webcam)")
            btn_scan.clicked.connect(self._scan_webcam)
            layout.addWidget(btn_scan)

            btn_file = QPushButton("🖼  Load QR from Image File")
            btn_file.clicked.connect(self._scan_file)
            layout.addWidget(btn_file)

        layout.addStretch()
        return tab

    # ── Slots ─────────────────────────────────────────────────────────

    def _generate_secret(self) -> None:
        self._edit_secret.setText(self._service.generate_secret())

    def _refresh_qr(self) -> None:
        secret = sanitize_secret(self._edit_secret.text())
        if not secret:
            self._lbl_qr.clear()
            return
        uri = build_otpauth_uri(
            self._edit_name.text().strip() or "account",
            self._edit_issuer.text().strip(),
            secret,
            self._combo_algorithm.currentData(),
            self._spin_digits.value(),
            self._spin_period.value(),
        )
        try:
            self._lbl_qr.setPixmap(render_qr(uri))
        except ImportError:
            self._lbl_qr.setText("QR preview needs 'qrcode'")

    def _scan_webcam(self) -> None:
        from ui.qr_scan_dialog import QRScanDialog

        dlg = QRScanDialog(self)
        if dlg.exec() == QDialog.DialogCode.Accepted and dlg.result_uri:
            self._edit_uri.setText(dlg.result_uri)

    def _scan_file(self) -> None:
        from qr.scanner import scan_image_file

        path, _ = QFileDialog.getOpenFileName(
            self, "Open QR Image", "", "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tiff)"
        )
        if not path:
            return
        try:
            uri = scan_image_file(path)
        except (RuntimeError, OSError, ValueError) as exc:
            QMessageBox.critical(self, "Error", str(exc))
            return
        if uri:
            self._edit_uri.setText(uri)
        else:
            QMessageBox.warning(self, "Not Found", "No QR code found in the image.")

    def _on_save(self) -> None:
        try:
            if self._tabs.currentIndex() == _URI_TAB:
                account = self._service.add_from_uri(self._edit_uri.text())
            else:
                account = self._service.add_manual(
                    name=self._edit_name.text(),
                    issuer=self._edit_issuer.text(),
                    secret=self._edit_secret.text(),
                    algorithm=self._combo_algorithm.currentData(),
                    digits=self._spin_digits.value(),
                    period=self._spin_period.value(),
                )
        except (ValueError, RuntimeError) as exc:
            QMessageBox.critical(self, "Failed to add account", str(exc))
            return

        self.account_added.emit(account)
        self.accept()
