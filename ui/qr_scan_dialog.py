"""
Live webcam QR-code scan dialog.
"""

import logging
from typing import Optional

from PyQt6.QtCore import Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QImage, QPixmap
from PyQt6.QtWidgets import QDialog, QLabel, QPushButton, QVBoxLayout, QWidget

from qr.scanner import QRScanner

logger = logging.getLogger(__name__)

_PREVIEW_SIZE = (380, 280)


class QRScanDialog(QDialog):
    """Shows a live webcam feed; :attr:`result_uri` holds the scanned URI."""

    # Carries the URI from the scanner thread to the GUI thread.
    _found = pyqtSignal(str)

    def __init__(self, parent: Optional[QWidget] = None, camera_index: int = 0) -> None:
        super().__init__(parent)
        self.result_uri: Optional[str] = None
        self._camera_index = camera_index
        self._cap = None
        self._found.connect(self._finish)
        self._setup_ui()
        self._scanner = QRScanner(on_result=self._found.emit, camera_index=camera_index)
        self._preview_timer = QTimer(self)
        self._preview_timer.timeout.connect(self._update_preview)
        self._start()

    def _setup_ui(self) -> None:
        self.setWindowTitle("Scan QR Code")
        self.setModal(True)
        self.setMinimumSize(420, 380)

        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(16, 16, 16, 16)

        self._lbl_status = QLabel("Point your webcam at an otpauth QR code…")
        self._lbl_status.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._lbl_status)

        self._lbl_preview = QLabel("Camera initialising…")
        self._lbl_preview.setFixedSize(*_PREVIEW_SIZE)
        self._lbl_preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._lbl_preview, alignment=Qt.AlignmentFlag.AlignCenter)

        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(self._on_cancel)
        layout.addWidget(btn_cancel)

    def _start(self) -> None:
        import cv2

        try:
            self._scanner.start()
        except RuntimeError as exc:
            self._lbl_status.setText(str(exc))
            return
        # Preview uses its own capture handle; decoding happens in the scanner thread.
        self._cap = cv2.VideoCapture(self._camera_index)
        self._preview_timer.start(30)

    def _update_preview(self) -> None:
        import cv2

        if self._cap is None or not self._cap.isOpened():
            return
        ok, frame = self._cap.read()
        if not ok:
            return
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        h, w, ch = rgb.shape
        image = QImage(rgb.data, w, h, ch * w, QImage.Format.Format_RGB888)
        self._lbl_preview.setPixmap(
            QPixmap.fromImage(image).scaled(
                *_PREVIEW_SIZE,
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            )
        )

    def _finish(self, uri: str) -> None:
        self.result_uri = uri
        self._stop()
        self.accept()

    def _on_cancel(self) -> None:
        self._stop()
        self.reject()

    def _stop(self) -> None:
        self._preview_timer.stop()
        self._scanner.stop()
        if self._cap is not None and self._cap.isOpened():
            self._cap.release()

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._stop()
        super().closeEvent(event)
