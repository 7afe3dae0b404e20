"""
QR capture for OTPDeck: decode otpauth URIs from image files or a webcam.

Uses OpenCV for frame capture and pyzbar for decoding. Both are optional
(``pip install otpdeck[qr]``); callers check :func:`qr_available` first.
"""

import logging
import os
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

OTPAUTH_PREFIX = "otpauth://totp/"


def _check_deps() -> tuple[bool, str]:
    """Return (available, message) for optional scanning deps."""
    try:
        import cv2  # noqa: F401
        from pyzbar import pyzbar  # noqa: F401
        return True, ""
    except ImportError as exc:
        return False, str(exc)


def qr_available() -> bool:
    """True if opencv-python and pyzbar are installed."""
    return _check_deps()[0]


def _require_deps() -> None:
    available, msg = _check_deps()
    if not available:
        raise RuntimeError(f"QR scanning requires opencv-python and pyzbar: {msg}")


def decode_frame(frame, prefix: str = "") -> Optional[str]:
    """
    Return the first QR payload in ``frame`` that starts with ``prefix``.

    Args:
        frame:  Image array as returned by OpenCV.
        prefix: Required payload prefix ("" accepts any QR code).
    """
    from pyzbar import pyzbar

    for symbol in pyzbar.decode(frame):
        if symbol.type != "QRCODE":
            continue
        data = symbol.data.decode("utf-8", errors="ignore")
        if data.startswith(prefix):
            return data
    return None


def scan_image_file(path: str) -> Optional[str]:
    """
    Decode the first QR code from an image file.

    Returns:
        Decoded string, or None if no QR code found.

    Raises:
        RuntimeError: If dependencies are unavailable.
        FileNotFoundError: If the image file does not exist.
        ValueError: If the file is not a readable image.
    """
    _require_deps()
    import cv2

    if not os.path.isfile(path):
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(path)
    if img is None:
        raise ValueError(f"Could not read image: {path}")
    return decode_frame(img)


class QRScanner:
    """
    Continuous webcam scanner that stops at the first otpauth://totp code.

    Usage::

        scanner = QRScanner(on_result=handle_uri)
        scanner.start()   # non-blocking, runs in a thread
        ...
        scanner.stop()
    """

    def __init__(
        self,
        on_result: Callable[[str], None],
        camera_index: int = 0,
    ) -> None:
        """
        Args:
            on_result:    Called from the scanning thread with the URI text.
            camera_index: OpenCV camera index (default 0 = first webcam).
        """
        self._on_result = on_result
        self._camera_index = camera_index
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start scanning in a background daemon thread."""
        _require_deps()
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._scan_loop, name="qr-scanner", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the scanning thread to stop."""
        self._stop.set()

    def _scan_loop(self) -> None:
        import cv2

        cap = cv2.VideoCapture(self._camera_index)
        if not cap.isOpened():
            logger.error("Cannot open camera index %d", self._camera_index)
            return

        try:
            while not self._stop.is_set():
                ok, frame = cap.read()
                if not ok:
                    continue
                uri = decode_frame(frame, OTPAUTH_PREFIX)
                if uri is None:
                    continue
                self._stop.set()
                try:
                    self._on_result(uri)
                except Exception:
                    logger.exception("on_result callback raised an exception")
        finally:
            cap.release()
