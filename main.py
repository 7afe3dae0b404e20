"""
OTPDeck – entry point.

Usage
-----
    python main.py

Or, if installed as a package:
    otpdeck

The data directory can be moved with ``OTPDECK_HOME``.
"""

import logging
import sys

from PyQt6.QtWidgets import QApplication, QMessageBox

from storage.database import AccountDatabase, default_db_path
from storage.vault import SecretVault
from ui.main_window import MainWindow
from ui.styles import stylesheet_for
from ui.unlock_dialog import UnlockDialog

MAX_UNLOCK_ATTEMPTS = 5

# ── Logging setup ─────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("otpdeck")

# Keep key-handling modules quiet below WARNING
logging.getLogger("core.crypto").setLevel(logging.WARNING)
logging.getLogger("storage.encryption").setLevel(logging.WARNING)


# ── Bootstrap ─────────────────────────────────────────────────────────────────

def _unlock(vault: SecretVault) -> bool:
    """
    Show the unlock / set-up dialog until the vault opens.

    Returns True on success, False if the user cancelled or ran out of
    attempts.
    """
    is_new = not vault.has_master_password()
    message = ""

    for attempt in range(MAX_UNLOCK_ATTEMPTS):
        dlg = UnlockDialog(is_new=is_new, message=message)
        if dlg.exec() != dlg.DialogCode.Accepted or dlg.password is None:
            return False
        if vault.unlock(dlg.password):
            return True
        remaining = MAX_UNLOCK_ATTEMPTS - attempt - 1
        message = f"Incorrect master password. {remaining} attempt(s) remaining."

    QMessageBox.critical(None, "Too Many Attempts", "Too many failed attempts. OTPDeck will exit.")
    return False


# ── Main ──────────────────────────────────────────────────────────────────────

def main() -> None:
    app = QApplication(sys.argv)
    app.setApplicationName("OTPDeck")
    app.setApplicationVersion("1.0.0")

    path = default_db_path()
    db = AccountDatabase(path)
    vault = SecretVault(path)
    app.setStyleSheet(stylesheet_for(db.get_preferences().dark_mode))

    if not _unlock(vault):
        logger.info("Unlock cancelled or failed – exiting.")
        vault.close()
        db.close()
        sys.exit(0)

    window = MainWindow(db, vault)
    window.show()
    code = app.exec()

    vault.close()
    db.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
