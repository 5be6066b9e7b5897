"""
Confirmation prompts that the user can silence for the rest of a session.
"""
from enum import Enum
from typing import Dict, Optional, Set

from PyQt5.QtWidgets import QCheckBox, QMessageBox, QWidget


class WarningType(Enum):
    """Confirmations the viewer asks for."""
    REPLACE_ORIGINAL = "replace_original"
    CLOSE_WHILE_SAVING = "close_while_saving"


class WarningManager:
    """
    Remembers which confirmations were silenced and what was answered.

    One instance is owned by the main window; nothing here outlives the
    session.
    """

    DONT_ASK_LABEL = "Don't ask again this session"

    def __init__(self):
        self._silenced: Set[WarningType] = set()
        self._answers: Dict[WarningType, bool] = {}

    def should_show_warning(self, warning_type: WarningType) -> bool:
        return warning_type not in self._silenced

    def suppress_warning(self, warning_type: WarningType) -> None:
        self._silenced.add(warning_type)

    def reset_all_warnings(self) -> None:
        self._silenced.clear()
        self._answers.clear()

    def last_answer(self, warning_type: WarningType) -> Optional[bool]:
        """What the user answered the last time, if they were asked."""
        return self._answers.get(warning_type)

    def show_confirmation(self, parent: Optional[QWidget], warning_type: WarningType,
                          title: str, message: str,
                          show_dont_ask: bool = True) -> bool:
        """
        Ask a Yes/No question, defaulting to No.

        A silenced confirmation repeats the last answer without a dialog;
        one that was silenced before ever being answered counts as No.

        Returns:
            True if the user agreed
        """
        if not self.should_show_warning(warning_type):
            return bool(self.last_answer(warning_type))

        box = QMessageBox(QMessageBox.Question, title, message,
                          QMessageBox.Yes | QMessageBox.No, parent)
        box.setDefaultButton(QMessageBox.No)

        dont_ask = QCheckBox(self.DONT_ASK_LABEL) if show_dont_ask else None
        if dont_ask is not None:
            box.setCheckBox(dont_ask)

        agreed = box.exec_() == QMessageBox.Yes
        self._answers[warning_type] = agreed
        if dont_ask is not None and dont_ask.isChecked():
            self.suppress_warning(warning_type)
        return agreed
