"""
macOS menu bar application using rumps.

Shows the engine phase as a status icon and offers the presentation
commands: toggle recording and copy the last result again.
"""

from typing import Optional, Callable

import rumps

from ..types import Phase, StatusSnapshot


PHASE_ICONS = {
    Phase.IDLE: "🎤",
    Phase.DETECTING: "🔍",
    Phase.RECORDING: "🔴",
    Phase.TRANSCRIBING: "⚡",
    Phase.REWRITING_TEXT: "✏️",
}
ERROR_ICON = "❌"

PHASE_LABELS = {
    Phase.IDLE: "Bereit",
    Phase.DETECTING: "Auswahl wird erkannt",
    Phase.RECORDING: "Aufnahme läuft",
    Phase.TRANSCRIBING: "Transkription",
    Phase.REWRITING_TEXT: "Text wird verarbeitet",
}


class MenuBarApp:
    """
    Menu bar application for MeinWort.

    Shows status icon and provides menu with:
    - Status indicator (one per phase)
    - Start/stop recording
    - Copy Last Result Again
    - Quit
    """

    def __init__(self):
        self.on_toggle: Optional[Callable[[], None]] = None
        self.on_copy_last: Optional[Callable[[], None]] = None
        self.on_quit: Optional[Callable[[], None]] = None

        self._app: Optional[rumps.App] = None
        self._last_error: Optional[str] = None

    def run(self) -> None:
        """Run the menu bar app (blocks)."""
        self._app = _MeinWortRumpsApp(self)
        self._app.run()

    def update_status(self, status: StatusSnapshot) -> None:
        """Status callback of the orchestrator. Called from the engine thread."""
        if self._app:
            icon = PHASE_ICONS.get(status.phase, "🎤")
            if status.phase is Phase.IDLE and status.last_error:
                icon = ERROR_ICON
            self._app.title = icon
            self._app.status_item.title = f"Status: {PHASE_LABELS.get(status.phase, status.phase.value)}"

        # Notify once per distinct error
        if status.last_error and status.last_error != self._last_error:
            self.show_notification("Fehler", status.last_error)
        self._last_error = status.last_error

    def show_notification(self, title: str, message: str) -> None:
        """Show macOS notification."""
        try:
            rumps.notification("MeinWort", title, message)
        except Exception as e:
            print(f"[Menu] Notification failed: {e}")


class _MeinWortRumpsApp(rumps.App):
    """Internal rumps app implementation."""

    def __init__(self, parent: MenuBarApp):
        super().__init__("MeinWort", title=PHASE_ICONS[Phase.IDLE], quit_button=None)
        self.parent = parent

        self.status_item = rumps.MenuItem(f"Status: {PHASE_LABELS[Phase.IDLE]}")
        self.menu = [
            self.status_item,
            None,  # Separator
            rumps.MenuItem("Aufnahme starten/stoppen", callback=self._toggle_clicked),
            rumps.MenuItem("Copy Last Result Again", callback=self._copy_clicked),
            None,  # Separator
            rumps.MenuItem("Beenden", callback=self._quit_clicked),
        ]

    def _toggle_clicked(self, _) -> None:
        if self.parent.on_toggle:
            self.parent.on_toggle()

    def _copy_clicked(self, _) -> None:
        if self.parent.on_copy_last:
            self.parent.on_copy_last()
        else:
            print("[Menu] Copy clicked (no handler)")

    def _quit_clicked(self, _) -> None:
        if self.parent.on_quit:
            self.parent.on_quit()
        rumps.quit_application()
