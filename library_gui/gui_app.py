# gui_app.py
import logging
import os
import sys

from PySide6.QtCore import QObject, QRunnable, Qt, QThreadPool, QUrl, Signal
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import (
    QApplication, QHBoxLayout, QLabel, QLineEdit, QListWidget, QListWidgetItem,
    QPushButton, QVBoxLayout, QWidget
)

from library_backend.enrich import LocalHeuristicPolicy
from library_backend.config import Settings
from library_backend.logging_setup import configure_logging
from library_gui.backend_client import BackendClient
from library_gui.view_state import (
    Phase, SortMode, SubmissionController, ViewState, format_owners, format_playtime,
    format_price, store_url
)

logger = logging.getLogger(__name__)

# ---------------- CONFIG ----------------
# "backend" asks the backend's /api/recommend, "local" runs the unplayed heuristic here.
RECOMMENDER_SOURCE = os.environ.get("RECOMMENDER_SOURCE", "backend")
PRICE_CURRENCY = os.environ.get("PRICE_CURRENCY", "US")
# ----------------------------------------


class StateBridge(QObject):
    """Carries snapshots from worker threads to the UI thread."""
    state_changed = Signal(object)


class SubmissionTask(QRunnable):
    def __init__(self, controller: SubmissionController, generation: int, text: str):
        super().__init__()
        self.controller = controller
        self.generation = generation
        self.text = text

    def run(self):
        try:
            self.controller.run(self.generation, self.text)
        except Exception:
            # Qt swallows exceptions raised inside QRunnable.run.
            logger.exception("Submission %s crashed", self.generation)


class LibraryWindow(QWidget):
    def __init__(self, client: BackendClient):
        super().__init__()
        self.setWindowTitle("Steam Library Recommender")
        self.resize(1000, 700)

        self.sort_mode = SortMode.SIMILARITY
        self.bridge = StateBridge()
        self.bridge.state_changed.connect(self.render)

        recommender = None
        if RECOMMENDER_SOURCE == "local":
            recommender = LocalHeuristicPolicy().recommend
        self.controller = SubmissionController(
            client,
            recommender=recommender,
            currency=PRICE_CURRENCY,
            listener=self.bridge.state_changed.emit,
        )
        self.pool = QThreadPool.globalInstance()

        layout = QHBoxLayout(self)

        # LEFT: input + owned games
        left = QVBoxLayout()
        left.addWidget(QLabel("Enter Steam ID or Profile Link"))
        self.steam_input = QLineEdit(self)
        self.steam_input.setPlaceholderText("e.g. 76561198015XXXX or steamcommunity.com/id/username")
        self.steam_input.textEdited.connect(lambda _: self.error_label.clear())
        self.steam_input.returnPressed.connect(self.submit)
        left.addWidget(self.steam_input)

        self.error_label = QLabel(self)
        self.error_label.setStyleSheet("color: #f87171;")
        left.addWidget(self.error_label)

        self.submit_button = QPushButton("Get Recommendations", self)
        self.submit_button.clicked.connect(self.submit)
        left.addWidget(self.submit_button)

        self.persona_label = QLabel(self)
        left.addWidget(self.persona_label)

        left.addWidget(QLabel("Your Top Games"))
        self.games_list = QListWidget(self)
        left.addWidget(self.games_list)
        layout.addLayout(left)

        # RIGHT: recommendations + unplayed
        right = QVBoxLayout()
        right.addWidget(QLabel("Recommendations"))
        sort_row = QHBoxLayout()
        self.sort_buttons = {}
        for mode, label in (
            (SortMode.SIMILARITY, "Sort by Similarity"),
            (SortMode.OWNERS, "Sort by Owners"),
            (SortMode.PRICE, "Sort by Price"),
        ):
            button = QPushButton(label, self)
            button.setCheckable(True)
            button.clicked.connect(lambda _=False, m=mode: self.set_sort_mode(m))
            sort_row.addWidget(button)
            self.sort_buttons[mode] = button
        self.sort_buttons[self.sort_mode].setChecked(True)
        right.addLayout(sort_row)

        self.recs_list = QListWidget(self)
        self.recs_list.itemActivated.connect(self.open_store_page)
        right.addWidget(self.recs_list)

        right.addWidget(QLabel("Good Games You Own (But Haven't Played)"))
        self.unplayed_list = QListWidget(self)
        self.unplayed_list.itemActivated.connect(self.open_store_page)
        right.addWidget(self.unplayed_list)
        layout.addLayout(right)

        self.render(self.controller.state)

    # ---------- Actions ----------
    def submit(self):
        text = self.steam_input.text()
        generation = self.controller.begin(text)
        logger.info("Submission %s: %r", generation, text)
        self.pool.start(SubmissionTask(self.controller, generation, text))

    def set_sort_mode(self, mode: SortMode):
        self.sort_mode = mode
        for m, button in self.sort_buttons.items():
            button.setChecked(m == mode)
        self.render(self.controller.state)

    def open_store_page(self, item: QListWidgetItem):
        appid = item.data(Qt.UserRole)
        if appid is not None:
            QDesktopServices.openUrl(QUrl(store_url(appid)))

    # ---------- Rendering ----------
    def render(self, state: ViewState):
        # Signals queued before a newer submission started are ignored here.
        if state.generation != self.controller.generation:
            return

        self.submit_button.setEnabled(not state.loading)
        self.submit_button.setText("Loading..." if state.loading else "Get Recommendations")
        self.error_label.setText(state.message or "")
        self.persona_label.setText(state.persona_name or "")

        self.games_list.clear()
        for game in state.top_games():
            self._add_item(self.games_list, game.appid,
                           f"{game.name or game.appid}  ·  Played: {format_playtime(game.playtime_forever)}")

        self.recs_list.clear()
        if not state.recommendations:
            hint = "Loading..." if state.phase == Phase.ENRICHING else \
                "No recommendations to show yet. Enter a Steam ID above!"
            self.recs_list.addItem(hint)
        for rec in state.sorted_recommendations(self.sort_mode):
            parts = [rec.name or str(rec.appid)]
            if rec.genres:
                parts.append(rec.genres)
            if rec.score:
                parts.append(f"Similarity: {rec.score:.2f}")
            owners = format_owners(rec.owners)
            if owners:
                parts.append(f"Owners: {owners}")
            price = format_price(state.prices, rec.appid)
            if price:
                parts.append(f"Price: {price}")
            self._add_item(self.recs_list, rec.appid, "  ·  ".join(parts))

        self.unplayed_list.clear()
        for game in state.unplayed():
            self._add_item(self.unplayed_list, game.appid, f"{game.name or game.appid}  ·  Never played!")

    @staticmethod
    def _add_item(widget: QListWidget, appid: int, text: str):
        item = QListWidgetItem(text)
        item.setData(Qt.UserRole, appid)
        widget.addItem(item)


def main():
    configure_logging(Settings(log_level=os.environ.get("LOG_LEVEL", "INFO")))
    app = QApplication(sys.argv)
    win = LibraryWindow(BackendClient())
    win.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
