import os
import uuid
import logging
import pandas as pd
from typing import List, Optional

from .config import ReviewSettings
from .interfaces import ContentRenderer, Notifier
from .models import CardMode, Deck, FlashcardReviewMode
from .sequencer import DEFAULT_EASE, QueueSequencer, build_deck_tree, split_deck_path
from .session import ReviewSessionController


class TextRenderer(ContentRenderer):
    """Keeps rendered card content as plain text blocks."""

    def __init__(self):
        self.blocks: List[str] = []
        self.text_direction = "ltr"

    def render(self, text: str, text_direction: str = "ltr", append: bool = False) -> None:
        if not append:
            self.blocks = []
        self.blocks.append(text)
        self.text_direction = text_direction


class LogNotifier(Notifier):
    def __init__(self):
        self.messages: List[str] = []

    def notify(self, message: str) -> None:
        logging.info(message.replace("\n", " | "))
        self.messages.append(message)


class ReviewService:
    def __init__(self, file_path: str = "flashcards.csv", settings: Optional[ReviewSettings] = None):
        self.file_path = file_path
        self.settings = settings or ReviewSettings()
        self.df = None
        self.renderer = TextRenderer()
        self.notifier = LogNotifier()
        self.sequencer: Optional[QueueSequencer] = None
        self.controller: Optional[ReviewSessionController] = None

    def load_data(self) -> bool:
        """Loads cards from CSV."""
        if not os.path.exists(self.file_path):
            logging.error(f"File not found: {self.file_path}")
            return False

        try:
            self.df = pd.read_csv(self.file_path, encoding='utf-8-sig')
        except (OSError, ValueError) as e:
            logging.error(f"Error loading CSV: {e}")
            return False

        self._ensure_columns()
        self.df = self.df.fillna("")
        logging.info(f"Loaded {len(self.df)} cards from {self.file_path}")
        return True

    def _ensure_columns(self):
        """Ensures required columns exist."""
        required_columns = {
            'id': lambda: str(uuid.uuid4()),
            'front': '',
            'back': '',
            'deck': '',
            'card_type': 'single_line_basic',
            'note_path': '',
            'context': '',
            'last_review': '',
            'interval': 0,
            'ease_factor': 2.5,
            'repetitions': 0,
        }

        # Handle legacy column names if any
        column_mappings = {'question': 'front', 'answer': 'back'}
        for old, new in column_mappings.items():
            if old in self.df.columns and new not in self.df.columns:
                self.df[new] = self.df[old]

        for col, default in required_columns.items():
            if col not in self.df.columns:
                if callable(default):
                    self.df[col] = [default() for _ in range(len(self.df))]
                else:
                    self.df[col] = default

        self.df['id'] = self.df['id'].astype(str)
        self.df['last_review'] = self.df['last_review'].astype(object)

        # scheduling columns keep one dtype so review updates never upcast them
        self.df['interval'] = pd.to_numeric(self.df['interval'], errors='coerce').fillna(0).astype(int)
        self.df['repetitions'] = pd.to_numeric(self.df['repetitions'], errors='coerce').fillna(0).astype(int)
        self.df['ease_factor'] = pd.to_numeric(self.df['ease_factor'], errors='coerce').fillna(DEFAULT_EASE).astype(float)

    def deck_tree(self) -> Deck:
        if self.df is None:
            self.load_data()
        paths = self.df['deck'] if self.df is not None else []
        return build_deck_tree(paths)

    def find_deck(self, deck_path: str) -> Optional[Deck]:
        return self.deck_tree().find(list(split_deck_path(deck_path)))

    def start_session(self, deck_path: str = "",
                      review_mode: FlashcardReviewMode = FlashcardReviewMode.REVIEW) -> Optional[bool]:
        """Starts reviewing a deck. Returns None if the deck does not exist."""
        deck = self.find_deck(deck_path)
        if deck is None:
            return None

        self.renderer = TextRenderer()
        self.sequencer = QueueSequencer(self.df, review_mode=review_mode,
                                        random_order=self.settings.is_random_order)
        self.sequencer.start(deck.topic_path)
        self.controller = ReviewSessionController(
            self.sequencer,
            settings=self.settings,
            review_mode=review_mode,
            renderer=self.renderer,
            notifier=self.notifier,
        )
        return self.controller.start(deck)

    def close_session(self):
        if self.controller is not None:
            self.controller.close()

    def session_state(self) -> dict:
        controller = self.controller
        card = controller.current_card if controller.mode != CardMode.CLOSED else None
        return {
            "mode": controller.mode.value,
            "state": controller.state.value,
            "finished": controller.session_ended,
            "card": card.model_dump(mode="json") if card else None,
            "content": self.renderer.blocks if card else [],
            "context": controller.card_context if card else "",
            "progress": controller.progress.model_dump(mode="json") if controller.progress else None,
            "view": controller.view.model_dump(),
            "buttons": {r.value: label for r, label in controller.response_button_labels().items()},
            "typed_result": controller.typed_result.model_dump(mode="json") if controller.typed_result else None,
        }
