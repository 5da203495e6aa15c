import os
import logging
from pydantic import BaseModel, ValidationError

RANDOM_CARD_ORDER = "EveryCardRandomDeckAndCard"
SEQUENTIAL_CARD_ORDER = "NextCardInOrder"


class ReviewSettings(BaseModel):
    review_button_delay: int = 100  # ms between two accepted actions
    type_in_case_sensitive: bool = False
    show_interval_in_review_buttons: bool = True
    flashcard_hard_text: str = "Hard"
    flashcard_good_text: str = "Good"
    flashcard_easy_text: str = "Easy"
    flashcard_card_order: str = SEQUENTIAL_CARD_ORDER
    show_context_in_cards: bool = True
    mobile_layout: bool = False

    @property
    def is_random_order(self) -> bool:
        return self.flashcard_card_order == RANDOM_CARD_ORDER


def load_settings(file_path: str = "settings.json") -> ReviewSettings:
    """Loads settings from a JSON file, falling back to defaults."""
    if not os.path.exists(file_path):
        logging.info(f"Settings file not found: {file_path}, using defaults")
        return ReviewSettings()

    try:
        with open(file_path, encoding="utf-8") as f:
            return ReviewSettings.model_validate_json(f.read())
    except (OSError, ValidationError) as e:
        logging.error(f"Error loading settings: {e}")
        return ReviewSettings()
