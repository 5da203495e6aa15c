"""Collaborators the review session talks to.

The session never owns the card queue: it asks the sequencer for the
current card and deck after every action that may have changed them.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Card, Deck, DeckStats, Note, ReviewResponse, ScheduleInfo


class ReviewSequencer(ABC):
    """Owns the deck/card queue and the scheduling algorithm."""

    @property
    @abstractmethod
    def current_card(self) -> Optional[Card]:
        pass

    @property
    @abstractmethod
    def current_deck(self) -> Optional[Deck]:
        pass

    @property
    @abstractmethod
    def current_note(self) -> Optional[Note]:
        pass

    @abstractmethod
    def get_deck_stats(self, topic_path: List[str]) -> DeckStats:
        pass

    @abstractmethod
    def process_review(self, response: ReviewResponse) -> bool:
        """Grades the current card and advances the queue."""
        pass

    @abstractmethod
    def skip_current_card(self) -> None:
        pass

    @abstractmethod
    def determine_card_schedule(self, response: ReviewResponse, card: Card) -> ScheduleInfo:
        """Predicts the schedule `response` would give `card`, without applying it."""
        pass


class ContentRenderer(ABC):
    @abstractmethod
    def render(self, text: str, text_direction: str = "ltr", append: bool = False) -> None:
        """Renders `text` into the card area, replacing it unless `append`."""
        pass


class Notifier(ABC):
    @abstractmethod
    def notify(self, message: str) -> None:
        pass
