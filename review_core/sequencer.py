import math
import random
import logging
import pandas as pd
from typing import List, Optional, Tuple

from .interfaces import ReviewSequencer
from .models import Card, CardType, Deck, DeckStats, FlashcardReviewMode, Note, ReviewResponse, ScheduleInfo

DEFAULT_EASE = 2.5

RESPONSE_QUALITY = {
    ReviewResponse.HARD: 3,
    ReviewResponse.GOOD: 4,
    ReviewResponse.EASY: 5,
}


def split_deck_path(deck: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in str(deck).split("/") if part.strip())


def build_deck_tree(deck_paths, root_name: str = "All decks") -> Deck:
    """Builds the deck hierarchy from '/' separated deck paths."""
    root = Deck(deck_name=root_name, topic_path=[])
    for path in sorted({split_deck_path(p) for p in deck_paths}):
        node = root
        for depth in range(1, len(path) + 1):
            topic_path = list(path[:depth])
            child = next((d for d in node.subdecks if d.topic_path == topic_path), None)
            if child is None:
                child = Deck(deck_name=path[depth - 1], topic_path=topic_path)
                node.subdecks.append(child)
            node = child
    return root


def to_int(value, default: int = 0) -> int:
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def to_float(value, default: float = DEFAULT_EASE) -> float:
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    return default if math.isnan(result) else result


def sm2_algorithm(card: dict, quality: int) -> dict:
    """SM-2 update of the scheduling fields of a card row."""
    interval = to_int(card.get('interval', 0))
    ease_factor = to_float(card.get('ease_factor', DEFAULT_EASE))
    repetitions = to_int(card.get('repetitions', 0))

    if quality < 3:
        repetitions = 0
        interval = 1
    else:
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            interval = math.ceil(interval * ease_factor)
        repetitions += 1

    ease_factor = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    if ease_factor < 1.3:
        ease_factor = 1.3

    card['interval'] = interval
    card['ease_factor'] = round(ease_factor, 2)
    card['repetitions'] = repetitions
    return card


def _format_number(value: float) -> str:
    return f"{value:g}"


def text_interval(interval: Optional[float], is_mobile: bool = False) -> str:
    """Human readable interval, e.g. '3 day(s)' or '3d' on mobile."""
    if interval is None:
        return "New"

    months = math.floor(interval / 3.04375 + 0.5) / 10
    years = math.floor(interval / 36.525 + 0.5) / 10

    if is_mobile:
        if months < 1.0:
            return f"{_format_number(interval)}d"
        if years < 1.0:
            return f"{_format_number(months)}m"
        return f"{_format_number(years)}y"

    if months < 1.0:
        return f"{_format_number(interval)} day(s)"
    if years < 1.0:
        return f"{_format_number(months)} month(s)"
    return f"{_format_number(years)} year(s)"


class QueueSequencer(ReviewSequencer):
    """In-memory sequencer over a DataFrame of cards.

    The queue holds DataFrame indices; its head is the current card. Review
    results update the DataFrame only, nothing is written back to disk.
    """

    def __init__(self, df: pd.DataFrame, review_mode: FlashcardReviewMode = FlashcardReviewMode.REVIEW,
                 random_order: bool = False):
        self.df = df
        self.review_mode = review_mode
        self.random_order = random_order
        self.root_deck = build_deck_tree(df['deck'] if 'deck' in df.columns else [])
        self.queue: List = []

    def start(self, topic_path: List[str]) -> int:
        """Queues every card of the deck at `topic_path` and its subdecks."""
        topic_path = tuple(topic_path)
        paths = self.df['deck'].map(split_deck_path)
        mask = paths.map(lambda p: p[:len(topic_path)] == topic_path)
        selected = self.df[mask]

        if self.random_order:
            self.queue = selected.index.tolist()
            random.shuffle(self.queue)
        else:
            # deck by deck, file order within a deck
            order = paths[mask].map(lambda p: "/".join(p)).sort_values(kind="mergesort")
            self.queue = order.index.tolist()

        logging.info(f"Queued {len(self.queue)} cards for deck '{'/'.join(topic_path)}'")
        return len(self.queue)

    def _card_at(self, idx) -> Card:
        row = self.df.loc[idx].to_dict()
        for k, v in row.items():
            if not isinstance(v, (list, tuple)) and pd.isna(v):
                row[k] = ""

        context = [c.strip() for c in str(row.get('context', '')).split(";") if c.strip()]
        try:
            card_type = CardType(str(row.get('card_type', '')) or CardType.SINGLE_LINE_BASIC)
        except ValueError:
            card_type = CardType.SINGLE_LINE_BASIC

        schedule = None
        if str(row.get('last_review', '')):
            schedule = ScheduleInfo(
                interval=to_int(row.get('interval', 0)),
                latest_ease=to_float(row.get('ease_factor', DEFAULT_EASE)),
            )

        return Card(
            id=str(row.get('id', idx)),
            front=str(row.get('front', '')),
            back=str(row.get('back', '')),
            deck="/".join(split_deck_path(row.get('deck', ''))),
            card_type=card_type,
            note_path=str(row.get('note_path', '')),
            context=context,
            text_direction=str(row.get('text_direction', '')) or "ltr",
            schedule=schedule,
        )

    @property
    def current_card(self) -> Optional[Card]:
        if not self.queue:
            return None
        return self._card_at(self.queue[0])

    @property
    def current_deck(self) -> Optional[Deck]:
        card = self.current_card
        if card is None:
            return None
        return self.root_deck.find(list(split_deck_path(card.deck))) or self.root_deck

    @property
    def current_note(self) -> Optional[Note]:
        card = self.current_card
        if card is None:
            return None
        return Note(file_path=card.note_path)

    def get_deck_stats(self, topic_path: List[str]) -> DeckStats:
        topic_path = tuple(topic_path)
        queued_paths = [split_deck_path(self.df.at[idx, 'deck']) for idx in self.queue]
        in_subtree = [p for p in queued_paths if p[:len(topic_path)] == topic_path]

        return DeckStats(
            cards_in_queue_count=len(in_subtree),
            decks_in_queue_count=len(set(queued_paths)),
            cards_in_queue_of_this_deck_count=sum(1 for p in in_subtree if p == topic_path),
            decks_in_queue_of_this_deck_count=len({p for p in in_subtree if p != topic_path}),
        )

    def process_review(self, response: ReviewResponse) -> bool:
        if not self.queue:
            return False

        idx = self.queue.pop(0)

        if self.review_mode == FlashcardReviewMode.CRAM:
            if response in (ReviewResponse.HARD, ReviewResponse.RESET):
                self.queue.append(idx)
            return True

        if response == ReviewResponse.RESET:
            self._reset_schedule(idx)
            self.queue.append(idx)
            logging.info(f"Card {self.df.at[idx, 'id']} reset to new")
            return True

        card_data = self.df.loc[idx].to_dict()
        updated = sm2_algorithm(card_data, RESPONSE_QUALITY[response])
        updated['last_review'] = pd.Timestamp.now().isoformat()
        for k in ('interval', 'ease_factor', 'repetitions', 'last_review'):
            self.df.at[idx, k] = updated[k]
        return True

    def _reset_schedule(self, idx):
        self.df.at[idx, 'interval'] = 0
        self.df.at[idx, 'ease_factor'] = DEFAULT_EASE
        self.df.at[idx, 'repetitions'] = 0
        self.df.at[idx, 'last_review'] = ""

    def skip_current_card(self) -> None:
        if self.queue:
            self.queue.pop(0)

    def determine_card_schedule(self, response: ReviewResponse, card: Card) -> ScheduleInfo:
        if response == ReviewResponse.RESET:
            return ScheduleInfo()

        matches = self.df.index[self.df['id'].astype(str) == card.id].tolist()
        card_data = self.df.loc[matches[0]].to_dict() if matches else {}
        predicted = sm2_algorithm(dict(card_data), RESPONSE_QUALITY[response])
        return ScheduleInfo(interval=predicted['interval'], latest_ease=predicted['ease_factor'])
