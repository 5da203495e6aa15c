"""Review session state machine for one card at a time.

The controller keeps only the visible mode, the debounce timestamp and the
typed answer. Card, deck and note are always re-read from the sequencer,
which owns the queue and may reorder it on any review.
"""
import time
import logging
from typing import Callable, Dict, List, Optional

from .config import ReviewSettings
from .diff import compute_diff, is_answer_correct
from .interfaces import ContentRenderer, Notifier, ReviewSequencer
from .models import (
    Card, CardMode, CardType, Deck, DeckProgress, DeckProgressSnapshot, FlashcardReviewMode,
    KeyEvent, ReviewAction, ReviewResponse, ReviewState, TypedAnswerResult, ViewState,
)
from .sequencer import text_interval

GRADE_ACTIONS = {
    ReviewAction.HARD: ReviewResponse.HARD,
    ReviewAction.GOOD: ReviewResponse.GOOD,
    ReviewAction.EASY: ReviewResponse.EASY,
    ReviewAction.RESET: ReviewResponse.RESET,
}

DIGIT_GRADES = {
    "Digit1": ReviewAction.HARD, "Numpad1": ReviewAction.HARD,
    "Digit2": ReviewAction.GOOD, "Numpad2": ReviewAction.GOOD,
    "Digit3": ReviewAction.EASY, "Numpad3": ReviewAction.EASY,
}


def route_key(event: KeyEvent, mode: CardMode, type_in: bool) -> Optional[ReviewAction]:
    """Maps a key press to the action it triggers in `mode`, if any."""
    if mode == CardMode.CLOSED:
        return None

    code = event.code
    if code == "KeyS":
        if event.typing_in_input or mode != CardMode.FRONT:
            return None
        return ReviewAction.SKIP

    if code == "Space":
        if event.typing_in_input:
            return None
        if mode == CardMode.FRONT:
            return None if type_in else ReviewAction.REVEAL
        return ReviewAction.GOOD

    if code in ("Enter", "NumpadEnter"):
        if mode == CardMode.FRONT and not type_in:
            return ReviewAction.REVEAL
        return None

    if code in DIGIT_GRADES:
        return DIGIT_GRADES[code] if mode == CardMode.BACK else None

    if code in ("Digit0", "Numpad0"):
        return None if event.typing_in_input else ReviewAction.RESET

    return None


def project_view(mode: CardMode, progress: Optional[DeckProgressSnapshot], type_in: bool = False,
                 review_mode: FlashcardReviewMode = FlashcardReviewMode.REVIEW,
                 random_order: bool = False) -> ViewState:
    """Display flags for the given mode and progress."""
    active = mode != CardMode.CLOSED
    has_subdecks = progress is not None and progress.current_deck is not None
    return ViewState(
        reveal_button_visible=mode == CardMode.FRONT and not type_in,
        grade_buttons_visible=mode == CardMode.BACK,
        good_button_visible=mode == CardMode.BACK and review_mode != FlashcardReviewMode.CRAM,
        typed_input_visible=active and type_in,
        typed_input_enabled=mode == CardMode.FRONT and type_in,
        check_button_visible=mode == CardMode.FRONT and type_in,
        reset_enabled=active,
        skip_enabled=mode == CardMode.FRONT,
        subdeck_counter_visible=active and has_subdecks,
        current_deck_visible=active and has_subdecks,
        current_deck_counter_visible=active and has_subdecks and not random_order,
    )


def format_question_context(note_basename: str, context: List[str]) -> str:
    """Note name followed by the headings above the card, e.g. 'note > A > B'."""
    result = note_basename
    for item in context:
        if item.startswith("[[") and item.endswith("]]"):
            item = item[2:-2]
            if "|" in item:
                item = item.split("|")[1]
        result += " > " + item
    return result


class ReviewSessionController:
    def __init__(self, sequencer: ReviewSequencer, settings: Optional[ReviewSettings] = None,
                 review_mode: FlashcardReviewMode = FlashcardReviewMode.REVIEW,
                 renderer: Optional[ContentRenderer] = None, notifier: Optional[Notifier] = None,
                 on_session_end: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.sequencer = sequencer
        self.settings = settings or ReviewSettings()
        self.review_mode = review_mode
        self.renderer = renderer
        self.notifier = notifier
        self.on_session_end = on_session_end
        self.clock = clock

        self.mode = CardMode.CLOSED
        self.chosen_deck: Optional[Deck] = None
        self.current_deck: Optional[Deck] = None
        self.progress: Optional[DeckProgressSnapshot] = None
        self.typed_answer = ""
        self.typed_result: Optional[TypedAnswerResult] = None
        self.last_action_at: Optional[float] = None
        self.session_ended = False

        self._total_cards_in_session = 0
        self._total_decks_in_session = 0
        self._current_deck_total = 0

    # --- Derived state ---

    @property
    def current_card(self) -> Optional[Card]:
        return self.sequencer.current_card

    @property
    def is_type_in_card(self) -> bool:
        card = self.current_card
        return card is not None and card.card_type.is_type_in

    @property
    def state(self) -> ReviewState:
        if self.mode == CardMode.FRONT:
            if self.is_type_in_card:
                return ReviewState.TYPED_ANSWER_PENDING_CHECK
            return ReviewState.FRONT
        if self.mode == CardMode.BACK:
            return ReviewState.BACK
        return ReviewState.CLOSED

    @property
    def view(self) -> ViewState:
        return project_view(self.mode, self.progress, type_in=self.is_type_in_card,
                            review_mode=self.review_mode, random_order=self.settings.is_random_order)

    @property
    def card_context(self) -> str:
        note = self.sequencer.current_note
        card = self.current_card
        if not self.settings.show_context_in_cards or card is None or note is None:
            return ""
        return format_question_context(note.basename, card.context)

    # --- Lifecycle ---

    def start(self, chosen_deck: Deck) -> bool:
        """Begins reviewing `chosen_deck`. Returns False when it has no cards."""
        if self.mode != CardMode.CLOSED and not self.session_ended:
            return False

        self.chosen_deck = chosen_deck
        self.current_deck = None
        self.session_ended = False
        self.last_action_at = None

        stats = self.sequencer.get_deck_stats(chosen_deck.topic_path)
        self._total_cards_in_session = stats.cards_in_queue_count
        self._total_decks_in_session = stats.decks_in_queue_of_this_deck_count
        logging.info(f"Review session started for '{chosen_deck.deck_name}' "
                     f"with {self._total_cards_in_session} cards")
        return self._show_next_card()

    def close(self) -> None:
        if self.mode == CardMode.CLOSED:
            return
        self.mode = CardMode.CLOSED
        logging.info("Review session closed")

    def _show_next_card(self) -> bool:
        if self.current_card is None:
            self._end_session()
            return False
        self._draw_card()
        return True

    def _end_session(self) -> None:
        self.mode = CardMode.CLOSED
        self.session_ended = True
        self.typed_result = None
        if self.chosen_deck is not None:
            self.progress = self._compute_progress()
        logging.info("No cards left, ending review session")
        if self.on_session_end:
            self.on_session_end()

    def _draw_card(self) -> None:
        self.mode = CardMode.FRONT
        self.typed_answer = ""
        self.typed_result = None

        previous_deck = self.current_deck
        self.current_deck = self.sequencer.current_deck
        if self.current_deck is not None and (
                previous_deck is None or previous_deck.topic_path != self.current_deck.topic_path):
            stats = self.sequencer.get_deck_stats(self.current_deck.topic_path)
            self._current_deck_total = stats.cards_in_queue_of_this_deck_count

        self.progress = self._compute_progress()

        card = self.current_card
        if self.renderer:
            self.renderer.render(card.front.lstrip(), card.text_direction)

    def _compute_progress(self) -> DeckProgressSnapshot:
        chosen_stats = self.sequencer.get_deck_stats(self.chosen_deck.topic_path)
        chosen = DeckProgress(
            deck_name=self.chosen_deck.deck_name,
            total_cards_in_session=self._total_cards_in_session,
            cards_remaining=chosen_stats.cards_in_queue_count,
            total_subdecks_in_session=self._total_decks_in_session,
            subdecks_remaining=chosen_stats.decks_in_queue_of_this_deck_count,
        )
        if not self.chosen_deck.subdecks or self.current_deck is None:
            return DeckProgressSnapshot(chosen_deck=chosen)

        current_stats = self.sequencer.get_deck_stats(self.current_deck.topic_path)
        current = DeckProgress(
            deck_name=self.current_deck.deck_name,
            total_cards_in_session=self._current_deck_total,
            cards_remaining=current_stats.cards_in_queue_of_this_deck_count,
        )
        return DeckProgressSnapshot(chosen_deck=chosen, current_deck=current)

    # --- Actions ---

    def _debounced(self) -> bool:
        """True when the action must be dropped; otherwise records it."""
        now = self.clock()
        if self.last_action_at is not None and \
                (now - self.last_action_at) * 1000 < self.settings.review_button_delay:
            logging.debug("Action ignored inside debounce window")
            return True
        self.last_action_at = now
        return False

    def set_typed_answer(self, text: str) -> bool:
        if self.state != ReviewState.TYPED_ANSWER_PENDING_CHECK:
            return False
        self.typed_answer = text
        return True

    def reveal_answer(self) -> bool:
        if self.state != ReviewState.FRONT or self._debounced():
            return False

        self.mode = CardMode.BACK
        card = self.current_card
        if self.renderer:
            if card.card_type == CardType.CLOZE:
                self.renderer.render(card.back, card.text_direction)
            else:
                self.renderer.render("---", card.text_direction, append=True)
                self.renderer.render(card.back, card.text_direction, append=True)
        return True

    def check_typed_answer(self, text: Optional[str] = None) -> Optional[TypedAnswerResult]:
        """Compares the typed answer with the card's back and shows the back.

        Grading stays with the learner: the result does not pick a response.
        """
        if self.state != ReviewState.TYPED_ANSWER_PENDING_CHECK or self._debounced():
            return None

        if text is not None:
            self.typed_answer = text
        correct_answer = self.current_card.back.strip()
        case_sensitive = self.settings.type_in_case_sensitive

        self.typed_result = TypedAnswerResult(
            user_answer=self.typed_answer,
            correct_answer=correct_answer,
            segments=compute_diff(self.typed_answer, correct_answer, case_sensitive),
            is_correct=is_answer_correct(self.typed_answer, correct_answer, case_sensitive),
        )
        self.mode = CardMode.BACK
        return self.typed_result

    def submit_response(self, response: ReviewResponse) -> bool:
        if self.mode == CardMode.CLOSED:
            return False
        if self.mode == CardMode.FRONT and response != ReviewResponse.RESET:
            return False
        if self._debounced():
            return False

        self.sequencer.process_review(response)
        self._show_next_card()
        return True

    def skip(self) -> bool:
        if self.mode != CardMode.FRONT:
            return False
        self.sequencer.skip_current_card()
        self._show_next_card()
        return True

    def handle_key(self, event: KeyEvent) -> bool:
        """Runs the action bound to `event`. Returns True if the key was consumed."""
        action = route_key(event, self.mode, self.is_type_in_card)
        if action is None:
            return False

        if action == ReviewAction.REVEAL:
            self.reveal_answer()
        elif action == ReviewAction.SKIP:
            self.skip()
        else:
            self.submit_response(GRADE_ACTIONS[action])
        return True

    def show_card_info(self) -> Optional[str]:
        card = self.current_card
        if self.mode == CardMode.CLOSED or card is None:
            return None

        schedule = card.schedule
        ease = schedule.latest_ease if schedule and schedule.latest_ease is not None else "New"
        interval = schedule.interval if schedule else None
        note = self.sequencer.current_note
        message = (f"Current ease: {ease}\n"
                   f"Current interval: {text_interval(interval)}\n"
                   f"Card generated from: {note.file_path if note else ''}")
        if self.notifier:
            self.notifier.notify(message)
        return message

    def response_button_labels(self) -> Dict[ReviewResponse, str]:
        """Labels for hard/good/easy, with predicted intervals outside cram mode."""
        names = {
            ReviewResponse.HARD: self.settings.flashcard_hard_text,
            ReviewResponse.GOOD: self.settings.flashcard_good_text,
            ReviewResponse.EASY: self.settings.flashcard_easy_text,
        }
        card = self.current_card if self.mode != CardMode.CLOSED else None
        if self.review_mode == FlashcardReviewMode.CRAM or card is None \
                or not self.settings.show_interval_in_review_buttons:
            return names

        labels = {}
        for response, name in names.items():
            interval = self.sequencer.determine_card_schedule(response, card).interval
            if self.settings.mobile_layout:
                labels[response] = text_interval(interval, True)
            else:
                labels[response] = f"{name} - {text_interval(interval, False)}"
        return labels
