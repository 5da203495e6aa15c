import pandas as pd
import pytest

from review_core.config import ReviewSettings
from review_core.models import (
    CardMode, DeckProgressSnapshot, DeckProgress, DiffKind, FlashcardReviewMode, KeyEvent,
    ReviewAction, ReviewResponse, ReviewState,
)
from review_core.sequencer import QueueSequencer, build_deck_tree, split_deck_path
from review_core.services import LogNotifier, TextRenderer
from review_core.session import ReviewSessionController, format_question_context, project_view, route_key


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms / 1000


def make_cards():
    rows = [
        {"id": "1", "front": "2+2", "back": "4", "deck": "Math", "card_type": "single_line_basic"},
        {"id": "2", "front": "Capital of France", "back": " Paris ", "deck": "Geo/Europe",
         "card_type": "single_line_type_in", "note_path": "notes/geo.md",
         "context": "Europe;[[Capitals|Cities]]"},
        {"id": "3", "front": "Capital of Japan", "back": "Tokyo", "deck": "Geo/Asia",
         "card_type": "single_line_type_in", "note_path": "notes/geo.md"},
        {"id": "4", "front": "  Largest ocean", "back": "Pacific", "deck": "Geo",
         "card_type": "single_line_basic", "note_path": "notes/oceans.md"},
        {"id": "5", "front": "{{c1::Mitochondria}} is the powerhouse", "back": "Mitochondria",
         "deck": "Bio", "card_type": "cloze"},
    ]
    df = pd.DataFrame(rows).fillna("")
    df["interval"] = 0
    df["ease_factor"] = 2.5
    df["repetitions"] = 0
    df["last_review"] = ""
    return df


@pytest.fixture
def clock():
    return FakeClock()


def start_session(deck_path, clock, review_mode=FlashcardReviewMode.REVIEW, **settings):
    df = make_cards()
    sequencer = QueueSequencer(df, review_mode=review_mode)
    root = build_deck_tree(df["deck"])
    deck = root.find(list(split_deck_path(deck_path)))
    sequencer.start(deck.topic_path)

    ended = []
    controller = ReviewSessionController(
        sequencer,
        settings=ReviewSettings(**settings),
        review_mode=review_mode,
        renderer=TextRenderer(),
        notifier=LogNotifier(),
        on_session_end=lambda: ended.append(True),
        clock=clock,
    )
    controller.start(deck)
    return controller, sequencer, ended


def test_start_shows_first_card_front(clock):
    controller, _, _ = start_session("Math", clock)
    assert controller.mode == CardMode.FRONT
    assert controller.state == ReviewState.FRONT
    assert controller.current_card.id == "1"
    assert controller.progress.chosen_deck.total_cards_in_session == 1
    assert controller.progress.chosen_deck.cards_remaining == 1
    assert controller.progress.current_deck is None
    assert controller.renderer.blocks == ["2+2"]


def test_grading_on_front_is_ignored(clock):
    controller, sequencer, _ = start_session("Geo", clock)
    before = controller.progress
    for response in (ReviewResponse.HARD, ReviewResponse.GOOD, ReviewResponse.EASY):
        assert not controller.submit_response(response)
    assert controller.mode == CardMode.FRONT
    assert controller.progress == before
    assert len(sequencer.queue) == 3
    assert controller.last_action_at is None


def test_grading_last_card_ends_session(clock):
    controller, sequencer, ended = start_session("Math", clock)
    assert controller.reveal_answer()
    clock.advance(500)
    assert controller.submit_response(ReviewResponse.GOOD)
    assert controller.mode == CardMode.CLOSED
    assert controller.session_ended
    assert ended == [True]
    assert sequencer.df.at[0, "repetitions"] == 1
    assert not controller.reveal_answer()


def test_reveal_appends_back_to_front(clock):
    controller, _, _ = start_session("Geo", clock)
    assert controller.renderer.blocks == ["Largest ocean"]
    controller.reveal_answer()
    assert controller.mode == CardMode.BACK
    assert controller.renderer.blocks == ["Largest ocean", "---", "Pacific"]


def test_reveal_replaces_cloze_front(clock):
    controller, _, _ = start_session("Bio", clock)
    controller.reveal_answer()
    assert controller.renderer.blocks == ["Mitochondria"]


def test_debounce_drops_quick_second_action(clock):
    controller, _, _ = start_session("Geo", clock, review_button_delay=100)
    assert controller.reveal_answer()
    clock.advance(50)
    assert not controller.submit_response(ReviewResponse.GOOD)
    assert controller.mode == CardMode.BACK
    assert controller.current_card.id == "4"

    clock.advance(60)
    # 110ms after the accepted reveal; the dropped action did not move the window
    assert controller.submit_response(ReviewResponse.GOOD)
    assert controller.current_card.id == "3"


def test_actions_apart_by_more_than_delay_both_apply(clock):
    controller, _, _ = start_session("Geo", clock, review_button_delay=100)
    assert controller.reveal_answer()
    clock.advance(150)
    assert controller.submit_response(ReviewResponse.EASY)
    assert controller.mode == CardMode.FRONT


def test_counters_follow_sequencer_queue(clock):
    controller, _, _ = start_session("Geo", clock)
    progress = controller.progress
    assert progress.chosen_deck.total_cards_in_session == 3
    assert progress.chosen_deck.total_subdecks_in_session == 2
    assert progress.current_deck.deck_name == "Geo"
    assert progress.current_deck.total_cards_in_session == 1

    total = progress.chosen_deck.total_cards_in_session
    graded = 0
    while not controller.session_ended:
        if controller.state == ReviewState.TYPED_ANSWER_PENDING_CHECK:
            controller.check_typed_answer("something")
        else:
            controller.reveal_answer()
        clock.advance(500)
        controller.submit_response(ReviewResponse.GOOD)
        clock.advance(500)
        graded += 1
        assert controller.progress.chosen_deck.cards_remaining == total - graded
        assert controller.progress.chosen_deck.cards_done == graded
    assert graded == 3
    assert controller.progress.chosen_deck.subdecks_remaining == 0
    assert controller.progress.current_deck.cards_remaining == 0


def test_single_card_deck_reports_zero_remaining_at_end(clock):
    controller, _, ended = start_session("Math", clock)
    controller.reveal_answer()
    clock.advance(500)
    controller.submit_response(ReviewResponse.GOOD)
    assert controller.session_ended
    assert controller.progress.chosen_deck.cards_remaining == 0
    assert controller.progress.chosen_deck.cards_done == 1


def test_subdeck_counters_track_current_deck(clock):
    controller, _, _ = start_session("Geo", clock)
    controller.reveal_answer()
    clock.advance(500)
    controller.submit_response(ReviewResponse.GOOD)

    progress = controller.progress
    assert progress.current_deck.deck_name == "Asia"
    assert progress.current_deck.cards_remaining == 1
    assert progress.chosen_deck.subdecks_remaining == 2

    clock.advance(500)
    controller.check_typed_answer("Tokyo")
    clock.advance(500)
    controller.submit_response(ReviewResponse.HARD)
    assert controller.progress.current_deck.deck_name == "Europe"
    assert controller.progress.chosen_deck.subdecks_remaining == 1
    assert controller.progress.chosen_deck.subdecks_done == 1


def test_typed_answer_card_blocks_reveal(clock):
    controller, _, _ = start_session("Geo/Asia", clock)
    assert controller.state == ReviewState.TYPED_ANSWER_PENDING_CHECK
    assert not controller.reveal_answer()
    assert controller.mode == CardMode.FRONT
    assert controller.last_action_at is None


def test_check_typed_answer_moves_to_back_either_way(clock):
    controller, _, _ = start_session("Geo/Europe", clock)
    assert controller.set_typed_answer("paris")
    result = controller.check_typed_answer()
    assert result.is_correct
    assert result.correct_answer == "Paris"
    assert result.segments[0].kind == DiffKind.EQUAL
    assert controller.mode == CardMode.BACK
    assert controller.state == ReviewState.BACK
    # input is frozen once checked
    assert not controller.set_typed_answer("london")
    assert controller.typed_answer == "paris"

    controller2, _, _ = start_session("Geo/Asia", FakeClock())
    result = controller2.check_typed_answer("Tokio")
    assert not result.is_correct
    assert controller2.mode == CardMode.BACK
    assert controller2.view.grade_buttons_visible


def test_typed_answer_is_not_trimmed_before_diff(clock):
    controller, _, _ = start_session("Geo/Asia", clock)
    result = controller.check_typed_answer(" Tokyo")
    assert result.is_correct
    assert result.segments[0].kind == DiffKind.DELETE
    assert result.segments[0].text == " "


def test_typed_answer_case_sensitivity_setting(clock):
    controller, _, _ = start_session("Geo/Asia", clock, type_in_case_sensitive=True)
    result = controller.check_typed_answer("tokyo")
    assert not result.is_correct


def test_check_is_debounced(clock):
    controller, _, _ = start_session("Geo", clock, review_button_delay=100)
    controller.reveal_answer()
    clock.advance(200)
    controller.submit_response(ReviewResponse.GOOD)
    clock.advance(10)
    assert controller.check_typed_answer("Tokyo") is None
    assert controller.state == ReviewState.TYPED_ANSWER_PENDING_CHECK


def test_skip_only_on_front(clock):
    controller, sequencer, _ = start_session("Geo", clock)
    controller.reveal_answer()
    assert not controller.skip()
    assert controller.current_card.id == "4"

    controller2, sequencer2, _ = start_session("Geo", FakeClock())
    assert controller2.skip()
    assert controller2.current_card.id == "3"
    assert controller2.mode == CardMode.FRONT
    assert sequencer2.df.at[3, "repetitions"] == 0
    assert controller2.progress.chosen_deck.cards_remaining == 2


def test_skip_last_card_ends_session(clock):
    controller, _, ended = start_session("Math", clock)
    assert controller.skip()
    assert controller.session_ended
    assert ended == [True]


def test_reset_allowed_on_front_and_requeues(clock):
    controller, sequencer, _ = start_session("Math", clock)
    sequencer.df.at[0, "repetitions"] = 4
    sequencer.df.at[0, "interval"] = 20
    assert controller.submit_response(ReviewResponse.RESET)
    assert controller.mode == CardMode.FRONT
    assert controller.current_card.id == "1"
    assert controller.progress.chosen_deck.cards_remaining == 1
    assert sequencer.df.at[0, "repetitions"] == 0
    assert sequencer.df.at[0, "interval"] == 0


def test_cram_mode_requeues_hard_cards(clock):
    controller, sequencer, _ = start_session("Geo", clock, review_mode=FlashcardReviewMode.CRAM)
    controller.reveal_answer()
    assert not controller.view.good_button_visible
    assert controller.response_button_labels()[ReviewResponse.HARD] == "Hard"
    clock.advance(500)
    controller.submit_response(ReviewResponse.HARD)
    assert controller.progress.chosen_deck.cards_remaining == 3
    assert sequencer.df.at[3, "repetitions"] == 0


def test_response_labels_preview_intervals(clock):
    controller, _, _ = start_session("Math", clock)
    labels = controller.response_button_labels()
    assert labels[ReviewResponse.GOOD] == "Good - 1 day(s)"

    mobile, _, _ = start_session("Math", FakeClock(), mobile_layout=True)
    assert mobile.response_button_labels()[ReviewResponse.EASY] == "1d"

    plain, _, _ = start_session("Math", FakeClock(), show_interval_in_review_buttons=False)
    assert plain.response_button_labels()[ReviewResponse.EASY] == "Easy"


def test_card_info_notice(clock):
    controller, _, _ = start_session("Geo", clock)
    message = controller.show_card_info()
    assert message == ("Current ease: New\n"
                       "Current interval: New\n"
                       "Card generated from: notes/oceans.md")
    assert controller.notifier.messages == [message]


def test_card_context_line(clock):
    controller, _, _ = start_session("Geo/Europe", clock)
    assert controller.card_context == "geo > Europe > Cities"

    hidden, _, _ = start_session("Geo/Europe", FakeClock(), show_context_in_cards=False)
    assert hidden.card_context == ""


def test_format_question_context():
    assert format_question_context("note", []) == "note"
    assert format_question_context("note", ["[[Target]]", "Plain"]) == "note > Target > Plain"


def test_close_freezes_session(clock):
    controller, _, _ = start_session("Geo", clock)
    controller.close()
    assert controller.mode == CardMode.CLOSED
    assert not controller.handle_key(KeyEvent(code="Space"))
    assert not controller.reveal_answer()
    assert not controller.skip()
    assert controller.show_card_info() is None
    assert controller.response_button_labels()[ReviewResponse.GOOD] == "Good"


def test_route_key_front():
    front = CardMode.FRONT
    assert route_key(KeyEvent(code="Space"), front, False) == ReviewAction.REVEAL
    assert route_key(KeyEvent(code="Enter"), front, False) == ReviewAction.REVEAL
    assert route_key(KeyEvent(code="NumpadEnter"), front, False) == ReviewAction.REVEAL
    assert route_key(KeyEvent(code="Space"), front, True) is None
    assert route_key(KeyEvent(code="Enter"), front, True) is None
    assert route_key(KeyEvent(code="KeyS"), front, False) == ReviewAction.SKIP
    assert route_key(KeyEvent(code="KeyS", typing_in_input=True), front, True) is None
    assert route_key(KeyEvent(code="Digit2"), front, False) is None
    assert route_key(KeyEvent(code="Digit0"), front, False) == ReviewAction.RESET
    assert route_key(KeyEvent(code="Digit0", typing_in_input=True), front, True) is None


def test_route_key_back():
    back = CardMode.BACK
    assert route_key(KeyEvent(code="Space"), back, False) == ReviewAction.GOOD
    assert route_key(KeyEvent(code="Digit1"), back, False) == ReviewAction.HARD
    assert route_key(KeyEvent(code="Numpad2"), back, True) == ReviewAction.GOOD
    assert route_key(KeyEvent(code="Digit3"), back, False) == ReviewAction.EASY
    assert route_key(KeyEvent(code="Numpad0"), back, False) == ReviewAction.RESET
    assert route_key(KeyEvent(code="Enter"), back, False) is None
    assert route_key(KeyEvent(code="KeyS"), back, False) is None
    assert route_key(KeyEvent(code="KeyX"), back, False) is None
    assert route_key(KeyEvent(code="Space"), CardMode.CLOSED, False) is None


def test_debounced_key_is_still_consumed(clock):
    controller, _, _ = start_session("Geo", clock, review_button_delay=100)
    assert controller.handle_key(KeyEvent(code="Space"))
    assert controller.mode == CardMode.BACK
    clock.advance(10)
    assert controller.handle_key(KeyEvent(code="Digit3"))
    assert controller.current_card.id == "4"
    assert not controller.handle_key(KeyEvent(code="KeyQ"))


def test_project_view_flags():
    progress = DeckProgressSnapshot(
        chosen_deck=DeckProgress(deck_name="Geo", total_cards_in_session=3, cards_remaining=3),
        current_deck=DeckProgress(deck_name="Asia", total_cards_in_session=1, cards_remaining=1),
    )

    typed_front = project_view(CardMode.FRONT, progress, type_in=True)
    assert not typed_front.reveal_button_visible
    assert typed_front.typed_input_enabled
    assert typed_front.check_button_visible
    assert typed_front.skip_enabled
    assert not typed_front.grade_buttons_visible
    assert typed_front.current_deck_counter_visible

    typed_back = project_view(CardMode.BACK, progress, type_in=True)
    assert typed_back.typed_input_visible
    assert not typed_back.typed_input_enabled
    assert typed_back.grade_buttons_visible and typed_back.good_button_visible
    assert not typed_back.skip_enabled

    random_front = project_view(CardMode.FRONT, progress, random_order=True)
    assert random_front.reveal_button_visible
    assert random_front.current_deck_visible
    assert not random_front.current_deck_counter_visible

    closed = project_view(CardMode.CLOSED, None)
    assert closed == closed.__class__()
