from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List


class DiffKind(str, Enum):
    EQUAL = "equal"
    INSERT = "insert"  # in the correct answer, missing from the user's answer
    DELETE = "delete"  # in the user's answer, absent from the correct answer


class DiffSegment(BaseModel):
    kind: DiffKind
    text: str


class CardMode(str, Enum):
    FRONT = "front"
    BACK = "back"
    CLOSED = "closed"


class ReviewState(str, Enum):
    FRONT = "front"
    TYPED_ANSWER_PENDING_CHECK = "typed_answer_pending_check"
    BACK = "back"
    CLOSED = "closed"


class ReviewResponse(str, Enum):
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"
    RESET = "reset"


class ReviewAction(str, Enum):
    REVEAL = "reveal"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"
    RESET = "reset"
    SKIP = "skip"


class CardType(str, Enum):
    SINGLE_LINE_BASIC = "single_line_basic"
    MULTI_LINE_BASIC = "multi_line_basic"
    CLOZE = "cloze"
    SINGLE_LINE_TYPE_IN = "single_line_type_in"
    MULTI_LINE_TYPE_IN = "multi_line_type_in"

    @property
    def is_type_in(self) -> bool:
        return self in (CardType.SINGLE_LINE_TYPE_IN, CardType.MULTI_LINE_TYPE_IN)


class FlashcardReviewMode(str, Enum):
    REVIEW = "review"
    CRAM = "cram"


class ScheduleInfo(BaseModel):
    interval: Optional[int] = None  # days; None for a new card
    latest_ease: Optional[float] = None


class Note(BaseModel):
    file_path: str = ""

    @property
    def basename(self) -> str:
        name = self.file_path.replace("\\", "/").split("/")[-1]
        return name.rsplit(".", 1)[0] if "." in name else name


class Card(BaseModel):
    id: str
    front: str
    back: str
    deck: str = ""
    card_type: CardType = CardType.SINGLE_LINE_BASIC
    note_path: str = ""
    context: List[str] = Field(default_factory=list)
    text_direction: str = "ltr"
    schedule: Optional[ScheduleInfo] = None


class Deck(BaseModel):
    deck_name: str
    topic_path: List[str] = Field(default_factory=list)
    subdecks: List["Deck"] = Field(default_factory=list)

    def find(self, topic_path: List[str]) -> Optional["Deck"]:
        """Returns the deck at `topic_path` in this subtree, if any."""
        if list(topic_path) == self.topic_path:
            return self
        for subdeck in self.subdecks:
            if list(topic_path[:len(subdeck.topic_path)]) == subdeck.topic_path:
                return subdeck.find(topic_path)
        return None


Deck.model_rebuild()


class DeckStats(BaseModel):
    cards_in_queue_count: int = 0
    decks_in_queue_count: int = 0
    cards_in_queue_of_this_deck_count: int = 0
    decks_in_queue_of_this_deck_count: int = 0


class DeckProgress(BaseModel):
    deck_name: str
    total_cards_in_session: int
    cards_remaining: int
    total_subdecks_in_session: int = 0
    subdecks_remaining: int = 0

    @property
    def cards_done(self) -> int:
        return self.total_cards_in_session - self.cards_remaining

    @property
    def subdecks_done(self) -> int:
        return self.total_subdecks_in_session - self.subdecks_remaining


class DeckProgressSnapshot(BaseModel):
    chosen_deck: DeckProgress
    current_deck: Optional[DeckProgress] = None


class TypedAnswerResult(BaseModel):
    user_answer: str
    correct_answer: str
    segments: List[DiffSegment]
    is_correct: bool

    @property
    def is_empty(self) -> bool:
        return len(self.user_answer) == 0


class KeyEvent(BaseModel):
    code: str
    typing_in_input: bool = False


class ViewState(BaseModel):
    reveal_button_visible: bool = False
    grade_buttons_visible: bool = False
    good_button_visible: bool = False
    typed_input_visible: bool = False
    typed_input_enabled: bool = False
    check_button_visible: bool = False
    reset_enabled: bool = False
    skip_enabled: bool = False
    subdeck_counter_visible: bool = False
    current_deck_visible: bool = False
    current_deck_counter_visible: bool = False
