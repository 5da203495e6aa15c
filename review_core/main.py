import os
import logging
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from typing import Optional

from .config import load_settings
from .diff import changed_characters, compute_diff, edit_distance, is_answer_correct, render_diff_html
from .models import FlashcardReviewMode, KeyEvent, ReviewResponse
from .services import ReviewService

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

app = FastAPI(title="Review Core API")


class DiffRequest(BaseModel):
    user_answer: str
    correct_answer: str
    case_sensitive: bool = False


class StartRequest(BaseModel):
    deck: str = ""
    mode: FlashcardReviewMode = FlashcardReviewMode.REVIEW


class CheckRequest(BaseModel):
    answer: Optional[str] = None


class ResponseRequest(BaseModel):
    response: ReviewResponse


# Singleton Service
service = ReviewService(
    file_path=os.environ.get("REVIEW_CARDS_PATH", "flashcards.csv"),
    settings=load_settings(os.environ.get("REVIEW_SETTINGS_PATH", "settings.json")),
)


@app.on_event("startup")
def startup_event():
    success = service.load_data()
    if not success:
        logging.warning("Could not load cards on startup.")


def _controller():
    if service.controller is None:
        raise HTTPException(status_code=404, detail="No review session started")
    return service.controller


def _state(accepted: bool) -> dict:
    return {"accepted": accepted, **service.session_state()}


def _deck_to_dict(deck) -> dict:
    return {
        "name": deck.deck_name,
        "path": "/".join(deck.topic_path),
        "subdecks": [_deck_to_dict(d) for d in deck.subdecks],
    }


@app.get("/decks")
def get_decks():
    if service.df is None and not service.load_data():
        raise HTTPException(status_code=404, detail="No cards loaded")
    return _deck_to_dict(service.deck_tree())


@app.post("/diff")
def diff(request: DiffRequest):
    segments = compute_diff(request.user_answer, request.correct_answer, request.case_sensitive)
    return {
        "segments": [s.model_dump(mode="json") for s in segments],
        "html": render_diff_html(segments),
        "distance": edit_distance(segments),
        "changed_characters": changed_characters(segments),
        "is_correct": is_answer_correct(request.user_answer, request.correct_answer, request.case_sensitive),
    }


@app.post("/session/start")
def start_session(request: StartRequest):
    if service.df is None and not service.load_data():
        raise HTTPException(status_code=404, detail="No cards loaded")
    started = service.start_session(request.deck, request.mode)
    if started is None:
        raise HTTPException(status_code=404, detail="Deck not found")
    return _state(started)


@app.get("/session")
def get_session():
    _controller()
    return _state(True)


@app.post("/session/reveal")
def reveal_answer():
    return _state(_controller().reveal_answer())


@app.post("/session/check")
def check_answer(request: CheckRequest):
    return _state(_controller().check_typed_answer(request.answer) is not None)


@app.post("/session/review")
def review(request: ResponseRequest):
    return _state(_controller().submit_response(request.response))


@app.post("/session/skip")
def skip():
    return _state(_controller().skip())


@app.post("/session/key")
def key(event: KeyEvent):
    consumed = _controller().handle_key(event)
    return {"consumed": consumed, **service.session_state()}


@app.get("/session/info")
def card_info():
    message = _controller().show_card_info()
    if message is None:
        raise HTTPException(status_code=404, detail="No card to describe")
    return {"message": message}


@app.post("/session/close")
def close_session():
    _controller()
    service.close_session()
    return _state(True)
