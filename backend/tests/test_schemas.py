import pytest
from pydantic import ValidationError

from practica.schemas import ExamSettings, HistoryItem, Level, Question

from conftest import make_question


def test_question_accepts_json_shape():
    q = Question.model_validate({
        "sentence": "  Demà [BLANK] a València.  ",
        "options": ["anirem", "anem", "anàvem", "aniríem"],
        "correctAnswer": "anirem",
        "explanation": "Futur simple.",
    })
    assert q.sentence == "Demà [BLANK] a València."
    assert q.options == ("anirem", "anem", "anàvem", "aniríem")
    assert q.correct_answer == "anirem"


def test_question_keeps_option_text_verbatim():
    data = {
        "sentence": "Visc en una [BLANK] gran.",
        "options": ["casa ", "cosa", "cas", "caça"],
        "correctAnswer": "casa ",
    }
    q = Question.model_validate(data)
    assert q.options == ("casa ", "cosa", "cas", "caça")
    assert q.correct_answer in q.options
    with pytest.raises(ValidationError):
        Question.model_validate({**data, "correctAnswer": "casa"})


@pytest.mark.parametrize(
    "changes",
    [
        {"correctAnswer": "cap"},
        {"options": ["a", "b", "c"]},
        {"options": ["a", "a", "c", "d"]},
        {"sentence": "[BLANK] i [BLANK]"},
        {"sentence": "   "},
    ],
)
def test_question_rejects_bad_shapes(changes):
    data = {"sentence": "Frase [BLANK].", "options": ["a", "b", "c", "d"], "correctAnswer": "a", "explanation": ""}
    data.update(changes)
    with pytest.raises(ValidationError):
        Question.model_validate(data)


def test_question_is_immutable():
    q = make_question(1)
    with pytest.raises(ValidationError):
        q.correct_answer = "b1"


def test_blank_helpers():
    q = make_question(3)
    assert q.blank_parts() == ["Frase 3 amb ", " buit."]
    assert q.display_sentence() == "Frase 3 amb ______ buit."

    situational = Question(sentence="Com saludes?", options=["a", "b", "c", "d"], correct_answer="a")
    assert situational.blank_parts() == ["Com saludes?"]


def test_exam_settings_defaults_and_bounds():
    s = ExamSettings()
    assert (s.num_questions, s.time_per_question) == (5, 60)
    assert ExamSettings(numQuestions=20, timePerQuestion=30).model_dump(by_alias=True) == {
        "numQuestions": 20,
        "timePerQuestion": 30,
    }
    for bad in ({"numQuestions": 4}, {"numQuestions": 21}, {"timePerQuestion": 29}, {"timePerQuestion": 121}):
        with pytest.raises(ValidationError):
            ExamSettings(**bad)


def test_history_item_round_trips_through_json_aliases():
    item = HistoryItem(level=Level.B2, exercise=make_question(1), selected_answer="b1", is_correct=False, timestamp=5)
    dumped = item.model_dump(mode="json", by_alias=True)
    assert dumped["selectedAnswer"] == "b1"
    assert dumped["exercise"]["correctAnswer"] == "a1"
    assert HistoryItem.model_validate(dumped) == item


def test_history_item_without_level_is_accepted():
    item = HistoryItem.model_validate({
        "exercise": make_question(1).model_dump(by_alias=True),
        "selectedAnswer": "a1",
        "isCorrect": True,
        "timestamp": 1,
    })
    assert item.level is None
