from __future__ import annotations
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .errors import ContentGenerationError
from .gemini_client import GeminiClient
from .schemas import Level, Question, Skill


logger = logging.getLogger(__name__)

MAX_RECENT_SENTENCES = 20
PLACEMENT_TEST_SIZE = 10

EXERCISE_FAILED = "No s'ha pogut generar l'exercici. Intenta-ho de nou."
EXAM_FAILED = "No s'ha pogut generar el simulacre d'examen. Intenta-ho de nou."
PLACEMENT_FAILED = "No s'ha pogut generar el test de nivell. Intenta-ho de nou."


EXERCISE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "sentence": {
            "type": "STRING",
            "description": (
                "La frase, el text o la situació de l'exercici. Pot contenir un '[BLANK]' "
                "per als exercicis d'omplir buits, o ser una pregunta o un text curt."
            ),
        },
        "options": {
            "type": "ARRAY",
            "items": {"type": "STRING"},
            "description": "Exactament quatre respostes possibles, totes diferents.",
        },
        "correctAnswer": {
            "type": "STRING",
            "description": "El text exacte de l'única opció correcta.",
        },
        "explanation": {
            "type": "STRING",
            "description": (
                "Explicació breu i clara de per què la resposta és correcta, centrada en la "
                "regla gramatical, lèxica o pragmàtica avaluada."
            ),
        },
    },
    "required": ["sentence", "options", "correctAnswer", "explanation"],
}

EXERCISE_LIST_SCHEMA: Dict[str, Any] = {"type": "ARRAY", "items": EXERCISE_SCHEMA}


FILL_IN_THE_BLANK = (
    "Genera un exercici d'omplir buits: una única frase amb un espai en blanc marcat com a '[BLANK]', "
    "quatre opcions de les quals només una és correcta, i una explicació detallada de la resposta correcta."
)

SKILL_INSTRUCTIONS: Dict[Skill, str] = {
    Skill.COMPRENSIO: (
        "Presenta un text curt (2-4 frases) seguit d'una pregunta d'opció múltiple sobre la informació "
        "o les inferències del text. Les opcions han de ser plausibles. El camp 'sentence' ha d'incloure "
        "el text i la pregunta."
    ),
    Skill.ESTRUCTURES: FILL_IN_THE_BLANK,
    Skill.EXPRESSIO_ESCRITA: (
        "Genera una pregunta d'opció múltiple sobre un aspecte pràctic de l'expressió escrita en valencià: "
        "l'inici d'una carta formal, un connector adequat o la frase més adient per a un context concret. "
        "El camp 'sentence' ha de contenir la situació o la pregunta."
    ),
    Skill.EXPRESSIO_ORAL: (
        "Genera una pregunta d'opció múltiple sobre un aspecte pràctic de l'expressió oral en valencià: "
        "una fórmula de cortesia, la resposta a una pregunta d'entrevista o l'expressió més adient per a "
        "una situació comunicativa. El camp 'sentence' ha de contenir la situació o la pregunta."
    ),
}


class ContentSource:
    """Produces questions. Raises ConfigError or ContentGenerationError."""

    async def fetch_exercise(self, level: Level, skill: Skill, recent: Sequence[str] = ()) -> Question:
        raise NotImplementedError

    async def fetch_exam(self, level: Level, num_questions: int) -> List[Question]:
        raise NotImplementedError

    async def fetch_placement_test(self) -> List[Question]:
        raise NotImplementedError


def build_exercise_prompt(level: Level, skill: Skill, recent: Sequence[str] = ()) -> str:
    instruction = SKILL_INSTRUCTIONS.get(skill, FILL_IN_THE_BLANK)
    prompt = (
        "Ets una persona experta en llengua valenciana i examinadora oficial de la JQCV.\n"
        f"Genera un exercici d'opció múltiple de nivell {level.value} de valencià, de l'àrea '{skill.value}'.\n"
        f"{instruction}\n"
        "L'exercici ha de servir per a preparar un examen oficial, amb un valencià natural i representatiu "
        "d'aquest nivell.\n"
        "Retorna només JSON seguint l'esquema proporcionat."
    )
    recent = [s for s in recent if s][:MAX_RECENT_SENTENCES]
    if recent:
        seen = "\n".join(f'- "{s}"' for s in recent)
        prompt += (
            "\nIMPORTANT: l'usuari ja ha vist recentment els exercicis següents. Genera'n un de completament "
            f"nou, que no en siga una repetició ni una variació propera:\n{seen}"
        )
    return prompt


def build_exam_prompt(level: Level, num_questions: int) -> str:
    return (
        "Ets una persona experta en llengua valenciana i examinadora oficial de la JQCV.\n"
        f"Genera un mini-simulacre d'examen de nivell {level.value} de valencià amb {num_questions} "
        "preguntes d'opció múltiple d'omplir el buit.\n"
        "Cada pregunta ha de tindre una frase amb un espai marcat com a '[BLANK]', quatre opcions, "
        "la resposta correcta i una explicació detallada.\n"
        f"Les preguntes han de cobrir aspectes diferents de la gramàtica i el vocabulari del nivell {level.value}.\n"
        "Retorna un array d'objectes JSON seguint l'esquema proporcionat."
    )


def build_placement_prompt() -> str:
    return (
        "Ets una persona experta en llengua valenciana.\n"
        f"Genera un test de nivell de {PLACEMENT_TEST_SIZE} preguntes per a determinar si l'usuari té un "
        "nivell B1, B2, C1 o C2 de valencià.\n"
        "Les preguntes han de ser d'opció múltiple d'omplir el buit, amb dificultat progressiva: "
        "2 de nivell B1, 3 de B2, 3 de C1 i 2 de C2, en aquest ordre.\n"
        "Cada pregunta ha de tindre una frase amb un espai marcat com a '[BLANK]', quatre opcions, "
        "la resposta correcta i una explicació.\n"
        f"Retorna un array de {PLACEMENT_TEST_SIZE} objectes JSON seguint l'esquema proporcionat."
    )


def _extract_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        pass
    code_block = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
    if code_block:
        try:
            return json.loads(code_block.group(1))
        except ValueError:
            pass
    # outermost bracket pair first, whichever kind opens earlier
    pairs = sorted((("[", "]"), ("{", "}")), key=lambda p: (text.find(p[0]) == -1, text.find(p[0])))
    for opener, closer in pairs:
        first = text.find(opener)
        last = text.rfind(closer)
        if first != -1 and last > first:
            try:
                return json.loads(text[first : last + 1])
            except ValueError:
                continue
    raise ValueError("no JSON found in model output")


def parse_question(data: Any) -> Question:
    if not isinstance(data, dict):
        raise ValueError(f"question must be an object, got {type(data).__name__}")
    return Question.model_validate(data)


def parse_questions(data: Any) -> List[Question]:
    if isinstance(data, dict):
        # some responses wrap the list, e.g. {"questions": [...]}
        lists = [v for v in data.values() if isinstance(v, list)]
        if len(lists) != 1:
            raise ValueError("expected a JSON array of questions")
        data = lists[0]
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of questions")
    return [parse_question(item) for item in data]


class GeminiContentSource(ContentSource):
    def __init__(self, client_factory: Optional[Callable[[], GeminiClient]] = None) -> None:
        self._client_factory = client_factory or GeminiClient

    async def _ask(self, prompt: str, schema: Dict[str, Any], failure_message: str) -> Any:
        # ConfigError from the factory propagates untouched
        client = self._client_factory()
        try:
            raw = await client.generate_json(prompt, schema)
            return _extract_json(raw.strip())
        except ContentGenerationError as e:
            logger.error("Content generation failed: %s", e.message)
            raise ContentGenerationError(failure_message) from e
        except ValueError as e:
            logger.error("Model output is not JSON: %s", e)
            raise ContentGenerationError(failure_message) from e
        finally:
            await client.aclose()

    async def fetch_exercise(self, level: Level, skill: Skill, recent: Sequence[str] = ()) -> Question:
        data = await self._ask(build_exercise_prompt(level, skill, recent), EXERCISE_SCHEMA, EXERCISE_FAILED)
        if isinstance(data, list) and data:
            data = data[0]
        try:
            return parse_question(data)
        except (ValidationError, ValueError) as e:
            logger.error("Invalid exercise from model: %s", e)
            raise ContentGenerationError(EXERCISE_FAILED) from e

    async def fetch_exam(self, level: Level, num_questions: int) -> List[Question]:
        data = await self._ask(build_exam_prompt(level, num_questions), EXERCISE_LIST_SCHEMA, EXAM_FAILED)
        try:
            questions = parse_questions(data)
        except (ValidationError, ValueError) as e:
            logger.error("Invalid exam from model: %s", e)
            raise ContentGenerationError(EXAM_FAILED) from e
        if len(questions) < num_questions:
            logger.error("Model returned %d exam questions, %d requested", len(questions), num_questions)
            raise ContentGenerationError(EXAM_FAILED)
        return questions[:num_questions]

    async def fetch_placement_test(self) -> List[Question]:
        data = await self._ask(build_placement_prompt(), EXERCISE_LIST_SCHEMA, PLACEMENT_FAILED)
        try:
            questions = parse_questions(data)
        except (ValidationError, ValueError) as e:
            logger.error("Invalid placement test from model: %s", e)
            raise ContentGenerationError(PLACEMENT_FAILED) from e
        if len(questions) < PLACEMENT_TEST_SIZE:
            logger.error("Model returned %d placement questions", len(questions))
            raise ContentGenerationError(PLACEMENT_FAILED)
        return questions[:PLACEMENT_TEST_SIZE]
