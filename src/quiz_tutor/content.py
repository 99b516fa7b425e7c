"""Question set loading from JSON/YAML files."""
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

import yaml

from quiz_tutor.errors import ContentError, InvalidQuestion
from quiz_tutor.models import Question
from quiz_tutor.review import get_due_items

CONTENT_DIR = Path(__file__).parent / "question_sets"


@dataclass(frozen=True)
class QuestionSet:
    set_id: str
    name: str
    questions: tuple


def read_file_data(file_path: str):
    path = Path(file_path)
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ContentError(f"{path.name}: {exc}") from exc
    raise ContentError(f"{path.name}: unsupported format {suffix or '(none)'}")


def parse_question(data: dict) -> Question:
    try:
        return Question(
            id=str(data["id"]),
            prompt=data["prompt"],
            options=data["options"],
            correct_index=int(data["correct_index"]),
            explanation=data.get("explanation", ""),
            category=data.get("category"),
            difficulty=data.get("difficulty"),
            skill_tags=data.get("skill_tags") or (),
        )
    except KeyError as exc:
        raise ContentError(f"question {data.get('id', '?')} is missing {exc}") from exc
    except (InvalidQuestion, TypeError, ValueError) as exc:
        raise ContentError(f"question {data.get('id', '?')}: {exc}") from exc


def load_question_sets(file_path: str) -> list[QuestionSet]:
    """Read every question set in a file shaped as {"sets": [{set_id, name, questions}]}."""
    data = read_file_data(file_path)
    if not isinstance(data, dict) or not isinstance(data.get("sets"), list):
        raise ContentError(f"{Path(file_path).name}: expected a top-level 'sets' list")
    sets = []
    for raw in data["sets"]:
        if not isinstance(raw, dict):
            raise ContentError(f"{Path(file_path).name}: each set must be a mapping")
        raw_questions = raw.get("questions", [])
        if not isinstance(raw_questions, list) or not all(isinstance(q, dict) for q in raw_questions):
            raise ContentError(f"set {raw.get('set_id')}: 'questions' must be a list of mappings")
        questions = tuple(parse_question(q) for q in raw_questions)
        ids = [q.id for q in questions]
        if len(ids) != len(set(ids)):
            raise ContentError(f"set {raw.get('set_id')}: duplicate question ids")
        sets.append(QuestionSet(
            set_id=str(raw.get("set_id") or Path(file_path).stem),
            name=raw.get("name") or str(raw.get("set_id", "")),
            questions=questions,
        ))
    return sets


def load_bundled_sets() -> list[QuestionSet]:
    sets = []
    for path in sorted(CONTENT_DIR.glob("*.y*ml")) + sorted(CONTENT_DIR.glob("*.json")):
        sets.extend(load_question_sets(str(path)))
    return sets


def filter_questions(
    questions: Iterable[Question],
    category: str = None,
    difficulty: int = None,
    skills: Iterable[str] = None,
) -> list[Question]:
    """Keep questions matching every given criterion; None means "any"."""
    skills = set(skills or ())
    return [
        q for q in questions
        if (category is None or q.category == category)
        and (difficulty is None or q.difficulty == difficulty)
        and (not skills or skills.intersection(q.skill_tags))
    ]


class QuestionBank:
    """All loaded questions, addressable by id."""

    def __init__(self, sets: Iterable[QuestionSet] = ()):
        self.sets: list[QuestionSet] = []
        self._by_id: dict = {}
        for s in sets:
            self.add_set(s)

    def add_set(self, question_set: QuestionSet) -> None:
        self.sets.append(question_set)
        for q in question_set.questions:
            self._by_id[q.id] = q

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def get_many(self, question_ids: Iterable[str]) -> list[Question]:
        return [self._by_id[i] for i in question_ids if i in self._by_id]

    def get_set(self, set_id: str) -> QuestionSet | None:
        return next((s for s in self.sets if s.set_id == set_id), None)

    def next_set(self, set_id: str) -> QuestionSet | None:
        ids = [s.set_id for s in self.sets]
        if set_id not in ids:
            return None
        i = ids.index(set_id)
        return self.sets[i + 1] if i + 1 < len(self.sets) else None

    @property
    def questions(self) -> list[Question]:
        return list(self._by_id.values())

    def categories(self) -> list[str]:
        return sorted({q.category for q in self._by_id.values() if q.category})

    def __len__(self) -> int:
        return len(self._by_id)


def due_questions(db_path: str, bank: QuestionBank, now: datetime = None, limit: int = 20) -> list[Question]:
    """Questions whose review items are due; items for unknown questions are skipped."""
    items = get_due_items(db_path, now=now, limit=limit)
    return bank.get_many(item.question_id for item in items)
