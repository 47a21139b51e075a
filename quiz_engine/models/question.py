from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

OPTION_LETTERS = ("A", "B", "C", "D")


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


# Number of options each question type must carry
EXPECTED_OPTION_COUNTS = {
    QuestionType.MULTIPLE_CHOICE: 4,
    QuestionType.TRUE_FALSE: 2,
    QuestionType.SHORT_ANSWER: 0,
}


class Option(BaseModel):
    id: str
    question_id: str
    letter: str
    text: Optional[str] = None
    is_correct: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "Option":
        return cls(
            id=str(row["id"]),
            question_id=str(row["question_id"]),
            letter=row.get("option_letter") or "",
            text=row.get("option_text"),
            is_correct=bool(row.get("is_correct")),
        )


class Question(BaseModel):
    id: str
    quiz_id: str
    ordinal: int = Field(ge=1)
    text: str = ""
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    points: int = Field(default=1, gt=0)
    explanation: Optional[str] = None
    options: List[Option] = []

    @classmethod
    def from_row(cls, row: dict, options: Optional[List[dict]] = None) -> "Question":
        option_rows = options if options is not None else row.get("options") or []
        parsed = [Option.from_row(o) for o in option_rows]
        # letters follow ordinal position when the store has none
        for index, option in enumerate(parsed):
            if not option.letter and index < len(OPTION_LETTERS):
                option.letter = OPTION_LETTERS[index]
        parsed.sort(key=lambda o: o.letter)
        return cls(
            id=str(row["id"]),
            quiz_id=str(row["quiz_id"]),
            ordinal=row["question_number"],
            text=row.get("question_text") or "",
            type=row.get("question_type") or QuestionType.MULTIPLE_CHOICE,
            points=row.get("points") or 1,
            explanation=row.get("explanation"),
            options=parsed,
        )

    @property
    def is_auto_graded(self) -> bool:
        return self.type != QuestionType.SHORT_ANSWER

    def correct_options(self) -> List[Option]:
        return [o for o in self.options if o.is_correct]

    def correct_option(self) -> Optional[Option]:
        if not self.is_auto_graded:
            return None
        correct = self.correct_options()
        return correct[0] if correct else None

    def has_option(self, option_id: str) -> bool:
        return any(o.id == option_id for o in self.options)

    def integrity_issues(self) -> List[str]:
        """Structural problems with this question's options"""
        issues = []
        expected = EXPECTED_OPTION_COUNTS[self.type]
        if len(self.options) != expected:
            issues.append(f"{self.type.value} expects {expected} options, found {len(self.options)}")
        if self.is_auto_graded:
            correct = len(self.correct_options())
            if correct == 0:
                issues.append("no option is marked correct")
            elif correct > 1:
                issues.append(f"{correct} options are marked correct")
        return issues

    def public_view(self, reveal_answers: bool = False) -> dict:
        """Question as shown to a learner; correctness hidden unless revealed"""
        exclude = None if reveal_answers else {"options": {"__all__": {"is_correct"}}}
        data = self.model_dump(mode="json", exclude=exclude)
        if not reveal_answers:
            data.pop("explanation", None)
        return data
