"""Error kinds raised by the session engine and its stores."""


class QuizError(Exception):
    """Base class for quiz engine errors."""


class InvalidQuestion(QuizError):
    pass


class ContentError(QuizError):
    pass


class NoQuestionsAvailable(QuizError):
    pass


class NoCurrentQuestion(QuizError):
    pass


class AnswerAlreadyLocked(QuizError):
    def __init__(self, question_id: str):
        super().__init__(f"answer for {question_id} is already locked")
        self.question_id = question_id


class IndexOutOfRange(QuizError):
    def __init__(self, index: int, option_count: int):
        super().__init__(f"option {index} out of range (0..{option_count - 1})")
        self.index = index
        self.option_count = option_count


class InvalidTransition(QuizError):
    pass


class PersistenceFailure(QuizError):
    pass
