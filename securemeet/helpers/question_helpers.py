"""Security question storage with one-way hashed answers"""
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import current_app

from securemeet.constants import ANSWER_HASH_TIME_COST, ANSWER_HASH_MEMORY_COST
from securemeet.db_queries import SecurityQuestionQueries
from securemeet.sanitize import clean_input

answer_hasher = PasswordHasher(time_cost=ANSWER_HASH_TIME_COST, memory_cost=ANSWER_HASH_MEMORY_COST)


def normalize_answer(answer):
    return str(answer).strip().lower()


def replace_all(user_id, questions):
    """Replace every question for user in one transaction.

    Each item is a dict with question, answer and optional isActive.
    Items that are not dicts or lack a question or answer are skipped.
    Raises ValueError if more than one item is flagged active.
    """
    rows = []
    for item in questions or []:
        if not isinstance(item, dict):
            continue
        question = item.get('question')
        answer = item.get('answer')
        if not isinstance(question, str) or not isinstance(answer, str):
            continue
        question = clean_input(question.strip())
        if not question or not answer:
            continue
        rows.append((question, answer, bool(item.get('isActive'))))

    if sum(1 for _, _, active in rows if active) > 1:
        raise ValueError('At most one security question can be active')

    hashed = [(question, answer_hasher.hash(normalize_answer(answer)), active)
              for question, answer, active in rows]
    SecurityQuestionQueries.replace_all(user_id, hashed)
    current_app.logger.info('Stored %d security questions for user %s', len(hashed), user_id)
    return len(hashed)


def _serialize(row):
    return {
        'id': row['id'],
        'question': row['question'],
        'isActive': bool(row['is_active']),
        'createdAt': row['created_at'],
    }


def get_active(user_id):
    row = SecurityQuestionQueries.get_active(user_id)
    return _serialize(row) if row else None


def list_questions(user_id):
    return [_serialize(row) for row in SecurityQuestionQueries.get_all_for_user(user_id)]


def verify_answer(user_id, answer):
    """Check an answer against the active question (constant-time hash compare)"""
    row = SecurityQuestionQueries.get_active(user_id)
    if not row or answer is None:
        return False
    try:
        return answer_hasher.verify(row['answer_hash'], normalize_answer(answer))
    except (VerificationError, InvalidHashError):
        return False
