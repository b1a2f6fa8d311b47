from app.models.counter import Counter
from app.models.course import Course
from app.models.transaction_log import TransactionLog
from app.models.user import Enrollment, User

__all__ = [
    "Counter",
    "Course",
    "Enrollment",
    "TransactionLog",
    "User",
]
