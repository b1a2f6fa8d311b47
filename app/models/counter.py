from beanie import Document


class Counter(Document):
    """Sequence state for one entity name; _id is the name (e.g. "courseId")."""
    id: str
    seq: int = 0  # last issued value

    class Settings:
        name = "counters"
