from app.core.exceptions import InvalidArgumentError, NotFoundError
from app.core.logging import get_logger
from app.models.user import User
from app.services.counters import get_next_id

log = get_logger(__name__)

ROLES = ("student", "instructor", "admin")


async def create_user(name: str, email: str, role: str = "student", coins: int = 0) -> User:
    """Insert a user under the next id of the "userId" range."""
    if role not in ROLES:
        raise InvalidArgumentError(f"Invalid role: {role}")
    if coins < 0:
        raise InvalidArgumentError("Coins cannot be negative")
    email = email.strip().lower()
    if await User.find_one(User.email == email):
        raise InvalidArgumentError("Email already exists")
    user = User(id=await get_next_id("userId"), name=name.strip(), email=email, role=role, coins=coins)
    await user.insert()
    log.info("user_created", user_id=user.id, role=role)
    return user


async def get_user(user_id: int) -> User:
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user
