"""Authentication service - the source of the current user id."""
from datetime import datetime, timezone

from pymongo.errors import DuplicateKeyError

from habimori.errors import NotFoundError, ValidationError
from habimori.models.user import User
from habimori.utils.auth import create_access_token, hash_password, verify_password
from habimori.utils.ids import parse_object_id


class InvalidCredentialsError(ValidationError):
    """Email/password pair does not match a user."""


class AuthService:
    """Service for handling user authentication."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    def _doc_to_user(self, doc: dict) -> User:
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            name=doc["name"],
            created_at=doc["created_at"],
        )

    async def register_user(self, email: str, password: str, name: str) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: If email is already registered
        """
        email = email.strip().lower()
        if await self.users.find_one({"email": email}):
            raise ValidationError("Email already registered")

        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "name": name.strip(),
            "created_at": datetime.now(timezone.utc),
        }

        try:
            result = await self.users.insert_one(user_doc)
        except DuplicateKeyError:
            raise ValidationError("Email already registered")

        user_doc["_id"] = result.inserted_id
        return self._doc_to_user(user_doc)

    async def login(self, email: str, password: str) -> str:
        """
        Login user and return a JWT access token.

        Raises:
            InvalidCredentialsError: If credentials are invalid
        """
        user_doc = await self.users.find_one({"email": email.strip().lower()})
        if not user_doc or not verify_password(password, user_doc["hashed_password"]):
            raise InvalidCredentialsError("Invalid email or password")

        return create_access_token(user_id=str(user_doc["_id"]))

    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            NotFoundError: If user not found
        """
        user_doc = await self.users.find_one({"_id": parse_object_id(user_id, "User")})
        if not user_doc:
            raise NotFoundError("User not found")

        return self._doc_to_user(user_doc)
