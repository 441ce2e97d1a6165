"""Unit tests for response envelopes, ApiError and user projections."""

from datetime import datetime, timezone
from uuid import uuid4

from vidtube.errors import ApiError
from vidtube.models.auth import TokenPair
from vidtube.models.response import ApiResponse
from vidtube.models.user import User, UserRecord


class TestApiResponse:

    def test_serializes_status_code_in_camel_case(self):
        response = ApiResponse(status_code=201, data={"id": 1}, message="created")
        dumped = response.model_dump(by_alias=True)

        assert dumped == {
            "statusCode": 201,
            "data": {"id": 1},
            "message": "created",
            "success": True,
        }

    def test_accepts_alias_on_input(self):
        assert ApiResponse(statusCode=200).status_code == 200

    def test_success_follows_status_code(self):
        assert ApiResponse(status_code=399).success is True
        assert ApiResponse(status_code=404, success=True).success is False


class TestApiError:

    def test_envelope(self):
        error = ApiError(409, "User with email or username already exists", errors=["email"])

        assert error.to_envelope() == {
            "success": False,
            "statusCode": 409,
            "message": "User with email or username already exists",
            "errors": ["email"],
            "data": None,
        }

    def test_cause_is_kept_but_not_serialized(self):
        cause = ConnectionError("database unreachable")
        error = ApiError(500, "Something went wrong", cause=cause)

        assert error.cause is cause
        assert "database unreachable" not in str(error.to_envelope())

    def test_defaults(self):
        error = ApiError(500)
        assert error.message == "Something went wrong"
        assert error.errors == []
        assert str(error) == "Something went wrong"


class TestUserRecord:

    def test_to_public_drops_credentials(self):
        now = datetime.now(timezone.utc)
        record = UserRecord(
            id=uuid4(),
            fullname="A B",
            email="a@b.com",
            username="ab",
            avatar="https://media.test/a.png",
            password_hash="$2b$12$hash",
            refresh_token="tok",
            created_at=now,
            updated_at=now,
        )

        public = record.to_public()

        assert type(public) is User
        dumped = public.model_dump()
        assert "password_hash" not in dumped
        assert "refresh_token" not in dumped
        assert dumped["cover_image"] == ""


class TestCamelCasePayloads:

    def test_user_serializes_camel_case(self):
        now = datetime.now(timezone.utc)
        user = User(
            id=uuid4(),
            fullname="A B",
            email="a@b.com",
            username="ab",
            avatar="https://media.test/a.png",
            cover_image="https://media.test/c.png",
            created_at=now,
            updated_at=now,
        )

        dumped = user.model_dump(by_alias=True)

        assert dumped["coverImage"] == "https://media.test/c.png"
        assert "createdAt" in dumped
        assert "cover_image" not in dumped

    def test_token_pair_accepts_either_casing(self):
        from_snake = TokenPair(access_token="a", refresh_token="r")
        from_camel = TokenPair(accessToken="a", refreshToken="r")

        assert from_snake == from_camel
        assert from_camel.model_dump(by_alias=True) == {"accessToken": "a", "refreshToken": "r"}
