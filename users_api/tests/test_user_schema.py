"""
Tests for the user entity.
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.schemas.user import CustomData, User


def _user(**overrides):
    data = {
        "id": uuid4(),
        "name": "Rob",
        "birth_date": date(1977, 3, 10),
        "custom_data": {"random": 1},
    }
    data.update(overrides)
    return User(**data)


class TestValidation:
    """Field invariants."""

    def test_defaults(self):
        user = _user()
        assert user.created_at is None
        assert user.updated_at is None
        assert user.custom_data == CustomData(random=1)

    @pytest.mark.parametrize("name", ["", "  \t"])
    def test_blank_name_rejected(self, name):
        with pytest.raises(ValidationError):
            _user(name=name)

    def test_datetime_birth_date_rejected(self):
        with pytest.raises(ValidationError):
            _user(birth_date=datetime(1977, 3, 10, 8, 30))

    def test_iso_birth_date_accepted(self):
        assert _user(birth_date="1977-03-10").birth_date == date(1977, 3, 10)

    def test_custom_data_requires_random(self):
        with pytest.raises(ValidationError):
            _user(custom_data={"other": 1})

    def test_custom_data_keeps_extra_keys(self):
        user = _user(custom_data={"random": 2, "nested": {"k": [1]}})
        assert user.custom_data.model_dump(mode="json") == {"random": 2, "nested": {"k": [1]}}


class TestHelpers:
    """Copies and storage values."""

    def test_stamped_returns_independent_copy(self):
        user = _user()
        now = datetime(2024, 5, 1, tzinfo=timezone.utc)

        stamped = user.stamped(created_at=now, updated_at=None)
        stamped.custom_data.random = 50

        assert stamped.created_at == now
        assert user.created_at is None
        assert user.custom_data.random == 1

    def test_storage_values(self):
        user = _user(custom_data={"random": 4, "x": "y"})
        assert user.storage_values() == {
            "name": "Rob",
            "birth_date": date(1977, 3, 10),
            "custom_data": {"random": 4, "x": "y"},
        }

    def test_stamped_stores_custom_data_as_json(self):
        user = _user(custom_data=CustomData(random=1, since=date(2020, 1, 1), ratio=(1, 2)))

        stamped = user.stamped(created_at=None, updated_at=None)

        assert stamped.custom_data.model_dump() == {
            "random": 1,
            "since": "2020-01-01",
            "ratio": [1, 2],
        }
