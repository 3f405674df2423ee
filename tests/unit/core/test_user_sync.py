import pytest

from src.adspace.core.services import SyncAction, UserSyncService
from src.adspace.entities.core.user import Role, UserRepository


def _user_data(external_id: str = "user_2abc", **overrides) -> dict:
    data = {
        "id": external_id,
        "object": "user",
        "first_name": "Ngozi",
        "last_name": "Eze",
        "image_url": "https://img.clerk.test/ngozi.png",
        "primary_email_address_id": "idn_2",
        "email_addresses": [
            {"id": "idn_1", "email_address": "old@adspace.io"},
            {"id": "idn_2", "email_address": "ngozi@adspace.io"},
        ],
    }
    data.update(overrides)
    return data


class TestUserSyncService:
    def test_created_event_inserts_user(self, user_repository: UserRepository):
        action = UserSyncService(user_repository).apply("user.created", _user_data())

        assert action is SyncAction.CREATED
        user = user_repository.get_by_external_id("user_2abc")
        assert user.email == "ngozi@adspace.io"
        assert user.first_name == "Ngozi"
        assert user.last_name == "Eze"
        assert user.image_url == "https://img.clerk.test/ngozi.png"
        assert user.role is Role.USER

    def test_created_event_for_provisioned_user_updates_in_place(
        self, user_repository: UserRepository, make_user
    ):
        existing = user_repository.create(
            make_user("user_2abc", email="user_user_2abc@temp.com", first_name="User", last_name="")
        )

        action = UserSyncService(user_repository).apply("user.created", _user_data())

        assert action is SyncAction.UPDATED
        user = user_repository.get_by_external_id("user_2abc")
        assert user.id == existing.id
        assert user.email == "ngozi@adspace.io"
        assert user_repository.count_users() == 1

    def test_updated_event_keeps_role_and_email_when_absent(
        self, user_repository: UserRepository, make_user
    ):
        user_repository.create(make_user("user_2abc", role=Role.PROPERTY_OWNER, email="keep@adspace.io"))

        action = UserSyncService(user_repository).apply(
            "user.updated",
            _user_data(email_addresses=[], first_name="Renamed", last_name=None, image_url=None),
        )

        assert action is SyncAction.UPDATED
        user = user_repository.get_by_external_id("user_2abc")
        assert user.role is Role.PROPERTY_OWNER
        assert user.email == "keep@adspace.io"
        assert user.first_name == "Renamed"
        assert user.last_name == ""
        assert user.image_url is None

    def test_updated_event_for_unknown_user_creates_it(self, user_repository: UserRepository):
        action = UserSyncService(user_repository).apply("user.updated", _user_data("user_new"))

        assert action is SyncAction.CREATED
        assert user_repository.get_by_external_id("user_new") is not None

    def test_deleted_event_removes_user(self, user_repository: UserRepository, make_user):
        user_repository.create(make_user("user_2abc"))

        action = UserSyncService(user_repository).apply(
            "user.deleted", {"id": "user_2abc", "object": "user", "deleted": True}
        )

        assert action is SyncAction.DELETED
        assert user_repository.get_by_external_id("user_2abc") is None

    def test_deleted_event_for_unknown_user_is_ignored(self, user_repository: UserRepository):
        action = UserSyncService(user_repository).apply("user.deleted", {"id": "user_gone"})
        assert action is SyncAction.IGNORED

    def test_other_events_are_ignored(self, user_repository: UserRepository):
        action = UserSyncService(user_repository).apply("session.created", {"id": "sess_1"})

        assert action is SyncAction.IGNORED
        assert user_repository.count_users() == 0

    @pytest.mark.parametrize("data", [{}, {"id": ""}, {"id": 42}])
    def test_event_without_user_id_rejected(self, user_repository: UserRepository, data):
        with pytest.raises(ValueError):
            UserSyncService(user_repository).apply("user.created", data)

    def test_created_event_without_email_gets_placeholder(self, user_repository: UserRepository):
        UserSyncService(user_repository).apply(
            "user.created", _user_data("user_noemail", email_addresses=[])
        )

        user = user_repository.get_by_external_id("user_noemail")
        assert user.email.startswith("user_user_noemail@")
