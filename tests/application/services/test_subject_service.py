"""Tests for SubjectService: cache-aside reads and invalidation on mutation"""
import pytest

from taskboard.application.schemas import (SubjectCreate, SubjectUpdate,
                                           WorkItemCreate)
from taskboard.application.services import SubjectService
from taskboard.domain.enums import SubjectRole, SubjectStatus
from taskboard.domain.exceptions import (ConflictException,
                                         ResourceNotFoundException)
from taskboard.infrastructure.cache.invalidation import CacheInvalidator
from taskboard.infrastructure.cache.redis_cache import CacheService
from taskboard.infrastructure.cache.redis_client import RedisBackend
from taskboard.infrastructure.persistence.repositories import (
    PaginationOptions, SubjectRepository)


def _new_subject(email: str = "ada@example.com", **overrides) -> SubjectCreate:
    return SubjectCreate(
        email=email,
        password_hash="hashed",
        first_name=overrides.pop("first_name", "Ada"),
        last_name=overrides.pop("last_name", "Lovelace"),
        **overrides,
    )


@pytest.fixture
def load_counter(monkeypatch):
    """Count SubjectRepository.find_by_id calls, i.e. store loads behind get_subject"""
    original = SubjectRepository.find_by_id
    calls = {"count": 0}

    async def counting(self, *args, **kwargs):
        calls["count"] += 1
        return await original(self, *args, **kwargs)

    monkeypatch.setattr(SubjectRepository, "find_by_id", counting)
    return calls


class TestCreateAndGet:
    @pytest.mark.asyncio
    async def test_round_trip(self, subject_service):
        """
        GIVEN a newly created subject
        WHEN it is fetched (cache miss) and fetched again (cache hit)
        THEN both reads equal the created value
        """
        created = await subject_service.create_subject(_new_subject(email="Ada@Example.com"))

        first = await subject_service.get_subject(created.id)
        second = await subject_service.get_subject(created.id)

        assert first == created
        assert second == created
        assert created.email == "ada@example.com"
        assert created.full_name == "Ada Lovelace"
        assert created.role == SubjectRole.USER

    @pytest.mark.asyncio
    async def test_get_populates_cache(self, subject_service, fake_redis):
        created = await subject_service.create_subject(_new_subject())
        assert f"subject:{created.id}" not in fake_redis.store

        await subject_service.get_subject(created.id)

        assert f"subject:{created.id}" in fake_redis.store
        assert "password_hash" not in fake_redis.store[f"subject:{created.id}"]

    @pytest.mark.asyncio
    async def test_missing_subject(self, subject_service, fake_redis):
        assert await subject_service.get_subject("missing") is None
        assert "subject:missing" not in fake_redis.store

        with pytest.raises(ResourceNotFoundException):
            await subject_service.get_subject_or_raise("missing")

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, subject_service):
        await subject_service.create_subject(_new_subject(email="ada@example.com"))

        with pytest.raises(ConflictException) as exc_info:
            await subject_service.create_subject(_new_subject(email="ADA@example.com"))

        assert exc_info.value.details["field"] == "email"

    @pytest.mark.asyncio
    async def test_works_without_cache(self, database, settings):
        """An unreachable cache only costs store reads"""
        cache = CacheService(RedisBackend(settings), settings)
        service = SubjectService(database, cache, CacheInvalidator(cache))

        created = await service.create_subject(_new_subject())
        await service.update_subject(created.id, SubjectUpdate(first_name="Augusta"))

        fetched = await service.get_subject(created.id)
        assert fetched is not None
        assert fetched.first_name == "Augusta"


class TestInvalidation:
    @pytest.mark.asyncio
    async def test_update_invalidates_cached_subject(self, subject_service, load_counter):
        """
        GIVEN a cached subject
        WHEN it is read again, then updated, then read
        THEN the second read is served from cache and the read after the update loads again
        """
        created = await subject_service.create_subject(_new_subject())

        before = load_counter["count"]
        await subject_service.get_subject(created.id)
        assert load_counter["count"] == before + 1

        before = load_counter["count"]
        await subject_service.get_subject(created.id)
        assert load_counter["count"] == before

        await subject_service.update_subject(created.id, SubjectUpdate(first_name="Augusta"))

        before = load_counter["count"]
        fetched = await subject_service.get_subject(created.id)
        assert load_counter["count"] == before + 1
        assert fetched.first_name == "Augusta"

    @pytest.mark.asyncio
    async def test_status_change_is_visible(self, subject_service):
        created = await subject_service.create_subject(_new_subject())
        await subject_service.get_subject(created.id)

        suspended = await subject_service.suspend(created.id)

        assert suspended.status == SubjectStatus.SUSPENDED
        assert (await subject_service.get_subject(created.id)).status == SubjectStatus.SUSPENDED
        assert (await subject_service.deactivate(created.id)).status == SubjectStatus.INACTIVE
        assert (await subject_service.activate(created.id)).status == SubjectStatus.ACTIVE
        assert await subject_service.count_active() == 1

    @pytest.mark.asyncio
    async def test_delete_and_restore(self, subject_service):
        created = await subject_service.create_subject(_new_subject())
        await subject_service.get_subject(created.id)

        assert await subject_service.delete_subject(created.id) is True
        assert await subject_service.get_subject(created.id) is None
        assert await subject_service.exists(created.id) is False
        assert await subject_service.delete_subject(created.id) is False

        assert await subject_service.restore_subject(created.id) is True
        restored = await subject_service.get_subject(created.id)
        assert restored.id == created.id
        assert restored.deleted_at is None

    @pytest.mark.asyncio
    async def test_hard_delete(self, subject_service, fake_redis):
        created = await subject_service.create_subject(_new_subject())
        await subject_service.get_subject(created.id)

        assert await subject_service.hard_delete_subject(created.id) is True
        assert f"subject:{created.id}" not in fake_redis.store
        assert await subject_service.get_subject(created.id) is None
        assert await subject_service.hard_delete_subject(created.id) is False

    @pytest.mark.asyncio
    async def test_hard_delete_creator_removes_created_items(
        self, subject_service, work_item_service, fake_redis
    ):
        """
        GIVEN item W created by C and owned by O, with W and O's list cached
        WHEN C is hard-deleted
        THEN W is removed with C and neither W's key nor O's list survives
        """
        creator = await subject_service.create_subject(_new_subject())
        owner = await subject_service.create_subject(_new_subject(email="grace@example.com"))
        w = await work_item_service.create_work_item(
            WorkItemCreate(title="W", creator_id=creator.id, owner_id=owner.id)
        )
        await work_item_service.get_work_item(w.id)
        assert [item.id for item in (await work_item_service.find_by_owner(owner.id)).items] == [w.id]

        assert await subject_service.hard_delete_subject(creator.id) is True

        assert f"workitem:{w.id}" not in fake_redis.store
        assert not any(key.startswith(f"owner_items:{owner.id}:") for key in fake_redis.store)
        assert await work_item_service.get_work_item(w.id) is None
        assert (await work_item_service.find_by_owner(owner.id)).items == []
        assert (await subject_service.get_subject(owner.id)).id == owner.id

    @pytest.mark.asyncio
    async def test_hard_delete_owner_unassigns_owned_items(
        self, subject_service, work_item_service, fake_redis
    ):
        creator = await subject_service.create_subject(_new_subject())
        owner = await subject_service.create_subject(_new_subject(email="grace@example.com"))
        w = await work_item_service.create_work_item(
            WorkItemCreate(title="W", creator_id=creator.id, owner_id=owner.id)
        )
        assert (await work_item_service.get_work_item(w.id)).owner_id == owner.id
        await work_item_service.find_by_owner(owner.id)

        assert await subject_service.hard_delete_subject(owner.id) is True

        assert f"workitem:{w.id}" not in fake_redis.store
        assert not any(key.startswith(f"owner_items:{owner.id}:") for key in fake_redis.store)
        assert (await work_item_service.get_work_item(w.id)).owner_id is None
        assert w.id in [item.id for item in (await work_item_service.find_unassigned()).items]

    @pytest.mark.asyncio
    async def test_set_password_hash(self, subject_service, database):
        created = await subject_service.create_subject(_new_subject())

        await subject_service.set_password_hash(created.id, "rotated")

        async with database.session() as session:
            subject = await SubjectRepository(session).find_by_id(created.id)
        assert subject.password_hash == "rotated"


class TestUpdate:
    @pytest.mark.asyncio
    async def test_email_change_rechecks_uniqueness(self, subject_service):
        ada = await subject_service.create_subject(_new_subject(email="ada@example.com"))
        await subject_service.create_subject(_new_subject(email="grace@example.com"))

        with pytest.raises(ConflictException):
            await subject_service.update_subject(ada.id, SubjectUpdate(email="Grace@example.com"))

        # Re-submitting the subject's own email is not a conflict
        same = await subject_service.update_subject(ada.id, SubjectUpdate(email="ada@example.com"))
        assert same.email == "ada@example.com"

    @pytest.mark.asyncio
    async def test_explicit_none_leaves_field_alone(self, subject_service):
        created = await subject_service.create_subject(_new_subject())

        updated = await subject_service.update_subject(
            created.id, SubjectUpdate(first_name=None, last_name="Byron")
        )

        assert updated.first_name == "Ada"
        assert updated.last_name == "Byron"

    @pytest.mark.asyncio
    async def test_update_missing_subject(self, subject_service):
        with pytest.raises(ResourceNotFoundException):
            await subject_service.update_subject("missing", SubjectUpdate(first_name="X"))


class TestQueries:
    @pytest.mark.asyncio
    async def test_find_by_email(self, subject_service):
        created = await subject_service.create_subject(_new_subject())

        assert await subject_service.find_by_email("ADA@example.com") == created
        assert await subject_service.find_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_lists(self, subject_service):
        for n in range(3):
            await subject_service.create_subject(_new_subject(email=f"user{n}@example.com"))
        admin = await subject_service.create_subject(
            _new_subject(email="admin@example.com", role=SubjectRole.ADMIN)
        )

        page = await subject_service.list_subjects(PaginationOptions(limit=2))
        admins = await subject_service.find_by_role(SubjectRole.ADMIN)
        active = await subject_service.find_by_status(SubjectStatus.ACTIVE)

        assert len(page.items) == 2
        assert page.pagination.total == 4
        assert page.pagination.total_pages == 2
        assert [s.id for s in admins.items] == [admin.id]
        assert active.pagination.total == 4

    @pytest.mark.asyncio
    async def test_get_subject_with_work_items(self, subject_service, work_item_service):
        ada = await subject_service.create_subject(_new_subject())
        grace = await subject_service.create_subject(_new_subject(email="grace@example.com"))
        owned = await work_item_service.create_work_item(
            WorkItemCreate(title="Owned", owner_id=ada.id, creator_id=grace.id)
        )
        created = await work_item_service.create_work_item(
            WorkItemCreate(title="Created", creator_id=ada.id)
        )

        result = await subject_service.get_subject_with_work_items(ada.id)

        assert result.subject == ada
        assert [item.id for item in result.owned_items] == [owned.id]
        assert [item.id for item in result.created_items] == [created.id]
        assert await subject_service.get_subject_with_work_items("missing") is None
