import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_record
from records_api.crud import BaseRepository, RecordRepository, escape_like
from records_api.errors import ConflictError, RecordNotFoundError, RecordValidationError
from records_api.schemas import RecordCreate, RecordUpdate


async def test_create_assigns_id_and_timestamps(repo):
    record = await repo.create(make_record(1))

    assert record.id is not None
    assert record.name == "Person 01"
    assert record.email == "person1@acme.io"
    assert record.created_at is not None
    assert record.created_at == record.updated_at


async def test_create_accepts_validated_schema(repo):
    record = await repo.create(RecordCreate(**make_record(1)))
    assert record.id is not None


async def test_create_strips_surrounding_whitespace(repo):
    record = await repo.create(make_record(1, name="  Person 01  ", message=" hello "))
    assert record.name == "Person 01"
    assert record.message == "hello"


async def test_create_rejects_invalid_input_before_storage(repo):
    with pytest.raises(RecordValidationError) as exc_info:
        await repo.create({"name": "abc", "email": "not-an-email", "message": "hi"})

    fields = {error["field"] for error in exc_info.value.errors}
    assert fields == {"name", "email", "message"}
    assert await repo.count() == 0


async def test_create_rejects_missing_and_overlong_fields(repo):
    with pytest.raises(RecordValidationError) as exc_info:
        await repo.create({"name": "x" * 256, "message": "hello"})

    fields = {error["field"] for error in exc_info.value.errors}
    assert fields == {"name", "email"}


async def test_duplicate_email_is_a_conflict(repo):
    await repo.create(make_record(1))

    with pytest.raises(ConflictError) as exc_info:
        await repo.create(make_record(2, email="person1@acme.io"))

    assert exc_info.value.message == "Email already in use"
    assert exc_info.value.errors == [{"field": "email", "message": "Email already in use"}]
    page = await repo.list_page(search="person1@acme.io")
    assert page.total == 1
    assert await repo.count() == 1


async def test_session_is_usable_after_conflict(repo):
    await repo.create(make_record(1))
    with pytest.raises(ConflictError):
        await repo.create(make_record(2, email="person1@acme.io"))

    record = await repo.create(make_record(3))
    assert record.id is not None
    assert await repo.count() == 2


async def test_list_paginates(repo):
    for i in range(15):
        await repo.create(make_record(i))

    first = await repo.list_page(page=1, limit=10)
    second = await repo.list_page(page=2, limit=10)

    assert len(first.data) == 10
    assert first.total == 15
    assert first.total_pages == 2
    assert first.page == 1
    assert first.limit == 10
    assert len(second.data) == 5
    assert not {r.id for r in first.data} & {r.id for r in second.data}


async def test_list_orders_newest_first(repo):
    ids = [(await repo.create(make_record(i))).id for i in range(5)]

    page = await repo.list_page()

    assert [r.id for r in page.data] == list(reversed(ids))


async def test_list_beyond_last_page_is_empty(repo):
    for i in range(3):
        await repo.create(make_record(i))

    page = await repo.list_page(page=5, limit=10)

    assert page.data == []
    assert page.total == 3
    assert page.total_pages == 1


async def test_list_on_empty_store(repo):
    page = await repo.list_page()

    assert page.data == []
    assert page.total == 0
    assert page.total_pages == 0


async def test_list_search_is_case_insensitive_across_fields(repo):
    await repo.create(make_record(1, email="FOO@x.com"))
    await repo.create(make_record(2, name="Foobar Smith"))
    await repo.create(make_record(3, message="Something about fOo here"))
    await repo.create(make_record(4))

    page = await repo.list_page(search="foo")

    assert page.total == 3
    assert {r.email for r in page.data} == {"FOO@x.com", "person2@acme.io", "person3@acme.io"}


async def test_list_search_matches_wildcards_literally(repo):
    await repo.create(make_record(1, message="I am 100% sure"))
    await repo.create(make_record(2))

    page = await repo.list_page(search="%")

    assert page.total == 1
    assert page.data[0].message == "I am 100% sure"


async def test_list_empty_search_means_no_filter(repo):
    for i in range(3):
        await repo.create(make_record(i))

    page = await repo.list_page(search="")

    assert page.total == 3


async def test_list_rejects_bad_paging(repo):
    with pytest.raises(RecordValidationError) as exc_info:
        await repo.list_page(page=0, limit=0)

    assert {error["field"] for error in exc_info.value.errors} == {"page", "limit"}


async def test_get_missing_record(repo):
    with pytest.raises(RecordNotFoundError):
        await repo.get(999)


async def test_create_then_get_round_trip(app, repo):
    created = await repo.create(make_record(1))
    expected = (created.id, created.name, created.email, created.message, created.created_at)
    # Release the first session's connection before reading through another one
    await repo.db.close()

    async with app.state.sessionmaker() as other_session:
        fetched = await RecordRepository(other_session).get(expected[0])

    assert (fetched.id, fetched.name, fetched.email, fetched.message, fetched.created_at) == expected


async def test_update_missing_record(repo):
    with pytest.raises(RecordNotFoundError):
        await repo.update(999, {"name": "Somebody"})


async def test_update_changes_only_supplied_fields(repo):
    record = await repo.create(make_record(1))
    record_id = record.id
    created_at = record.created_at
    updated_at = record.updated_at

    await asyncio.sleep(0.01)
    updated = await repo.update(record_id, RecordUpdate(message="A brand new message"))

    assert updated.message == "A brand new message"
    assert updated.name == "Person 01"
    assert updated.email == "person1@acme.io"
    assert updated.created_at == created_at
    assert updated.updated_at > updated_at


async def test_update_revalidates_merged_record(repo):
    record = await repo.create(make_record(1))

    with pytest.raises(RecordValidationError):
        await repo.update(record.id, {"name": "abc"})
    with pytest.raises(RecordValidationError):
        await repo.update(record.id, {"name": None})
    with pytest.raises(RecordValidationError):
        await repo.update(record.id, {"nickname": "Bobby"})

    fetched = await repo.get(record.id)
    assert fetched.name == "Person 01"


async def test_update_email_collision_is_a_conflict(repo):
    await repo.create(make_record(1))
    second = await repo.create(make_record(2))
    second_id = second.id

    with pytest.raises(ConflictError):
        await repo.update(second_id, {"email": "person1@acme.io"})

    fetched = await repo.get(second_id)
    assert fetched.email == "person2@acme.io"


async def test_record_stays_usable_after_update_conflict(repo):
    await repo.create(make_record(1))
    second = await repo.create(make_record(2))
    second_id = second.id

    with pytest.raises(ConflictError):
        await repo.update(second_id, {"email": "person1@acme.io"})

    # Attributes are readable without a lazy load
    assert second.id == second_id
    assert second.email == "person2@acme.io"


async def test_update_with_no_fields_is_a_noop(repo):
    record = await repo.create(make_record(1))
    updated_at = record.updated_at

    updated = await repo.update(record.id, RecordUpdate())

    assert updated.updated_at == updated_at


async def test_delete_is_not_idempotent(repo):
    record = await repo.create(make_record(1))

    await repo.delete(record.id)

    with pytest.raises(RecordNotFoundError):
        await repo.get(record.id)
    with pytest.raises(RecordNotFoundError):
        await repo.delete(record.id)


async def test_ids_are_not_reused_after_delete(repo):
    first = await repo.create(make_record(1))
    second = await repo.create(make_record(2))
    await repo.delete(second.id)

    third = await repo.create(make_record(3))

    assert third.id not in (first.id, second.id)


async def test_count_ignores_search_and_paging(repo):
    for i in range(4):
        await repo.create(make_record(i))

    assert await repo.count() == 4


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
    assert escape_like("plain") == "plain"


async def test_email_is_stored_as_submitted(repo):
    record = await repo.create(make_record(1, email="Jane@Example.COM"))

    assert record.email == "Jane@Example.COM"


async def test_special_use_domains_are_accepted(repo):
    record = await repo.create(make_record(1, email="jane@mail.local"))

    assert record.email == "jane@mail.local"


async def test_overlong_email_is_rejected(repo):
    email = "a" * 64 + "@" + ".".join(["b" * 60] * 4) + ".io"

    with pytest.raises(RecordValidationError) as exc_info:
        await repo.create(make_record(1, email=email))

    assert [error["field"] for error in exc_info.value.errors] == ["email"]
    assert "255" in exc_info.value.errors[0]["message"]


async def test_other_integrity_errors_are_not_conflicts(repo):
    await repo.create(make_record(1))

    with pytest.raises(IntegrityError):
        await BaseRepository.create(repo, {"name": None, "email": "jane@acme.io", "message": "Hello"})

    assert await repo.count() == 1


async def test_list_with_huge_page_returns_empty_page(repo):
    for i in range(3):
        await repo.create(make_record(i))

    page = await repo.list_page(page=10**19, limit=10)

    assert page.data == []
    assert page.total == 3
    assert page.page == 10**19


async def test_list_with_huge_limit_returns_everything(repo):
    for i in range(3):
        await repo.create(make_record(i))

    page = await repo.list_page(page=1, limit=10**19)

    assert len(page.data) == 3
    assert page.total_pages == 1
