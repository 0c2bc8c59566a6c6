import pytest

from taskvault.errors import AuthorizationError, NotFoundError, ValidationError
from taskvault.repositories import ListQuery
from taskvault.schemas import TaskCreate, TaskUpdate

ALICE = "owner-alice"
BOB = "owner-bob"


def seed(repo, owner, count, prefix="Task"):
    created = []
    for i in range(count):
        status = ("todo", "in-progress", "done")[i % 3]
        created.append(
            repo.create(owner, TaskCreate(title=f"{prefix} {i}", description=f"Desc {i}", status=status))
        )
    return created


class TestCreate:
    def test_description_is_encrypted_at_rest(self, repo, task_store):
        task = repo.create(ALICE, TaskCreate(title="Buy milk", description="2% organic"))
        assert task["description"] == "2% organic"
        stored = task_store.get(task["id"])
        assert stored["description"] != "2% organic"
        assert stored["description"].count(":") == 2

    def test_empty_description_stays_empty(self, repo, task_store):
        task = repo.create(ALICE, TaskCreate(title="No details"))
        assert task["description"] == ""
        assert task_store.get(task["id"])["description"] == ""

    def test_defaults(self, repo):
        task = repo.create(ALICE, TaskCreate(title="  padded  "))
        assert task["title"] == "padded"
        assert task["status"] == "todo"
        assert task["owner_id"] == ALICE
        assert task["created_at"] == task["updated_at"]


class TestList:
    def test_owner_isolation(self, repo):
        seed(repo, ALICE, 3)
        seed(repo, BOB, 2, prefix="Bob")
        items, total = repo.list(ALICE, ListQuery(page_size=50))
        assert total == 3
        assert {t["owner_id"] for t in items} == {ALICE}

    def test_owner_is_required(self, repo):
        with pytest.raises(ValidationError):
            repo.list("", ListQuery())

    def test_descriptions_are_decrypted(self, repo):
        seed(repo, ALICE, 2)
        items, _ = repo.list(ALICE)
        assert sorted(t["description"] for t in items) == ["Desc 0", "Desc 1"]

    def test_newest_first(self, repo):
        created = seed(repo, ALICE, 5)
        items, _ = repo.list(ALICE, ListQuery(page_size=50))
        assert [t["id"] for t in items] == [t["id"] for t in reversed(created)]

    def test_status_filter(self, repo):
        seed(repo, ALICE, 6)
        items, total = repo.list(ALICE, ListQuery(status="done", page_size=50))
        assert total == 2
        assert all(t["status"] == "done" for t in items)
        _, everything = repo.list(ALICE, ListQuery(status="all", page_size=50))
        assert everything == 6

    def test_search_matches_title_case_insensitively(self, repo):
        repo.create(ALICE, TaskCreate(title="Buy MILK"))
        repo.create(ALICE, TaskCreate(title="Walk dog", description="milk for the dog"))
        items, total = repo.list(ALICE, ListQuery(search="milk"))
        assert total == 1
        assert items[0]["title"] == "Buy MILK"

    def test_search_is_literal(self, repo):
        repo.create(ALICE, TaskCreate(title="100% done"))
        repo.create(ALICE, TaskCreate(title="a_b"))
        repo.create(ALICE, TaskCreate(title="abc"))
        assert repo.list(ALICE, ListQuery(search="%"))[1] == 1
        assert repo.list(ALICE, ListQuery(search="_"))[1] == 1
        assert repo.list(ALICE, ListQuery(search=".*"))[1] == 0

    def test_pages_cover_every_item_once(self, repo):
        created = seed(repo, ALICE, 23)
        seen = []
        page = 1
        while True:
            items, total = repo.list(ALICE, ListQuery(page=page, page_size=5))
            assert total == 23
            if not items:
                break
            seen.extend(t["id"] for t in items)
            page += 1
        assert page - 1 == 5
        assert len(seen) == len(set(seen)) == 23
        assert set(seen) == {t["id"] for t in created}

    def test_filtered_pages_cover_every_match_once(self, repo):
        created = seed(repo, ALICE, 23)
        seed(repo, ALICE, 7, prefix="Other")
        expected = {t["id"] for t in created if t["status"] == "todo"}
        assert len(expected) == 8

        seen = []
        for page in range(1, 5):
            items, total = repo.list(ALICE, ListQuery(page=page, page_size=3, status="todo", search="TASK"))
            assert total == 8
            seen.extend(t["id"] for t in items)
        assert len(seen) == len(set(seen)) == 8
        assert set(seen) == expected

    def test_page_far_past_end_is_empty(self, repo):
        seed(repo, ALICE, 3)
        assert repo.list(ALICE, ListQuery(page=10**18, page_size=10)) == ([], 3)

    @pytest.mark.parametrize("query", [ListQuery(page=0), ListQuery(page_size=0), ListQuery(page_size=51)])
    def test_rejects_bad_pagination(self, repo, query):
        with pytest.raises(ValidationError):
            repo.list(ALICE, query)

    def test_rejects_unknown_status(self, repo):
        with pytest.raises(ValidationError):
            repo.list(ALICE, ListQuery(status="archived"))


class TestUpdate:
    def test_status_only_leaves_other_fields(self, repo):
        task = repo.create(ALICE, TaskCreate(title="Buy milk", description="2% organic"))
        updated = repo.update(task["id"], ALICE, {"status": "done"})
        assert updated["status"] == "done"
        assert updated["title"] == "Buy milk"
        assert updated["description"] == "2% organic"
        assert updated["updated_at"] >= task["updated_at"]

    def test_empty_description_clears(self, repo, task_store):
        task = repo.create(ALICE, TaskCreate(title="Buy milk", description="2% organic"))
        updated = repo.update(task["id"], ALICE, {"description": ""})
        assert updated["description"] == ""
        assert task_store.get(task["id"])["description"] == ""

    def test_new_description_is_reencrypted(self, repo, task_store):
        task = repo.create(ALICE, TaskCreate(title="Buy milk", description="2% organic"))
        before = task_store.get(task["id"])["description"]
        updated = repo.update(task["id"], ALICE, TaskUpdate(description="oat milk"))
        after = task_store.get(task["id"])["description"]
        assert updated["description"] == "oat milk"
        assert after != before
        assert after.count(":") == 2

    def test_not_found(self, repo):
        with pytest.raises(NotFoundError):
            repo.update("missing", ALICE, {"status": "done"})

    def test_forbidden_for_other_owner(self, repo):
        task = repo.create(BOB, TaskCreate(title="Bob's"))
        with pytest.raises(AuthorizationError):
            repo.update(task["id"], ALICE, {"status": "done"})
        assert repo.get(task["id"], BOB)["status"] == "todo"

    def test_ownership_checked_before_patch_validation(self, repo):
        task = repo.create(BOB, TaskCreate(title="Bob's"))
        with pytest.raises(AuthorizationError):
            repo.update(task["id"], ALICE, {"status": "not-a-status"})
        with pytest.raises(NotFoundError):
            repo.update("missing", ALICE, {"title": ""})

    def test_invalid_patch(self, repo):
        task = repo.create(ALICE, TaskCreate(title="Mine"))
        with pytest.raises(ValidationError) as exc:
            repo.update(task["id"], ALICE, {"status": "not-a-status", "title": "x" * 201})
        assert set(exc.value.details) == {"status", "title"}


class TestDelete:
    def test_delete(self, repo):
        task = repo.create(ALICE, TaskCreate(title="Mine"))
        repo.delete(task["id"], ALICE)
        with pytest.raises(NotFoundError):
            repo.get(task["id"], ALICE)

    def test_not_found(self, repo):
        with pytest.raises(NotFoundError):
            repo.delete("missing", ALICE)

    def test_forbidden_for_other_owner(self, repo):
        task = repo.create(BOB, TaskCreate(title="Bob's"))
        with pytest.raises(AuthorizationError):
            repo.delete(task["id"], ALICE)
        assert repo.get(task["id"], BOB)["id"] == task["id"]


class TestLegacyData:
    def test_plaintext_description_is_served_as_is(self, repo, task_store):
        task = repo.create(ALICE, TaskCreate(title="Old"))
        task_store.update(task["id"], {"description": "written before encryption"})
        assert repo.get(task["id"], ALICE)["description"] == "written before encryption"
        items, _ = repo.list(ALICE)
        assert items[0]["description"] == "written before encryption"
