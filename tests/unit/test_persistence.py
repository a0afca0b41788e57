from pathlib import Path

import pytest

from exam_service.analytics import build_attempt
from exam_service.assembly import assemble_offline_session, start_generation
from exam_service.catalogue.loader import get_default_catalogue
from exam_service.core.data_models import CoreId, SessionConfig
from exam_service.core.utils import get_rng
from exam_service.persistence import (
    BlobStore,
    ExamRepository,
    FileBlobStore,
    InMemoryBlobStore,
    InvalidKeyError,
    validate_key,
)
from exam_service.scoring import score_exam


class TestValidateKey:
    @pytest.mark.parametrize("key", ["session/abc", "a", "generation/220-1201-x_y.z"])
    def test_valid(self, key: str) -> None:
        assert validate_key(key) == key

    @pytest.mark.parametrize("key", ["", "/abs", "a/../b", "..", "a//b", "a b", "a/"])
    def test_invalid(self, key: str) -> None:
        with pytest.raises(InvalidKeyError):
            validate_key(key)


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> BlobStore:
    if request.param == "memory":
        return InMemoryBlobStore()
    return FileBlobStore(tmp_path / "data")


class TestBlobStores:
    def test_put_get_delete(self, store: BlobStore) -> None:
        assert store.get("session/a") is None
        store.put("session/a", '{"x": 1}')
        assert store.get("session/a") == '{"x": 1}'
        assert store.delete("session/a")
        assert not store.delete("session/a")

    def test_overwrite(self, store: BlobStore) -> None:
        store.put("k", "1")
        store.put("k", "2")
        assert store.get("k") == "2"

    def test_keys_by_prefix(self, store: BlobStore) -> None:
        store.put("session/b", "{}")
        store.put("session/a", "{}")
        store.put("attempt/a", "{}")
        assert store.keys("session/") == ["session/a", "session/b"]
        assert len(store.keys()) == 3


class TestFileBlobStore:
    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = FileBlobStore(tmp_path)
        store.put("generation/s1", "{}")
        store.put("generation/s1", '{"a": 1}')
        files = sorted(p.name for p in (tmp_path / "generation").iterdir())
        assert files == ["s1.json"]

    def test_keys_on_missing_root(self, tmp_path: Path) -> None:
        assert FileBlobStore(tmp_path / "missing").keys() == []


class TestExamRepository:
    def test_generation_state_round_trip(self, store: BlobStore) -> None:
        repository = ExamRepository(store)
        state = start_generation(
            CoreId.CORE_1,
            SessionConfig(),
            get_default_catalogue(),
            session_id="s-1",
            rng=get_rng(0),
        )
        repository.save_generation_state(state)

        assert repository.load_generation_state("s-1") == state
        assert repository.list_generation_ids() == ["s-1"]
        assert repository.load_generation_state("s-2") is None

    def test_session_result_and_discard(self, store: BlobStore) -> None:
        repository = ExamRepository(store)
        session = assemble_offline_session(
            CoreId.CORE_2,
            SessionConfig(),
            get_default_catalogue(),
            session_id="s-9",
            rng=get_rng(1),
        )
        result = score_exam(session, {})
        repository.save_session(session)
        repository.save_result(session.session_id, result)

        assert repository.load_session("s-9") == session
        assert repository.load_result("s-9") == result

        assert repository.discard_session("s-9")
        assert repository.load_session("s-9") is None
        assert repository.load_result("s-9") is None
        assert not repository.discard_session("s-9")

    def test_attempts_sorted_by_submission(self, store: BlobStore) -> None:
        repository = ExamRepository(store)
        catalogue = get_default_catalogue()
        for i, session_id in enumerate(["late", "early"]):
            session = assemble_offline_session(
                CoreId.CORE_1,
                SessionConfig(),
                catalogue,
                session_id=session_id,
                rng=get_rng(i),
                length=5,
            )
            attempt = build_attempt(session, score_exam(session, {}))
            if session_id == "early":
                attempt = attempt.model_copy(
                    update={"submitted_at": attempt.submitted_at.replace(year=2000)}
                )
            repository.save_attempt(attempt)

        assert [a.session_id for a in repository.list_attempts()] == ["early", "late"]
