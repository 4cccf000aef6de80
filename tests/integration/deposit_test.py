"""Integration tests for deposits, deposit tasks and import jobs."""

import pytest
from conftest import CREATED_PID, DEFAULT_PID, FakeRepository, write_bag

from dvingest.domain.errors import DuplicateJob, InvalidInstructions
from dvingest.orchestrators.deposit import Deposit, DepositStatus, DepositTask, read_properties, write_properties
from dvingest.orchestrators.import_jobs import ImportJobRegistry, JobStatus


def write_deposit(root, timestamp="2023-08-16T17:40:41.390209+02:00", updates_dataset=None, bags=None):
    """Lay out a deposit with ``bags`` mapping bag name to ``write_bag`` documents."""
    root.mkdir(parents=True)
    lines = [f"creation.timestamp={timestamp}"]
    if updates_dataset:
        lines.append(f"updates-dataset={updates_dataset}")
    (root / "deposit.properties").write_text("\n".join(lines) + "\n")
    for name, documents in (bags or {}).items():
        write_bag(root / name, **documents)
    return root


class TestProperties:
    def test_round_trip_with_newlines(self, tmp_path):
        path = tmp_path / "deposit.properties"
        write_properties(path, {"state.label": "FAILED", "state.description": "line one\nline two"})

        assert path.read_text().startswith("# Updated by dvingest\n")
        assert read_properties(path) == {"state.label": "FAILED", "state.description": "line one\nline two"}

    def test_skips_comments_and_blank_lines(self, tmp_path):
        path = tmp_path / "deposit.properties"
        path.write_text("# comment\n\n! other\nkey = value\nother: x\n")

        assert read_properties(path) == {"key": "value", "other": "x"}


class TestDeposit:
    def test_requires_properties(self, tmp_path):
        (tmp_path / "dep").mkdir()

        with pytest.raises(InvalidInstructions, match="deposit.properties"):
            Deposit(tmp_path / "dep")

    def test_requires_timestamp(self, tmp_path):
        location = tmp_path / "dep"
        location.mkdir()
        (location / "deposit.properties").write_text("updates-dataset=doi:1\n")

        with pytest.raises(InvalidInstructions, match="creation timestamp"):
            Deposit(location)

    def test_bags_in_name_order(self, tmp_path):
        deposit = Deposit(write_deposit(tmp_path / "dep", bags={"b2": {}, "b1": {}}))

        assert [str(bag) for bag in deposit.get_bags()] == ["b1", "b2"]
        assert deposit.updates_dataset is None


class TestDepositTask:
    def test_success_records_doi_and_moves(self, tmp_path, settings, dataset_yml):
        repository = FakeRepository()
        deposit = Deposit(write_deposit(settings.inbox / "dep", bags={"bag": {"dataset": dataset_yml}}))

        status = DepositTask(deposit, settings.outbox, repository, settings).run()

        assert status is DepositStatus.SUCCESS
        processed = settings.outbox / "processed" / "dep"
        assert processed.is_dir()
        assert not (settings.inbox / "dep").exists()
        assert read_properties(processed / "deposit.properties")["identifier.doi"] == CREATED_PID

    def test_later_bags_update_created_dataset(self, tmp_path, settings, dataset_yml):
        repository = FakeRepository()
        deposit = Deposit(
            write_deposit(settings.inbox / "dep", bags={"1": {"dataset": dataset_yml}, "2": {"dataset": dataset_yml}})
        )

        DepositTask(deposit, settings.outbox, repository, settings).run()

        assert len(repository.calls_to("create_dataset")) == 1
        assert [args[0] for args in repository.calls_to("update_metadata")] == [CREATED_PID, CREATED_PID]

    def test_rejected(self, tmp_path, settings):
        repository = FakeRepository(state="RELEASED")
        deposit = Deposit(
            write_deposit(
                settings.inbox / "dep",
                updates_dataset=DEFAULT_PID,
                bags={"bag": {"init": {"init": {"expect": {"state": "draft"}}}}},
            )
        )

        status = DepositTask(deposit, settings.outbox, repository, settings).run()

        assert status is DepositStatus.REJECTED
        properties = read_properties(settings.outbox / "rejected" / "dep" / "deposit.properties")
        assert properties["state.label"] == "REJECTED"
        assert "Expected state draft" in properties["state.description"]
        assert properties["identifier.doi"] == DEFAULT_PID

    def test_failure_records_pid_known_so_far(self, tmp_path, settings, dataset_yml):
        repository = FakeRepository()
        repository.fail_on["add_files"] = 0
        deposit = Deposit(
            write_deposit(settings.inbox / "dep", bags={"bag": {"dataset": dataset_yml, "files": {"a.txt": "a"}}})
        )

        status = DepositTask(deposit, settings.outbox, repository, settings).run()

        assert status is DepositStatus.FAILED
        properties = read_properties(settings.outbox / "failed" / "dep" / "deposit.properties")
        assert properties["state.label"] == "FAILED"
        assert properties["identifier.doi"] == CREATED_PID

    def test_invalid_instructions_fail_without_remote_calls(self, tmp_path, settings):
        repository = FakeRepository()
        deposit = Deposit(
            write_deposit(settings.inbox / "dep", bags={"bag": {"update_state": {"updateState": {}}}})
        )

        status = DepositTask(deposit, settings.outbox, repository, settings).run()

        assert status is DepositStatus.FAILED
        assert repository.calls == []

    def test_deposit_without_bags_fails(self, tmp_path, settings):
        deposit = Deposit(write_deposit(settings.inbox / "dep"))

        assert DepositTask(deposit, settings.outbox, FakeRepository(), settings).run() is DepositStatus.FAILED


class TestImportJobRegistry:
    def test_single_deposit(self, tmp_path, settings, dataset_yml):
        location = write_deposit(settings.inbox / "dep", bags={"bag": {"dataset": dataset_yml}})

        with ImportJobRegistry(FakeRepository(), settings) as registry:
            job = registry.submit(location)
            job.future.result()

        assert job.status is JobStatus.DONE
        assert job.results == {"dep": DepositStatus.SUCCESS}
        assert (settings.outbox / "processed" / "dep").is_dir()

    def test_batch_in_creation_order(self, tmp_path, settings, dataset_yml):
        batch = settings.inbox / "batch"
        write_deposit(batch / "late", timestamp="2024-01-02T00:00:00", bags={"bag": {"dataset": dataset_yml}})
        write_deposit(batch / "early", timestamp="2024-01-01T00:00:00", bags={"bag": {"dataset": dataset_yml}})

        with ImportJobRegistry(FakeRepository(), settings) as registry:
            job = registry.submit(batch, single_object=False)
            job.future.result()

        assert list(job.results) == ["early", "late"]
        assert (settings.outbox / "batch" / "processed" / "early").is_dir()

    def test_duplicate_active_job(self, tmp_path, settings):
        location = write_deposit(settings.inbox / "dep")
        registry = ImportJobRegistry(FakeRepository(), settings)
        # Keep the job pending by not letting the pool run it
        registry._executor.submit = lambda fn, *args: None
        try:
            registry.submit(location)
            with pytest.raises(DuplicateJob):
                registry.submit(location)
            assert registry.cancel(location)
        finally:
            registry.shutdown()

    def test_cancel_unknown(self, tmp_path, settings):
        with ImportJobRegistry(FakeRepository(), settings) as registry:
            assert not registry.cancel(tmp_path / "nothing")
