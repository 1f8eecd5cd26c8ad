# ============================================================================
# DOMAIN MODEL TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - Core model unit tests
# PURPOSE: Verify enums, models, state transitions and checksums
# CREATED: 16 OCT 2026
# ============================================================================
"""
Domain Model Tests

Unit tests for the core model layer:
- Enums: TaskStatus, TaskPriority, BuildStage
- Models: BuildJob, ArtifactBag, BuildSpecification, DomainEvent, Provider
- State transitions and computed fields
- Content checksums

Run with:
    pytest tests/test_domain_models.py -v
"""

import pytest
from datetime import timedelta

from pydantic import ValidationError as PydanticValidationError

from core.contracts import ArtifactCategory, BuildStage, TaskPriority, TaskStatus
from core.errors import InvalidTransitionError
from core.models.blueprint import (
    BuildSpecification,
    EntityDefinition,
    FieldDefinition,
    FieldType,
    RelationshipDefinition,
    pluralize,
)
from core.models.build import Artifact, ArtifactBag, BuildError, BuildJob, compute_checksum
from core.models.events import DomainEvent, EventType
from core.models.task import Provider, Task


# ============================================================================
# ENUM TESTS
# ============================================================================


class TestTaskStatus:
    def test_values(self):
        assert TaskStatus.QUEUED.value == "queued"
        assert TaskStatus.CANCELLED.value == "cancelled"

    def test_is_terminal(self):
        assert not TaskStatus.QUEUED.is_terminal()
        assert not TaskStatus.RUNNING.is_terminal()
        assert TaskStatus.COMPLETED.is_terminal()
        assert TaskStatus.FAILED.is_terminal()
        assert TaskStatus.CANCELLED.is_terminal()


class TestTaskPriority:
    def test_rank_order(self):
        ranks = [p.rank for p in (TaskPriority.CRITICAL, TaskPriority.HIGH, TaskPriority.NORMAL, TaskPriority.LOW)]
        assert ranks == sorted(ranks, reverse=True)


class TestBuildStage:
    def test_values(self):
        assert BuildStage.GENERATING_SCHEMA.value == "generating-schema"
        assert BuildStage.RUNNING_TESTS.value == "running-tests"

    def test_progress_checkpoints_increase(self):
        order = [
            BuildStage.IDLE,
            BuildStage.VALIDATING,
            BuildStage.GENERATING_SCHEMA,
            BuildStage.GENERATING_BACKEND,
            BuildStage.GENERATING_FRONTEND,
            BuildStage.GENERATING_INFRA,
            BuildStage.RUNNING_TESTS,
            BuildStage.DEPLOYING,
            BuildStage.COMPLETED,
        ]
        progress = [stage.progress for stage in order]
        assert progress == sorted(progress)
        assert progress[0] == 0
        assert progress[-1] == 100


# ============================================================================
# BUILD JOB
# ============================================================================


class TestBuildJob:
    def test_creation_with_defaults(self):
        job = BuildJob(specification_id="spec-1")
        assert job.job_id.startswith("build-")
        assert job.stage == BuildStage.IDLE
        assert job.progress == 0
        assert job.artifacts_ready is False
        assert job.started_at is None

    def test_advance_sets_progress_and_start(self):
        job = BuildJob(specification_id="spec-1")
        job.advance(BuildStage.VALIDATING)
        job.advance(BuildStage.GENERATING_SCHEMA)
        assert job.progress == 20
        assert job.started_at is not None

    def test_deploying_may_be_skipped(self):
        job = BuildJob(specification_id="spec-1")
        job.advance(BuildStage.RUNNING_TESTS)
        job.advance(BuildStage.COMPLETED)
        assert job.progress == 100
        assert job.completed_at is not None
        assert job.is_terminal

    def test_advance_backwards_fails(self):
        job = BuildJob(specification_id="spec-1")
        job.advance(BuildStage.GENERATING_BACKEND)
        with pytest.raises(InvalidTransitionError):
            job.advance(BuildStage.GENERATING_SCHEMA)

    def test_fail_records_stage(self):
        job = BuildJob(specification_id="spec-1")
        job.advance(BuildStage.GENERATING_FRONTEND)
        job.fail(BuildError(code="GENERATION_FAILED", message="bad"))
        assert job.stage == BuildStage.FAILED
        assert job.errors[0].stage == BuildStage.GENERATING_FRONTEND
        assert job.progress == 60

    def test_terminal_job_is_frozen(self):
        job = BuildJob(specification_id="spec-1")
        job.fail(BuildError(code="X", message="y"))
        with pytest.raises(InvalidTransitionError):
            job.advance(BuildStage.VALIDATING)
        with pytest.raises(InvalidTransitionError):
            job.fail(BuildError(code="X", message="again"))

    def test_log_uses_current_stage(self):
        job = BuildJob(specification_id="spec-1")
        job.advance(BuildStage.VALIDATING)
        entry = job.log("checking")
        assert entry.stage == BuildStage.VALIDATING
        assert job.logs == [entry]

    def test_json_round_trip(self):
        job = BuildJob(specification_id="spec-1", tenant_id="acme")
        job.advance(BuildStage.VALIDATING)
        restored = BuildJob.model_validate(job.model_dump(mode="json"))
        assert restored.stage == BuildStage.VALIDATING
        assert restored.tenant_id == "acme"


# ============================================================================
# ARTIFACTS
# ============================================================================


class TestChecksum:
    def test_known_values(self):
        assert compute_checksum("") == "0"
        assert compute_checksum("a") == "61"
        assert compute_checksum("abc") == "17862"

    def test_negative_hash_uses_absolute_value(self):
        value = compute_checksum("the quick brown fox jumps over the lazy dog")
        assert not value.startswith("-")
        assert int(value, 16) <= 0x80000000


class TestArtifactBag:
    def test_every_category_present(self):
        bag = ArtifactBag()
        assert set(bag.files) == set(ArtifactCategory)
        assert bag.total == 0

    def test_add_find_counts(self):
        bag = ArtifactBag()
        bag.extend([
            Artifact.create("schema/001_init.sql", "CREATE TABLE x ();", ArtifactCategory.SCHEMA, "sql"),
            Artifact.create("backend/main.py", "app = 1", ArtifactCategory.BACKEND, "python"),
        ])

        assert bag.total == 2
        assert bag.counts()["schema"] == 1
        assert bag.counts()["documentation"] == 0
        assert bag.find("backend/main.py").checksum == compute_checksum("app = 1")
        assert bag.find("missing") is None

    def test_get_returns_copy_of_list(self):
        bag = ArtifactBag()
        bag.add(Artifact.create("a", "b", ArtifactCategory.TESTS))
        bag.get(ArtifactCategory.TESTS).clear()
        assert len(bag.get(ArtifactCategory.TESTS)) == 1

    def test_json_round_trip(self):
        bag = ArtifactBag()
        bag.add(Artifact.create("a.sql", "x", ArtifactCategory.SCHEMA))
        restored = ArtifactBag.model_validate(bag.model_dump(mode="json"))
        assert restored.find("a.sql").category == ArtifactCategory.SCHEMA


# ============================================================================
# SPECIFICATION
# ============================================================================


class TestBuildSpecification:
    def test_empty_spec_problem(self):
        assert BuildSpecification().validation_problems() == ["Specification must define at least one entity"]

    def test_entity_without_fields(self):
        spec = BuildSpecification(entities=[EntityDefinition(name="Ghost")])
        assert spec.validation_problems() == ["Entity 'Ghost' must define at least one field"]

    def test_relationship_to_unknown_entity(self):
        spec = BuildSpecification(
            entities=[EntityDefinition(name="A", fields=[FieldDefinition(name="x")])],
            relationships=[RelationshipDefinition(type="one-to-many", source="A", target="B")],
        )
        assert spec.validation_problems() == ["Relationship references unknown entity 'B'"]

    def test_valid_spec(self):
        spec = BuildSpecification(entities=[EntityDefinition(name="A", fields=[FieldDefinition(name="x")])])
        assert spec.validation_problems() == []

    def test_enum_requires_values(self):
        with pytest.raises(PydanticValidationError):
            FieldDefinition(name="status", type=FieldType.ENUM)

    def test_relationship_type_pattern(self):
        with pytest.raises(PydanticValidationError):
            RelationshipDefinition(type="some-to-some", source="A", target="B")

    def test_table_names(self):
        assert EntityDefinition(name="Invoice").resolved_table_name == "invoices"
        assert EntityDefinition(name="LineItem").resolved_table_name == "line_items"
        assert EntityDefinition(name="Category").resolved_table_name == "categories"
        assert EntityDefinition(name="Box").resolved_table_name == "boxes"
        assert EntityDefinition(name="Day").resolved_table_name == "days"

    def test_multi_word_names(self):
        entity = EntityDefinition(name="Order Item")
        assert entity.resolved_table_name == "order_items"
        assert entity.class_name == "OrderItem"
        assert EntityDefinition(name="line-item").class_name == "LineItem"
        assert EntityDefinition(name="LineItem").class_name == "LineItem"

    def test_pluralize(self):
        assert pluralize("address") == "addresses"
        assert pluralize("church") == "churches"


# ============================================================================
# EVENTS
# ============================================================================


class TestDomainEvent:
    def test_create_accepts_enum(self):
        event = DomainEvent.create(EventType.GENERATION_STARTED, {"job_id": "j"})
        assert event.event_type == "generation.started"
        assert event.correlation_id
        assert event.sequence is None

    def test_frozen(self):
        event = DomainEvent.create("demo.x")
        with pytest.raises(PydanticValidationError):
            event.tenant_id = "acme"

    def test_caused_inherits_chain(self):
        parent = DomainEvent.create("demo.parent", tenant_id="acme", correlation_id="corr-1")
        child = parent.caused("demo.child", {"n": 1})
        assert child.correlation_id == "corr-1"
        assert child.tenant_id == "acme"
        assert child.causation_id == parent.event_id


# ============================================================================
# TASKS & PROVIDERS
# ============================================================================


class TestTask:
    def test_defaults(self):
        task = Task(task_type="code-generation")
        assert task.status == TaskStatus.QUEUED
        assert task.priority == TaskPriority.NORMAL
        assert task.wait_time_ms is None

    def test_wait_and_execution_time(self):
        task = Task(task_type="code-generation")
        task.mark_running("p1")
        task.started_at = task.created_at + timedelta(milliseconds=250)
        task.mark_completed()
        task.completed_at = task.started_at + timedelta(seconds=1)
        assert task.wait_time_ms == 250
        assert task.execution_time_ms == 1000

    def test_cancel_only_from_queued(self):
        task = Task(task_type="code-generation")
        task.mark_running("p1")
        with pytest.raises(InvalidTransitionError):
            task.mark_cancelled()


class TestProvider:
    def test_acquire_release_bounds(self):
        provider = Provider(provider_id="p", capabilities={"code-generation"}, max_concurrent=1)
        provider.acquire()
        assert provider.available_slots == 0
        assert not provider.can_accept("code-generation")
        with pytest.raises(ValueError):
            provider.acquire()
        provider.release()
        provider.release()
        assert provider.current_load == 0

    def test_can_accept_requires_capability_and_enabled(self):
        provider = Provider(provider_id="p", capabilities={"code-review"})
        assert not provider.can_accept("code-generation")
        provider.enabled = False
        assert not provider.can_accept("code-review")

    def test_record_call_running_mean(self):
        provider = Provider(provider_id="p")
        provider.record_call(100, True)
        provider.record_call(300, False)
        assert provider.avg_latency_ms == 200
        assert provider.calls_completed == 1
        assert provider.calls_failed == 1
