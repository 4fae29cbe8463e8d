# tests/unit/test_preview_service.py
# Lifecycle orchestrator against in-memory registry/provisioner fakes

import asyncio
import uuid
from datetime import timedelta

import pytest

from studio.config import Settings
from studio.middleware.error_handler import ConflictError, NotFoundError, ValidationError
from studio.models.preview_session import SCHEMA_BEARING_STATUSES, PreviewSession, SchemaStatus
from studio.services.errors import SeedingError
from studio.services.preview_service import PreviewService

from fakes import FakeComposer, FakeProvisioner


async def _ready_session(service, tier="pro", features=("lms.courses",)) -> PreviewSession:
    session = await service.create_session(tier, list(features))
    await service.wait_for_provisioning()
    return session


def _assert_schema_name_consistent(registry):
    for row in registry.rows.values():
        if row.schema_status in SCHEMA_BEARING_STATUSES:
            assert row.schema_name, f"{row.session_id} is {row.schema_status} without a schema"
        else:
            assert row.schema_name is None, f"{row.session_id} is {row.schema_status} with {row.schema_name}"


def _insert_row(registry, clock, status, created_ago_minutes=0, schema_name=None) -> PreviewSession:
    created = clock() - timedelta(minutes=created_ago_minutes)
    session = PreviewSession(
        id=uuid.uuid4().hex,
        session_id=uuid.uuid4().hex,
        tier="starter",
        selected_features=frozenset(),
        schema_status=status,
        schema_name=schema_name,
        created_at=created,
        last_accessed_at=created,
        expires_at=created + timedelta(hours=24),
    )
    registry.rows[session.id] = session
    return session


class TestCreateAndProvision:

    @pytest.mark.asyncio
    async def test_session_becomes_ready_with_selected_modules(self, service, registry, provisioner, composer):
        session = await service.create_session("pro", ["lms.courses", "booking.services"])
        assert session.schema_status == SchemaStatus.NONE
        assert len(session.session_id) == 32

        await service.wait_for_provisioning()

        row = registry.get(session.session_id)
        assert row.schema_status == SchemaStatus.READY
        assert row.schema_name.startswith("preview_")
        assert row.schema_name in provisioner.schemas
        assert composer.calls == [(row.schema_name, frozenset({"lms.courses", "booking.services"}))]
        _assert_schema_name_consistent(registry)

    @pytest.mark.asyncio
    async def test_expiry_is_fixed_at_creation(self, service, clock):
        session = await service.create_session("starter", [])
        await service.wait_for_provisioning()
        assert session.expires_at == clock() + service.ttl

        clock.advance(minutes=10)
        await service.record_access(session.session_id)
        refreshed = await service.get_session(session.session_id)
        assert refreshed.expires_at == session.expires_at

    @pytest.mark.asyncio
    async def test_seeding_failure_marks_failed_and_drops_schema(self, registry, provisioner, clock):
        composer = FakeComposer(error=SeedingError({"lms": RuntimeError("boom")}))
        service = PreviewService(registry, provisioner, composer, settings=Settings(), clock=clock)

        session = await service.create_session("pro", ["lms.courses"])
        await service.wait_for_provisioning()

        row = registry.get(session.session_id)
        assert row.schema_status == SchemaStatus.FAILED
        assert row.schema_name is None
        assert "lms" in row.last_error
        assert provisioner.schemas == set()
        assert len(provisioner.dropped) == 1

    @pytest.mark.asyncio
    async def test_schema_creation_failure_is_terminal(self, service, registry, provisioner):
        provisioner.fail_provision = True
        session = await service.create_session("pro", [])
        await service.wait_for_provisioning()

        assert registry.get(session.session_id).schema_status == SchemaStatus.FAILED
        with pytest.raises(ConflictError):
            await service.begin_provisioning(registry.get(session.session_id))

    @pytest.mark.asyncio
    async def test_second_begin_provisioning_conflicts(self, service, registry, provisioner, clock):
        session = _insert_row(registry, clock, SchemaStatus.NONE)

        assert await service.begin_provisioning(session) == SchemaStatus.READY
        with pytest.raises(ConflictError):
            await service.begin_provisioning(session)
        assert len(provisioner.schemas) == 1

    @pytest.mark.asyncio
    async def test_provisioning_outlived_by_stuck_pass_drops_its_schema(self, service, registry, provisioner, clock):
        session = _insert_row(registry, clock, SchemaStatus.NONE)
        provisioner.provision_gate = asyncio.Event()

        task = asyncio.create_task(service.begin_provisioning(session))
        await asyncio.sleep(0)
        assert registry.get(session.session_id).schema_status == SchemaStatus.PROVISIONING

        clock.advance(minutes=6)
        assert await service.fail_stuck_provisioning() == 1

        provisioner.provision_gate.set()
        assert await task == SchemaStatus.FAILED

        row = registry.get(session.session_id)
        assert row.schema_status == SchemaStatus.FAILED
        assert provisioner.schemas == set()
        _assert_schema_name_consistent(registry)


class TestValidation:

    @pytest.mark.asyncio
    async def test_unknown_tier_rejected(self, service, registry):
        with pytest.raises(ValidationError):
            await service.create_session("platinum", [])
        assert registry.rows == {}

    @pytest.mark.asyncio
    async def test_empty_tier_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_session("  ", [])

    @pytest.mark.asyncio
    async def test_tier_and_features_are_normalized(self, service, registry):
        session = await service.create_session("PRO", ["LMS.Courses", "lms.courses", ""])
        await service.wait_for_provisioning()
        assert session.tier == "pro"
        assert session.selected_features == frozenset({"lms.courses"})

    @pytest.mark.asyncio
    async def test_too_many_features_rejected(self, registry, provisioner, composer, clock):
        service = PreviewService(
            registry, provisioner, composer, settings=Settings(PREVIEW_MAX_FEATURES=2), clock=clock
        )
        with pytest.raises(ValidationError) as exc:
            await service.create_session("pro", ["lms.a", "lms.b", "lms.c"])
        assert exc.value.details == {"max_features": 2}

    @pytest.mark.asyncio
    async def test_invalid_slug_rejected(self, service):
        with pytest.raises(ValidationError) as exc:
            await service.create_session("pro", ["lms.courses", "drop table;"])
        assert exc.value.details["invalid"] == ["drop table;"]

    @pytest.mark.asyncio
    async def test_features_as_string_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_session("pro", "lms.courses")


class TestVisitorOperations:

    @pytest.mark.asyncio
    async def test_record_access_updates_telemetry_only(self, service, registry, clock):
        session = await _ready_session(service)
        clock.advance(minutes=5)

        assert await service.record_access(session.session_id, page_views=3, duration=40)

        row = registry.get(session.session_id)
        assert row.last_accessed_at == clock()
        assert (row.page_views, row.duration) == (3, 40)
        assert row.schema_status == SchemaStatus.READY

    @pytest.mark.asyncio
    async def test_record_access_unknown_session(self, service):
        assert await service.record_access("missing") is False

    @pytest.mark.asyncio
    async def test_get_session_hides_expired(self, service, clock):
        session = await _ready_session(service)
        clock.advance(hours=25)
        with pytest.raises(NotFoundError):
            await service.get_session(session.session_id)

    @pytest.mark.asyncio
    async def test_end_session_releases_schema(self, service, registry, provisioner):
        session = await _ready_session(service)
        schema_name = registry.get(session.session_id).schema_name

        ended = await service.end_session(session.session_id)

        assert ended.schema_status == SchemaStatus.DROPPED
        assert ended.schema_name is None
        assert provisioner.dropped == [schema_name]
        _assert_schema_name_consistent(registry)

    @pytest.mark.asyncio
    async def test_end_session_while_provisioning_conflicts(self, service, registry, clock):
        session = _insert_row(registry, clock, SchemaStatus.PROVISIONING, schema_name="preview_abc")
        with pytest.raises(ConflictError):
            await service.end_session(session.session_id)
        assert registry.get(session.session_id).schema_status == SchemaStatus.PROVISIONING

    @pytest.mark.asyncio
    async def test_end_session_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.end_session("missing")


class TestReclamation:

    @pytest.mark.asyncio
    async def test_idle_session_dropped_and_row_retained(self, service, registry, provisioner, clock):
        session = await _ready_session(service, "pro", ["lms.courses", "booking.services"])
        schema_name = registry.get(session.session_id).schema_name

        clock.advance(minutes=31)
        assert await service.reclaim_idle() == 1

        row = registry.get(session.session_id)
        assert row is not None
        assert row.schema_status == SchemaStatus.DROPPED
        assert row.schema_name is None
        assert schema_name not in provisioner.schemas

    @pytest.mark.asyncio
    async def test_recent_activity_keeps_session(self, service, registry, clock):
        session = await _ready_session(service)
        clock.advance(minutes=25)
        await service.record_access(session.session_id)
        clock.advance(minutes=25)

        assert await service.reclaim_idle() == 0
        assert registry.get(session.session_id).schema_status == SchemaStatus.READY

    @pytest.mark.asyncio
    async def test_idle_batch_completes_despite_one_failed_drop(self, service, registry, provisioner, clock):
        sessions = [await _ready_session(service) for _ in range(3)]
        failing = registry.get(sessions[1].session_id).schema_name
        provisioner.failing_drops.add(failing)

        clock.advance(minutes=31)
        assert await service.reclaim_idle() == 3

        for s in sessions:
            assert registry.get(s.session_id).schema_status == SchemaStatus.DROPPED
        assert len(provisioner.dropped) == 2
        assert provisioner.schemas == {failing}  # orphaned, left for out-of-band audit
        _assert_schema_name_consistent(registry)

    @pytest.mark.asyncio
    async def test_expired_row_deleted_even_when_drop_fails(self, service, registry, provisioner, clock):
        session = await _ready_session(service)
        schema_name = registry.get(session.session_id).schema_name
        provisioner.failing_drops.add(schema_name)

        clock.advance(hours=25)
        assert await service.reclaim_expired() == 1

        assert registry.get(session.session_id) is None
        assert schema_name in provisioner.schemas

    @pytest.mark.asyncio
    async def test_expired_pass_deletes_rows_in_every_status(self, service, registry, provisioner, clock):
        await _ready_session(service)
        _insert_row(registry, clock, SchemaStatus.FAILED)
        _insert_row(registry, clock, SchemaStatus.DROPPED)

        clock.advance(hours=25)
        assert await service.reclaim_expired() == 3

        assert registry.rows == {}
        assert provisioner.schemas == set()
    @pytest.mark.asyncio
    async def test_drop_timeout_counts_as_failure(self, registry, composer, clock):
        class SlowProvisioner(FakeProvisioner):
            async def drop_schema(self, name):
                await asyncio.sleep(1)

        provisioner = SlowProvisioner()
        service = PreviewService(
            registry, provisioner, composer, settings=Settings(PREVIEW_DROP_TIMEOUT_SECONDS=0.01), clock=clock
        )
        session = await _ready_session(service)

        clock.advance(minutes=31)
        assert await service.reclaim_idle() == 1
        assert registry.get(session.session_id).schema_status == SchemaStatus.DROPPED

    @pytest.mark.asyncio
    async def test_stuck_session_failed_young_one_untouched(self, service, registry, provisioner, clock):
        old = _insert_row(registry, clock, SchemaStatus.PROVISIONING, created_ago_minutes=6, schema_name="preview_old")
        young = _insert_row(registry, clock, SchemaStatus.PROVISIONING, created_ago_minutes=1, schema_name="preview_young")

        assert await service.fail_stuck_provisioning() == 1

        old_row = registry.get(old.session_id)
        assert old_row.schema_status == SchemaStatus.FAILED
        assert old_row.schema_name is None
        assert old_row.last_error == "Provisioning timed out"
        assert registry.get(young.session_id).schema_status == SchemaStatus.PROVISIONING
        assert provisioner.dropped == []

    @pytest.mark.asyncio
    async def test_passes_ignore_sessions_in_other_states(self, service, registry, clock):
        _insert_row(registry, clock, SchemaStatus.FAILED, created_ago_minutes=60)
        _insert_row(registry, clock, SchemaStatus.NONE, created_ago_minutes=60)

        assert await service.reclaim_idle() == 0
        assert await service.fail_stuck_provisioning() == 0
        assert await service.reclaim_expired() == 0
