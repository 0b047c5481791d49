"""
Tests for the session store: restore, auth events, profile loading
and the last-event-wins rule.
"""

import asyncio

import pytest

from finance_tracker.auth import ProfileProvisioner, SessionStore
from finance_tracker.models.audit import AuditEventType
from finance_tracker.models.auth import AuthEventType
from finance_tracker.models.results import ErrorKind
from finance_tracker.services.identity import ProviderError
from finance_tracker.services.storage import ConnectionError

from tests.conftest import make_session


class GatedProvisioner(ProfileProvisioner):
    """Provisioner whose loads for chosen identities wait on an event."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gates: dict[str, asyncio.Event] = {}

    async def ensure_profile(self, identity_id):
        gate = self.gates.get(identity_id)
        if gate is not None:
            await gate.wait()
        return await super().ensure_profile(identity_id)


@pytest.fixture
def provisioner(storage, provider, app_settings) -> GatedProvisioner:
    return GatedProvisioner(storage, provider, settings=app_settings)


@pytest.fixture
def store(provider, provisioner, audit) -> SessionStore:
    return SessionStore(provider, provisioner, audit_logger=audit)


class TestRestore:

    @pytest.mark.asyncio
    async def test_without_session(self, store):
        assert store.loading is True

        await store.restore()

        assert store.identity is None
        assert store.profile is None
        assert store.loading is False
        assert not store.is_authenticated

    @pytest.mark.asyncio
    async def test_with_persisted_session(self, store, provider, storage):
        provider.session = make_session()

        await store.restore()

        assert store.is_authenticated
        assert store.identity.id == "user-1"
        assert store.profile.display_name == "Alice"
        assert store.loading is False
        assert len(storage.tables["profiles"]) == 1

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_signed_out_with_error(self, store, provider, audit):
        provider.fail_next("get_session", ProviderError("refresh token revoked", status=500))

        await store.restore()

        assert not store.is_authenticated
        assert store.loading is False
        assert store.error.kind == ErrorKind.TRANSIENT_FAILURE
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in audit.types()

    @pytest.mark.asyncio
    async def test_profile_lookup_failure_is_exposed(self, store, provider, storage):
        provider.session = make_session()
        storage.fail("select", "profiles", ConnectionError("connection reset"))

        await store.restore()

        assert store.is_authenticated
        assert store.profile is None
        assert store.error.kind == ErrorKind.TRANSIENT_FAILURE
        assert storage.count("insert", "profiles") == 0


class TestAuthEvents:

    @pytest.mark.asyncio
    async def test_signed_out_clears_everything(self, store, provider, audit):
        provider.session = make_session()
        await store.restore()

        await store.on_change(AuthEventType.SIGNED_OUT, None)

        assert store.identity is None
        assert store.session is None
        assert store.profile is None
        assert AuditEventType.SESSION_CHANGED in audit.types()

    @pytest.mark.asyncio
    async def test_token_refresh_keeps_profile_while_reloading(self, store, provider):
        session = make_session()
        provider.session = session
        await store.restore()
        snapshots = []
        store.subscribe(snapshots.append)

        await store.on_change(AuthEventType.TOKEN_REFRESHED, session)

        assert snapshots[0].loading is True
        assert snapshots[0].profile is not None
        assert snapshots[-1].loading is False

    @pytest.mark.asyncio
    async def test_identity_change_drops_previous_profile(self, store, provider):
        provider.session = make_session()
        await store.restore()
        snapshots = []
        store.subscribe(snapshots.append)

        await store.on_change(AuthEventType.SIGNED_IN, make_session("user-2", "bob@test.com", "Bob"))

        assert snapshots[0].identity.id == "user-2"
        assert snapshots[0].profile is None
        assert store.profile.id == "user-2"

    @pytest.mark.asyncio
    async def test_stale_profile_load_is_dropped(self, store, provisioner):
        provisioner.gates["user-1"] = asyncio.Event()
        first = asyncio.create_task(store.on_change(AuthEventType.SIGNED_IN, make_session("user-1")))
        for _ in range(5):
            await asyncio.sleep(0)

        await store.on_change(AuthEventType.SIGNED_IN, make_session("user-2", "bob@test.com", "Bob"))
        provisioner.gates["user-1"].set()
        await first

        assert store.identity.id == "user-2"
        assert store.profile.id == "user-2"
        assert store.loading is False

    @pytest.mark.asyncio
    async def test_sign_out_during_profile_load(self, store, provisioner):
        provisioner.gates["user-1"] = asyncio.Event()
        first = asyncio.create_task(store.on_change(AuthEventType.SIGNED_IN, make_session("user-1")))
        for _ in range(5):
            await asyncio.sleep(0)
        assert store.loading is True

        await store.on_change(AuthEventType.SIGNED_OUT, None)
        provisioner.gates["user-1"].set()
        await first

        assert store.identity is None
        assert store.profile is None


class TestObservers:

    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self, store, provider):
        snapshots = []
        unsubscribe = store.subscribe(snapshots.append)
        await store.restore()
        seen = len(snapshots)
        assert seen > 0

        unsubscribe()
        await store.on_change(AuthEventType.SIGNED_IN, make_session())

        assert len(snapshots) == seen

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_others(self, store, provider):
        def broken(snapshot):
            raise RuntimeError("render failed")

        snapshots = []
        store.subscribe(broken)
        store.subscribe(snapshots.append)
        provider.session = make_session()

        await store.restore()

        assert snapshots[-1].profile.display_name == "Alice"

    @pytest.mark.asyncio
    async def test_attach_and_detach(self, store, provider):
        await store.attach()
        await store.attach()
        assert provider.listener_count == 1

        await provider.emit(AuthEventType.SIGNED_IN, make_session())
        assert store.is_authenticated

        store.detach()
        assert provider.listener_count == 0


class TestUpdateProfile:

    @pytest.mark.asyncio
    async def test_merges_into_cached_profile(self, store, provider, storage):
        provider.session = make_session()
        await store.restore()

        result = await store.update_profile({"country": "Sénégal", "display_name": "Alicia"})

        assert result.ok
        assert store.profile.country == "Sénégal"
        assert store.profile.display_name == "Alicia"
        assert storage.tables["profiles"][0]["pays"] == "Sénégal"

    @pytest.mark.asyncio
    async def test_rejected_update_leaves_profile_alone(self, store, provider):
        provider.session = make_session()
        await store.restore()

        result = await store.update_profile({"email": "x@test.com"})

        assert not result.ok
        assert store.profile.email == "alice@test.com"

    @pytest.mark.asyncio
    async def test_requires_a_signed_in_user(self, store):
        await store.restore()

        result = await store.update_profile({"country": "Gabon"})

        assert result.error.kind == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_blank_name_is_rejected(self, store, provider, storage):
        provider.session = make_session()
        await store.restore()

        result = await store.update_profile({"display_name": "  "})

        assert result.error.kind == ErrorKind.INVALID_INPUT
        assert store.profile.display_name == "Alice"
        assert storage.tables["profiles"][0]["nom"] == "Alice"


class TestUnreadableProfile:

    @pytest.mark.asyncio
    async def test_restore_reports_instead_of_raising(self, store, provider, storage):
        storage.seed("profiles", {"id": "user-1", "nom": ""})
        provider.session = make_session()

        await store.restore()

        assert store.is_authenticated
        assert store.profile is None
        assert store.loading is False
        assert store.error.kind == ErrorKind.TRANSIENT_FAILURE

    @pytest.mark.asyncio
    async def test_profile_edit_repairs_it(self, store, provider, storage):
        storage.seed("profiles", {"id": "user-1", "nom": None})
        provider.session = make_session()
        await store.restore()

        result = await store.update_profile({"display_name": "Alice"})

        assert result.ok
        assert store.profile.display_name == "Alice"
        assert store.error is None
