"""
Tests for mistwrap.identity - identity workflow.
"""

import pytest
import trio

from mistwrap.bridge import RequestBridge
from mistwrap.errors import NotFoundError, TransportError
from mistwrap.identity import IdentityWorkflow, OwnIdentity, is_own_identity


@pytest.fixture
def workflow(backend):
    return IdentityWorkflow(RequestBridge(backend))


class TestIsOwnIdentity:
    """Tests for the private key marker check."""

    def test_with_privkey(self):
        assert is_own_identity({"uid": "u1", "privkey": "k"}) is True

    def test_without_privkey(self):
        assert is_own_identity({"uid": "u1"}) is False
        assert is_own_identity({"uid": "u1", "privkey": False}) is False

    def test_non_dict(self):
        assert is_own_identity("u1") is False
        assert is_own_identity(None) is False


class TestEnsureIdentity:
    """Tests for idempotent identity creation."""

    @pytest.mark.trio
    async def test_created(self, backend, workflow):
        backend.wish.reply("identity.create", {"uid": "u1"})

        result = await workflow.ensure_identity("alice")

        assert result == {"uid": "u1"}
        assert backend.wish.calls[0][:2] == ("identity.create", ["alice"])

    @pytest.mark.trio
    async def test_already_exists_is_success(self, backend, workflow):
        payload = {"code": 304, "msg": "Identity already exists"}
        backend.wish.fail("identity.create", payload)

        result = await workflow.ensure_identity("alice")
        assert result == payload

    @pytest.mark.trio
    async def test_already_exists_string_code(self, backend, workflow):
        payload = {"code": "304", "msg": "Identity already exists"}
        backend.wish.fail("identity.create", payload)

        result = await workflow.ensure_identity("alice")
        assert result == payload

    @pytest.mark.trio
    async def test_missing_code_propagates(self, backend, workflow):
        backend.wish.fail("identity.create", {"msg": "core error"})

        with pytest.raises(TransportError):
            await workflow.ensure_identity("alice")

    @pytest.mark.trio
    async def test_other_failure_propagates(self, backend, workflow):
        backend.wish.fail("identity.create", {"code": 500, "msg": "core error"})

        with pytest.raises(TransportError) as exc_info:
            await workflow.ensure_identity("alice")
        assert exc_info.value.code == 500

    @pytest.mark.trio
    async def test_string_failure_propagates(self, backend, workflow):
        backend.wish.fail("identity.create", "Not connected")

        with pytest.raises(TransportError) as exc_info:
            await workflow.ensure_identity("alice")
        assert exc_info.value.payload == "Not connected"


class TestGetOwnIdentity:
    """Tests for looking up our own identity."""

    @pytest.mark.trio
    async def test_single_match(self, backend, workflow):
        backend.wish.reply("identity.list", [{"uid": "u1", "privkey": "k"}])
        backend.wish.reply("identity.export", {"cert": "c"})

        result = await workflow.get_own_identity()

        assert isinstance(result, OwnIdentity)
        assert result.to_dict() == {
            "identity": {"uid": "u1", "privkey": "k"},
            "contact": {"cert": "c"},
        }
        assert backend.wish.calls[1][:2] == ("identity.export", ["u1"])

    @pytest.mark.trio
    async def test_identity_is_shallow_copy(self, backend, workflow):
        record = {"uid": "u1", "privkey": "k", "hosts": ["h1"]}
        backend.wish.reply("identity.list", [record])
        backend.wish.reply("identity.export", {"cert": "c"})

        result = await workflow.get_own_identity()

        assert result.identity == record
        assert result.identity is not record
        assert result.identity["hosts"] is record["hosts"]

    @pytest.mark.trio
    async def test_skips_contacts(self, backend, workflow):
        backend.wish.reply("identity.list", [
            {"uid": "friend"},
            {"uid": "u2", "privkey": "k"},
        ])
        backend.wish.reply("identity.export", {"cert": "c2"})

        result = await workflow.get_own_identity()
        assert result.identity["uid"] == "u2"

    @pytest.mark.trio
    async def test_first_match_wins(self, backend, workflow):
        backend.wish.reply("identity.list", [
            {"uid": "u1", "privkey": "k1"},
            {"uid": "u2", "privkey": "k2"},
        ])
        backend.wish.reply("identity.export", lambda args: (None, {"cert": args[0]}))

        result = await workflow.get_own_identity()

        assert result.identity["uid"] == "u1"
        assert result.contact == {"cert": "u1"}
        assert backend.wish.commands() == ["identity.list", "identity.export"]

    @pytest.mark.trio
    async def test_not_found_after_grace_window(self, backend, workflow, autojump_clock):
        backend.wish.reply("identity.list", [{"uid": "friend"}])
        start = trio.current_time()

        with pytest.raises(NotFoundError, match="Not found"):
            await workflow.get_own_identity()

        assert trio.current_time() - start >= 2.0
        assert backend.wish.commands() == ["identity.list"]

    @pytest.mark.trio
    async def test_not_found_not_before_grace_window(self, backend, workflow, autojump_clock):
        backend.wish.reply("identity.list", [])

        with trio.move_on_after(1.9) as scope:
            await workflow.get_own_identity()

        assert scope.cancelled_caught

    @pytest.mark.trio
    async def test_grace_window_counts_from_list_call(self, backend, autojump_clock):
        bridge = RequestBridge(backend)
        workflow = IdentityWorkflow(bridge, not_found_grace=5.0)
        start = trio.current_time()

        async def answer_late():
            await trio.sleep(3.0)
            backend.wish.callback_for("identity.list")(None, [])

        async with trio.open_nursery() as nursery:
            nursery.start_soon(answer_late)
            with pytest.raises(NotFoundError):
                await workflow.get_own_identity()

        assert trio.current_time() - start == pytest.approx(5.0)

    @pytest.mark.trio
    async def test_list_failure_propagates(self, backend, workflow):
        backend.wish.fail("identity.list", {"code": 7, "msg": "core down"})

        with pytest.raises(TransportError) as exc_info:
            await workflow.get_own_identity()
        assert exc_info.value.payload == {"code": 7, "msg": "core down"}

    @pytest.mark.trio
    async def test_export_failure_propagates(self, backend, workflow):
        backend.wish.reply("identity.list", [{"uid": "u1", "privkey": "k"}])
        backend.wish.fail("identity.export", "export failed")

        with pytest.raises(TransportError) as exc_info:
            await workflow.get_own_identity()
        assert exc_info.value.payload == "export failed"
