"""
Unit tests for core.identity module.
Tests nickname claim (with suffixing), rename and the quit cascade.
"""
import pytest

from stationv.core.directory import ChannelDirectory
from stationv.core.errors import IdentityConflict, NameTaken
from stationv.core.identity import IdentityManager
from stationv.core.pubsub import Connection
from stationv.core.registry import ConnectionRegistry


class _Socket:
    async def send_text(self, text: str):
        pass


@pytest.fixture
def setup():
    registry = ConnectionRegistry()
    directory = ChannelDirectory()
    identity = IdentityManager(registry, directory, clock=lambda: 1700000000000)

    def new_conn() -> Connection:
        conn = Connection(_Socket())
        registry.attach(conn)
        return conn

    return identity, registry, directory, new_conn


class TestClaim:
    """Tests for nickname claims."""

    def test_claim_free_nickname(self, setup):
        identity, registry, _, new_conn = setup
        conn = new_conn()

        assert identity.claim(conn, "alice", kind="virtual") == "alice"
        assert registry.lookup(conn) == "alice"
        assert identity.get("alice").kind == "virtual"
        assert identity.get("alice").connection_id == conn.id

    def test_claim_taken_gets_suffix(self, setup):
        """First registrant wins; the late one is suffixed, not rejected."""
        identity, registry, _, new_conn = setup
        a, b = new_conn(), new_conn()
        identity.claim(a, "alice")

        granted = identity.claim(b, "alice")

        assert granted == "alice_1700000000000"
        assert registry.lookup(a) == "alice"
        assert registry.lookup(b) == granted

    def test_suffix_bumps_on_clash(self, setup):
        identity, _, _, new_conn = setup
        identity.claim(new_conn(), "alice")
        identity.claim(new_conn(), "alice")

        assert identity.claim(new_conn(), "alice") == "alice_1700000000001"

    def test_claim_taken_without_suffix_raises(self, setup):
        identity, registry, _, new_conn = setup
        a, b = new_conn(), new_conn()
        identity.claim(a, "alice")

        with pytest.raises(IdentityConflict):
            identity.claim(b, "alice", allow_suffix=False)

        assert registry.lookup(b) is None
        assert [u.nickname for u in identity.users()] == ["alice"]


class TestRename:
    """Tests for rename."""

    def test_rename_moves_memberships_and_binding(self, setup):
        identity, registry, directory, new_conn = setup
        conn = new_conn()
        identity.claim(conn, "alice")
        directory.join("alice", "#a")
        directory.join("alice", "#b")

        identity.rename("alice", "alicia")

        assert "alice" not in identity
        assert identity.get("alicia").nickname == "alicia"
        assert registry.lookup(conn) == "alicia"
        assert directory.channels_of("alicia") == {"#a", "#b"}
        assert directory.members_of("#a") == {"alicia"}

    def test_rename_to_taken_raises_name_taken(self, setup):
        """A rename collision is refused and leaves both users untouched."""
        identity, registry, directory, new_conn = setup
        a, b = new_conn(), new_conn()
        identity.claim(a, "alice")
        identity.claim(b, "bob")
        directory.join("bob", "#test")

        with pytest.raises(NameTaken):
            identity.rename("bob", "alice")

        assert registry.lookup(a) == "alice"
        assert registry.lookup(b) == "bob"
        assert directory.members_of("#test") == {"bob"}

    def test_rename_to_same_name_is_noop(self, setup):
        identity, registry, _, new_conn = setup
        conn = new_conn()
        identity.claim(conn, "alice")

        assert identity.rename("alice", "alice").nickname == "alice"
        assert registry.lookup(conn) == "alice"


class TestQuit:
    """Tests for the quit cascade."""

    def test_quit_parts_everything(self, setup):
        identity, registry, directory, new_conn = setup
        conn = new_conn()
        identity.claim(conn, "alice")
        directory.join("alice", "#b")
        directory.join("alice", "#a")

        assert identity.quit("alice") == ["#a", "#b"]
        assert "alice" not in identity
        assert registry.lookup(conn) is None
        assert directory.exists("#a") and directory.members_of("#a") == set()

    def test_quit_twice_is_harmless(self, setup):
        identity, _, directory, new_conn = setup
        identity.claim(new_conn(), "alice")
        directory.join("alice", "#a")

        identity.quit("alice")
        assert identity.quit("alice") == []

    def test_nickname_free_after_quit(self, setup):
        identity, _, _, new_conn = setup
        identity.claim(new_conn(), "alice")
        identity.quit("alice")

        assert identity.claim(new_conn(), "alice") == "alice"
