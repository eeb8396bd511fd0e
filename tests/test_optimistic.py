"""Tests for optimistic list state."""

from txflow.optimistic import OptimisticList


class TestOptimisticList:
    """Tests for OptimisticList."""

    def test_merged_view(self):
        """Test pending adds and removes are applied over confirmed data."""
        managers = OptimisticList(["alice", "bob"])
        managers.apply(adds=["carol"], removes=["bob"])

        assert managers.merged() == ["alice", "carol"]
        assert not managers.is_settled

    def test_no_duplicates(self):
        """Test adding a confirmed item does not duplicate it."""
        managers = OptimisticList(["alice"])
        managers.apply(adds=["alice", "alice"])

        assert managers.merged() == ["alice"]
        assert managers.optimistic_adds == ["alice"]

    def test_add_cancels_remove(self):
        """Test re-adding a pending removal cancels it."""
        managers = OptimisticList(["alice", "bob"])
        managers.apply(removes=["bob"])
        managers.apply(adds=["bob"])

        assert managers.optimistic_removes == []
        assert managers.merged() == ["alice", "bob"]

    def test_remove_cancels_add(self):
        """Test removing a pending addition cancels it."""
        managers = OptimisticList(["alice"])
        managers.apply(adds=["carol"])
        managers.apply(removes=["carol"])

        assert managers.optimistic_adds == []
        assert managers.merged() == ["alice"]

    def test_reconcile_settles(self):
        """Test authoritative data settles matching pending changes."""
        managers = OptimisticList(["alice", "bob"])
        managers.apply(adds=["carol"], removes=["bob"])

        managers.reconcile(["alice", "carol"])

        assert managers.is_settled
        assert managers.merged() == ["alice", "carol"]

    def test_reconcile_partial(self):
        """Test changes not yet reflected stay pending."""
        managers = OptimisticList(["alice", "bob"])
        managers.apply(adds=["carol"], removes=["bob"])

        managers.reconcile(["alice", "bob", "dave"])

        assert managers.optimistic_adds == ["carol"]
        assert managers.optimistic_removes == ["bob"]
        assert managers.merged() == ["alice", "dave", "carol"]

    def test_rollback(self):
        """Test rollback restores the confirmed view."""
        managers = OptimisticList(["alice"])
        managers.apply(adds=["carol"], removes=["alice"])

        managers.rollback()

        assert managers.merged() == ["alice"]
        assert managers.is_settled

    def test_custom_key(self):
        """Test items are matched by key."""
        tasks = OptimisticList([{"id": 1, "title": "Old"}], key=lambda task: task["id"])
        tasks.apply(adds=[{"id": 1, "title": "Dup"}, {"id": 2, "title": "New"}])

        assert [t["title"] for t in tasks.merged()] == ["Old", "New"]
