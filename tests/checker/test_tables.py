"""Binding Table & Scope Stack Tests — TBL-001 through TBL-004."""

import pytest

from borrowck.bindings import BindingState, BindingTable, BorrowMode, ValueKind
from borrowck.errors import CheckError, ErrorKind
from borrowck.scopes import ScopeStack


class TestTBL001:
    """TBL-001: declare / resolve with shadowing."""

    def test_resolve_innermost(self):
        table = BindingTable()
        first = table.declare("x", ValueKind.VALUE, scope_id=0)
        second = table.declare("x", ValueKind.RESOURCE, scope_id=1)
        assert table.resolve("x") == second
        table.retire(second)
        assert table.resolve("x") == first

    def test_unbound_name(self):
        table = BindingTable()
        with pytest.raises(CheckError) as exc_info:
            table.resolve("missing")
        assert exc_info.value.first.kind == ErrorKind.UNBOUND_NAME
        assert exc_info.value.first.details == {"name": "missing"}

    def test_retired_name_is_unbound(self):
        table = BindingTable()
        table.retire(table.declare("x", ValueKind.VALUE, scope_id=0))
        with pytest.raises(CheckError):
            table.resolve("x")


class TestTBL002:
    """TBL-002: state accessors are monotonic."""

    def test_owned_to_moved(self):
        table = BindingTable()
        b = table.declare("s", ValueKind.RESOURCE, scope_id=0)
        table.set_state(b, BindingState.MOVED_OUT)
        assert table.get_state(b) == BindingState.MOVED_OUT

    def test_no_return_to_owned(self):
        table = BindingTable()
        b = table.declare("s", ValueKind.RESOURCE, scope_id=0)
        table.set_state(b, BindingState.DROPPED)
        with pytest.raises(ValueError):
            table.set_state(b, BindingState.OWNED)
        with pytest.raises(ValueError):
            table.set_state(b, BindingState.MOVED_OUT)


class TestTBL003:
    """TBL-003: borrows are released by scope id."""

    def test_release_by_scope(self):
        table = BindingTable()
        b = table.declare("s", ValueKind.RESOURCE, scope_id=0)
        table.add_borrow(b, BorrowMode.SHARED, scope_id=0)
        table.add_borrow(b, BorrowMode.SHARED, scope_id=1)
        released = table.release_borrows(1)
        assert len(released) == 1
        assert table.get(b).shared_borrows == 1
        assert [x.scope_id for x in table.borrows_of(b)] == [0]

    def test_exclusive_release(self):
        table = BindingTable()
        b = table.declare("s", ValueKind.RESOURCE, scope_id=0)
        borrow = table.add_borrow(b, BorrowMode.EXCLUSIVE, scope_id=3)
        assert borrow.target == b
        assert table.get(b).is_borrowed
        table.release_borrows(3)
        assert not table.get(b).is_borrowed


class TestTBL004:
    """TBL-004: scope stack teardown."""

    def test_close_drops_in_reverse(self):
        stack = ScopeStack(BindingTable())
        stack.open_scope()
        for name in ("a", "b", "c"):
            stack.declare(name, ValueKind.VALUE)
        dropped = stack.close_scope()
        assert [b.name for b in dropped] == ["c", "b", "a"]
        assert all(b.state == BindingState.DROPPED for b in dropped)
        assert not stack.is_open

    def test_close_releases_borrows_on_outer_bindings(self):
        table = BindingTable()
        stack = ScopeStack(table)
        stack.open_scope()
        outer = stack.declare("s", ValueKind.RESOURCE)
        inner = stack.open_scope()
        table.add_borrow(outer, BorrowMode.EXCLUSIVE, inner)
        assert stack.close_scope() == []
        assert not table.get(outer).is_borrowed
        assert table.get_state(outer) == BindingState.OWNED

    def test_scope_ids_increase(self):
        stack = ScopeStack(BindingTable())
        ids = [stack.open_scope() for _ in range(3)]
        assert ids == sorted(ids) and len(set(ids)) == 3
        assert stack.depth == 3

    def test_underflow(self):
        stack = ScopeStack(BindingTable())
        with pytest.raises(CheckError) as exc_info:
            stack.close_scope()
        assert exc_info.value.first.kind == ErrorKind.SCOPE_UNDERFLOW
