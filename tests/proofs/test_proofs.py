"""Z3 Proof Tests — PRF-001 through PRF-003.

The transition system must be proven safe, and the prover must actually
catch a broken rule (otherwise the proofs are vacuous).
"""

import z3

from borrowck.proofs import (
    TRANSITIONS, OWNED, MOVED_OUT, BindingVars, Transition,
    binding_invariant, failed_obligations, prove_transition_system,
)


class TestPRF001:
    """PRF-001: every transition preserves the invariant and monotonicity."""

    def test_all_obligations_proven(self):
        obligations = prove_transition_system()
        assert len(obligations) == 2 * len(TRANSITIONS)
        assert failed_obligations(obligations) == [], \
            [o.to_dict() for o in failed_obligations(obligations)]

    def test_invariant_is_satisfiable(self):
        solver = z3.Solver()
        solver.add(binding_invariant(BindingVars.fresh("")))
        assert solver.check() == z3.sat


class TestPRF002:
    """PRF-002: broken rules yield counterexamples."""

    def test_shared_borrow_without_exclusivity_check(self):
        broken = Transition(
            "borrow_shared",
            lambda s: s.state == OWNED,
            lambda s: s.replace(shared=s.shared + 1),
        )
        obligations = prove_transition_system([broken])
        failed = failed_obligations(obligations)
        assert [o.property for o in failed] == ["invariant"]
        cex = failed[0].counterexample
        assert cex["exclusive"] == 1
        assert cex["state"] == OWNED

    def test_move_of_value_kind(self):
        broken = Transition(
            "move",
            lambda s: z3.And(s.state == OWNED, s.no_borrows()),
            lambda s: s.replace(state=z3.IntVal(MOVED_OUT)),
        )
        failed = failed_obligations(prove_transition_system([broken]))
        assert failed and failed[0].counterexample["resource"] is False

    def test_resurrection_breaks_monotonicity(self):
        broken = Transition(
            "revive",
            lambda s: s.no_borrows(),
            lambda s: s.replace(state=z3.IntVal(OWNED)),
        )
        failed = failed_obligations(prove_transition_system([broken]))
        assert [o.property for o in failed] == ["monotonic"]


class TestPRF003:
    """PRF-003: obligations serialize for the CLI."""

    def test_to_dict(self):
        d = prove_transition_system(TRANSITIONS[:1])[0].to_dict()
        assert d == {"transition": "use", "property": "invariant", "proven": True}
