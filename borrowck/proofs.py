"""Z3 proofs of the borrow discipline.

The checker's rules, projected onto a single binding, form a small
transition system over

    state      Int   0 = owned, 1 = moved out, 2 = dropped
    shared     Int   number of active shared borrows
    exclusive  Int   number of active exclusive borrows
    resource   Bool  resource kind (False = value kind)
    mutable    Bool

For every transition we discharge two obligations with Z3:

  invariant   INV(s) /\\ guard(s) /\\ s' = update(s)  ==>  INV(s')
  monotonic   state(s) != owned /\\ guard(s)          ==>  state(s') = state(s)

where INV is the binding invariant:

  shared >= 0, exclusive in {0, 1}, not (exclusive = 1 and shared > 0),
  state != owned ==> no borrows, state = moved out ==> resource.

An obligation is proven when its negation is unsatisfiable; otherwise the
model is reported as a counterexample.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import z3

OWNED, MOVED_OUT, DROPPED = 0, 1, 2


@dataclass
class BindingVars:
    state: Any
    shared: Any
    exclusive: Any
    resource: Any
    mutable: Any

    @classmethod
    def fresh(cls, suffix: str) -> "BindingVars":
        return cls(
            state=z3.Int(f"state{suffix}"),
            shared=z3.Int(f"shared{suffix}"),
            exclusive=z3.Int(f"exclusive{suffix}"),
            resource=z3.Bool(f"resource{suffix}"),
            mutable=z3.Bool(f"mutable{suffix}"),
        )

    def replace(self, **changes: Any) -> "BindingVars":
        values = dict(self.__dict__)
        values.update(changes)
        return BindingVars(**values)

    def no_borrows(self) -> Any:
        return z3.And(self.shared == 0, self.exclusive == 0)


@dataclass
class Transition:
    name: str
    guard: Callable[[BindingVars], Any]
    update: Callable[[BindingVars], BindingVars]


@dataclass
class ProofObligation:
    transition: str
    property: str
    proven: bool
    counterexample: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "transition": self.transition,
            "property": self.property,
            "proven": self.proven,
        }
        if self.counterexample:
            d["counterexample"] = self.counterexample
        return d


def binding_invariant(s: BindingVars) -> Any:
    return z3.And(
        z3.Or(s.state == OWNED, s.state == MOVED_OUT, s.state == DROPPED),
        s.shared >= 0,
        z3.Or(s.exclusive == 0, s.exclusive == 1),
        z3.Not(z3.And(s.exclusive == 1, s.shared > 0)),
        z3.Implies(s.state != OWNED, s.no_borrows()),
        z3.Implies(s.state == MOVED_OUT, s.resource),
    )


def _unchanged(s: BindingVars) -> BindingVars:
    return s


# Guards mirror OwnershipChecker: every rule that names a binding first
# requires it to be owned, borrows are released only by scope close.
TRANSITIONS: list[Transition] = [
    Transition(
        "use",
        lambda s: s.state == OWNED,
        _unchanged,
    ),
    Transition(
        "borrow_shared",
        lambda s: z3.And(s.state == OWNED, s.exclusive == 0),
        lambda s: s.replace(shared=s.shared + 1),
    ),
    Transition(
        "borrow_exclusive",
        lambda s: z3.And(s.state == OWNED, s.exclusive == 0, s.shared == 0, s.mutable),
        lambda s: s.replace(exclusive=s.exclusive + 1),
    ),
    Transition(
        "release_shared",
        lambda s: s.shared > 0,
        lambda s: s.replace(shared=s.shared - 1),
    ),
    Transition(
        "release_exclusive",
        lambda s: s.exclusive > 0,
        lambda s: s.replace(exclusive=s.exclusive - 1),
    ),
    Transition(
        "move",
        lambda s: z3.And(s.state == OWNED, s.resource, s.no_borrows()),
        lambda s: s.replace(state=z3.IntVal(MOVED_OUT)),
    ),
    Transition(
        "consume",
        lambda s: z3.And(s.state == OWNED, z3.Implies(s.resource, s.no_borrows())),
        lambda s: s.replace(state=z3.If(s.resource, z3.IntVal(MOVED_OUT), s.state)),
    ),
    Transition(
        "drop",
        lambda s: z3.And(s.state == OWNED, s.no_borrows()),
        lambda s: s.replace(state=z3.IntVal(DROPPED)),
    ),
    Transition(
        # Borrows of the closing scope are released before teardown, and
        # borrows from inner scopes are already gone.
        "scope_drop",
        lambda s: s.no_borrows(),
        lambda s: s.replace(state=z3.If(s.state == OWNED, z3.IntVal(DROPPED), s.state)),
    ),
    Transition(
        "assign",
        lambda s: z3.And(s.state == OWNED, s.mutable, s.no_borrows()),
        _unchanged,
    ),
]


def _counterexample(model: Any, s: BindingVars) -> dict[str, Any]:
    def value(expr: Any) -> Any:
        v = model.eval(expr, model_completion=True)
        if z3.is_int_value(v):
            return v.as_long()
        return z3.is_true(v)

    return {
        "state": value(s.state),
        "shared": value(s.shared),
        "exclusive": value(s.exclusive),
        "resource": value(s.resource),
        "mutable": value(s.mutable),
    }


def _discharge(transition: str, prop: str, hypotheses: list[Any], goal: Any,
               pre: BindingVars, timeout_ms: int) -> ProofObligation:
    solver = z3.Solver()
    solver.set("timeout", timeout_ms)
    solver.add(*hypotheses)
    solver.add(z3.Not(goal))
    result = solver.check()
    if result == z3.unsat:
        return ProofObligation(transition, prop, proven=True)
    if result == z3.sat:
        return ProofObligation(transition, prop, proven=False,
                               counterexample=_counterexample(solver.model(), pre))
    return ProofObligation(transition, prop, proven=False,
                           counterexample={"reason": solver.reason_unknown()})


def prove_transition_system(
    transitions: Optional[list[Transition]] = None,
    timeout_ms: int = 5000,
) -> list[ProofObligation]:
    """Discharge the invariant and monotonicity obligations of each transition."""
    if transitions is None:
        transitions = TRANSITIONS
    obligations: list[ProofObligation] = []
    for t in transitions:
        pre = BindingVars.fresh("")
        post = t.update(pre)
        guard = t.guard(pre)
        obligations.append(_discharge(
            t.name, "invariant",
            [binding_invariant(pre), guard], binding_invariant(post),
            pre, timeout_ms,
        ))
        obligations.append(_discharge(
            t.name, "monotonic",
            [binding_invariant(pre), guard, pre.state != OWNED], post.state == pre.state,
            pre, timeout_ms,
        ))
    return obligations


def failed_obligations(obligations: list[ProofObligation]) -> list[ProofObligation]:
    return [o for o in obligations if not o.proven]
