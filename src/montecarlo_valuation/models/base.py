"""Process model capability set consumed by the Euler scheme.

A model describes an Ito process ``dY_c = mu_c dt + sum_k lambda_{k,c} dW_k``
for each component ``c`` through its initial state, drift and factor
loadings, plus a state-space transform ``X_c = f_c(Y_c)`` mapping the
simulated state to the observed value (e.g. ``exp`` for a log-Euler scheme).

The process engine holds a reference to a model and calls into it; models
do not subclass the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

from ..random_variable import RandomVariable

if TYPE_CHECKING:
    from ..process import EulerSchemeProcess


@runtime_checkable
class ProcessModel(Protocol):
    """Structural interface of a process model.

    ``realization`` arguments are the *values* (after the state-space
    transform) of all components at ``time_index``. ``realization_predictor``
    is ``None`` for a plain Euler step and holds the predicted values at
    ``time_index + 1`` for the corrector step of a predictor-corrector scheme.

    Returning ``None`` from ``drift`` or ``factor_loading`` freezes the
    component: its value is carried forward unchanged.
    """

    number_of_components: int
    number_of_factors: int

    def initial_state(self, process: EulerSchemeProcess) -> list[RandomVariable]: ...

    def drift(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        realization: Sequence[RandomVariable],
        realization_predictor: Sequence[RandomVariable] | None,
    ) -> RandomVariable | None: ...

    def factor_loading(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        factor: int,
        component: int,
        realization: Sequence[RandomVariable],
    ) -> RandomVariable | None: ...

    def apply_state_space_transform(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        state: RandomVariable,
    ) -> RandomVariable: ...

    def numeraire(self, process: EulerSchemeProcess, time: float) -> RandomVariable: ...


class AbstractProcessModel(ABC):
    """Convenience base: identity state-space transform and one factor.

    Subclasses must implement :meth:`initial_state`, :meth:`drift`,
    :meth:`factor_loading` and :meth:`numeraire`.
    """

    number_of_components: int = 1
    number_of_factors: int = 1

    @abstractmethod
    def initial_state(self, process: EulerSchemeProcess) -> list[RandomVariable]:
        raise NotImplementedError("Subclasses must implement initial_state method")

    @abstractmethod
    def drift(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        realization: Sequence[RandomVariable],
        realization_predictor: Sequence[RandomVariable] | None,
    ) -> RandomVariable | None:
        raise NotImplementedError("Subclasses must implement drift method")

    @abstractmethod
    def factor_loading(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        factor: int,
        component: int,
        realization: Sequence[RandomVariable],
    ) -> RandomVariable | None:
        raise NotImplementedError("Subclasses must implement factor_loading method")

    @abstractmethod
    def numeraire(self, process: EulerSchemeProcess, time: float) -> RandomVariable:
        raise NotImplementedError("Subclasses must implement numeraire method")

    def apply_state_space_transform(
        self,
        process: EulerSchemeProcess,
        time_index: int,
        component: int,
        state: RandomVariable,
    ) -> RandomVariable:
        return state
