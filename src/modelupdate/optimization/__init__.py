"""Model updating module.

Exports
-------
ParameterCodec : Wraps element properties into a bounded parameter vector and back
ResidualEvaluator : Weighted frequency and shape residuals of a parameter vector
ForwardDifferenceJacobian : Finite-difference Jacobian tolerating infeasible points
IterationMonitor : Per-iteration snapshots and stopping decisions
UpdateDriver : Least-squares updating of a structural model
"""

from .codec import ParameterCodec, WrappedParameters
from .driver import UpdateDriver
from .monitor import CallbackStatus, IterationMonitor, IterationSummary
from .problem import IterationSnapshot, UpdateProblem, UpdateSummary
from .residual import ForwardDifferenceJacobian, ResidualEvaluator, bounded_eigen_solver, evaluate_candidate

__all__ = [
    "ParameterCodec",
    "WrappedParameters",
    "UpdateDriver",
    "CallbackStatus",
    "IterationMonitor",
    "IterationSummary",
    "IterationSnapshot",
    "UpdateProblem",
    "UpdateSummary",
    "ResidualEvaluator",
    "ForwardDifferenceJacobian",
    "bounded_eigen_solver",
    "evaluate_candidate",
]
