"""
Simple Example: Updating a Cantilever Model
===========================================

This example demonstrates a basic model updating workflow.

Workflow:
1. Build a cantilever beam model with lumped masses and a tip spring
2. Create the target modes from a reference copy with stiffer beams
3. Select the elements and set up the updating constraints
4. Run the updating and print the iteration history
"""

import numpy as np

from modelupdate.core import (
    Constraints,
    Element,
    ElementType,
    OptimOptions,
    SpringElement,
    StructuralModel,
    Surface,
    VariableKind,
    match_vertices,
)
from modelupdate.evaluation import snapshots_to_frame
from modelupdate.optimization import UpdateDriver, UpdateProblem
from modelupdate.preprocessing import build_selector, scale_model
from modelupdate.utils import get_logger

logger = get_logger("modelupdate")


def build_cantilever(num_vertices=6, length=2.5):
    """Cantilever along y clamped at vertex 0."""
    y = np.linspace(0.0, length, num_vertices)
    vertices = np.column_stack([np.zeros_like(y), y, np.zeros_like(y)])
    surface = Surface(name="wing", vertices=vertices)
    for i in range(num_vertices - 1):
        surface.add_element(Element(ElementType.BEAM, [i, i + 1, 5.0, 0.0, 1.0e4, 2.0e4, 5.0e3, 1.0e7]))
    surface.add_element(Element(ElementType.MASS, [num_vertices // 2, 1.5]))
    surface.add_element(Element(ElementType.MASS, [num_vertices - 1, 2.0]))

    special = Surface(name="special")
    special.add_element(SpringElement([0.0, 0.0, 500.0, 0.0, 0.0, 0.0], surface=0, vertex=num_vertices - 1))
    return StructuralModel([surface], special, name="cantilever")


def main():
    # ========================================================================
    # STEP 1: Model and target
    # ========================================================================
    model = build_cantilever()
    model.set_num_modes(6)

    reference = scale_model(model, {"beam_stiffness": 1.2, "spring_stiffness": 0.7})
    target = reference.solve_eigen()
    logger.info("Target frequencies: %s", np.round(target.frequencies, 3))
    logger.info("Initial frequencies: %s", np.round(model.solve_eigen().frequencies, 3))

    # ========================================================================
    # STEP 2: Update problem
    # ========================================================================
    constraints = Constraints()
    constraints.set_scale(VariableKind.BEAM_STIFFNESS, 1e-7)

    problem = UpdateProblem(
        target_solution=target,
        target_indices=[0, 1, 2],
        target_weights=[1.0, 1.0, 1.0],
        vertex_matches=match_vertices(target.geometry, model.geometry(), 1e-6),
        selector=build_selector([{"name": "all", "all": True}], model),
        constraints=constraints,
    )

    # ========================================================================
    # STEP 3: Updating
    # ========================================================================
    options = OptimOptions(max_num_iterations=50, max_rel_error=1e-4, num_modes=8)
    driver = UpdateDriver()
    snapshots = driver.solve(model, problem, options)
    if not snapshots:
        logger.error("Updating produced no feasible iterations")
        return

    print(snapshots_to_frame(snapshots)[["cost", "max_error", "is_success"]].to_string())
    final = snapshots[-1]
    beam = final.model.element(0, ElementType.BEAM, 0).get()
    spring = final.model.element(-1, ElementType.SPRING, 0).get()
    print(f"\nBeam stiffness factor:   {beam[4] / 1.0e4:.4f} (reference 1.2)")
    print(f"Spring stiffness factor: {spring[2, 2] / 500.0:.4f} (reference 0.7)")


if __name__ == "__main__":
    main()
