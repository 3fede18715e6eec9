"""Conversion between element properties and the flat parameter vector.

``ParameterCodec.wrap`` walks the selected elements grouped by surface and
element type and, for every enabled variable kind of a group, appends the
aggregated and scaled properties to the parameter vector:

- united      : one value per element row (largest absolute entry);
- multiplied  : one value for the whole group (largest entry of row 0);
- independent : every entry, zero entries skipped when ``nonzero`` is set.

A scale of zero selects the logarithmic parameterization ``log10(value)``
unless the value is not positive, in which case a unit scale is used.
Springs of the special surface contribute the stiffness entries kept by
their mask.

``ParameterCodec.unwrap`` replays the same traversal on a private copy of
the model and writes the decoded properties back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..core.constraints import Constraints, VariableKind
from ..core.mathutils import row_indices_abs_max
from ..core.model import SPECIAL_SURFACE, ElementType, StructuralModel
from ..core.selection import Selection
from .accessor import (
    EPS,
    ELEMENT_VARIABLES,
    get_properties,
    get_spring_properties,
    group_elements,
    set_properties,
    set_spring_properties,
)

logger = logging.getLogger(__name__)

# (surface, element type, spring index or -1, variable kind)
BlockKey = Tuple[int, ElementType, int, VariableKind]


@dataclass
class WrappedParameters:
    """Parameter values with their scales and bounds.

    The three arrays are positionally coupled: entry ``i`` of ``scales`` and
    row ``i`` of ``bounds`` describe ``values[i]``.
    """
    values: np.ndarray = field(default_factory=lambda: np.zeros(0))
    scales: np.ndarray = field(default_factory=lambda: np.zeros(0))
    bounds: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))

    def __len__(self) -> int:
        return self.values.size

    @property
    def lower(self) -> np.ndarray:
        return self.bounds[:, 0]

    @property
    def upper(self) -> np.ndarray:
        return self.bounds[:, 1]

    def append(self, values: np.ndarray, scales: np.ndarray, bounds: np.ndarray) -> None:
        self.values = np.concatenate([self.values, values])
        self.scales = np.concatenate([self.scales, scales])
        self.bounds = np.vstack([self.bounds, bounds])


@dataclass
class _Block:
    key: BlockKey
    kind: VariableKind
    properties: np.ndarray
    write: Callable[[np.ndarray], None]


class ParameterCodec:
    """Wrap selected element properties into parameters and back.

    Parameters
    ----------
    model : StructuralModel
        Initial model. A private copy is kept.
    selections : list of Selection
        Elements to update.
    constraints : Constraints
        Updating settings. A private copy is kept.
    """

    def __init__(self, model: StructuralModel, selections: List[Selection], constraints: Constraints) -> None:
        self._model = model.copy()
        self._selections = sorted(set(selections))
        self._constraints = constraints.copy()
        self._spring_masks: Dict[BlockKey, np.ndarray] = {}
        self._cell_masks: Dict[BlockKey, np.ndarray] = {}
        self._parameters: Optional[WrappedParameters] = None

    @property
    def model(self) -> StructuralModel:
        return self._model

    @property
    def constraints(self) -> Constraints:
        return self._constraints

    @property
    def parameters(self) -> WrappedParameters:
        if self._parameters is None:
            self.wrap()
        return self._parameters

    @property
    def num_parameters(self) -> int:
        return len(self.parameters)

    # ---- traversal ----
    def _blocks(self, model: StructuralModel) -> Iterator[_Block]:
        groups = group_elements(model, self._selections)
        for surface, element_groups in groups.items():
            for element_type, elements in element_groups.items():
                if surface == SPECIAL_SURFACE:
                    if element_type != ElementType.SPRING:
                        continue
                    kind = VariableKind.SPRING_STIFFNESS
                    for i, spring in enumerate(elements):
                        key = (surface, element_type, i, kind)
                        properties, mask = get_spring_properties(spring, self._constraints,
                                                                 self._spring_masks.get(key))
                        self._spring_masks.setdefault(key, mask)
                        yield _Block(key, kind, properties,
                                     lambda values, spring=spring, mask=mask: set_spring_properties(values, spring, mask))
                    continue
                for kind in ELEMENT_VARIABLES.get(element_type, ()):
                    key = (surface, element_type, -1, kind)
                    properties = get_properties(elements, kind, self._constraints)
                    yield _Block(key, kind, properties,
                                 lambda values, elements=elements, kind=kind: set_properties(values, elements, kind))

    # ---- wrap ----
    def wrap(self) -> WrappedParameters:
        """Build the parameter vector of the initial model."""
        self._spring_masks = {}
        self._cell_masks = {}
        result = WrappedParameters()
        for block in self._blocks(self._model):
            if block.properties.size == 0:
                continue
            values, scales, bounds = self._wrap_block(block)
            result.append(values, scales, bounds)
        self._parameters = result
        return result

    def _wrap_block(self, block: _Block) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        kind = block.kind
        properties = block.properties
        indices = row_indices_abs_max(properties)
        if self._constraints.is_united(kind):
            values = properties[np.arange(properties.shape[0]), indices]
        elif self._constraints.is_multiplied(kind):
            values = np.array([properties[0, indices[0]]])
        else:
            values = properties.ravel()
            cells = np.ones(values.size, dtype=bool)
            if self._constraints.is_nonzero(kind):
                cells = np.abs(values) > EPS
            self._cell_masks[block.key] = cells
            values = values[cells]
        values = values.astype(float).copy()

        num_values = values.size
        scales = np.full(num_values, self._constraints.scale(kind))
        bounds = np.tile(np.asarray(self._constraints.bounds(kind), dtype=float), (num_values, 1))
        scales[(scales == 0.0) & (values <= EPS)] = 1.0

        linear = scales != 0.0
        values[linear] *= scales[linear]
        bounds[linear] *= scales[linear, None]
        logged = ~linear
        with np.errstate(divide="ignore", invalid="ignore"):
            values[logged] = np.log10(values[logged])
            bounds[logged] = np.log10(bounds[logged])
        lower = bounds[:, 0]
        upper = bounds[:, 1]
        lower[np.isnan(lower)] = -np.inf
        upper[np.isnan(upper)] = np.inf
        bounds = np.sort(bounds, axis=1)
        return values, scales, bounds

    # ---- unwrap ----
    def unwrap(self, values) -> StructuralModel:
        """Decode a parameter vector into a copy of the initial model.

        A vector which does not match the wrapped layout is decoded as far as
        possible; a warning is logged and the partially updated model returned.
        """
        parameters = self.parameters
        values = np.asarray(values, dtype=float).ravel()
        model = self._model.copy()
        cursor = 0
        for block in self._blocks(model):
            if block.properties.size == 0:
                continue
            num_values = self._num_block_values(block)
            if cursor + num_values > min(values.size, len(parameters)):
                cursor = -1
                break
            decoded = _decode(values[cursor:cursor + num_values], parameters.scales[cursor:cursor + num_values])
            block.write(self._unwrap_block(block, decoded))
            cursor += num_values
        if cursor != values.size or cursor != len(parameters):
            logger.warning("Some parameters were not unwrapped during updating. Check the results carefully")
        return model

    def _num_block_values(self, block: _Block) -> int:
        kind = block.kind
        if self._constraints.is_united(kind):
            return block.properties.shape[0]
        if self._constraints.is_multiplied(kind):
            return 1
        return int(np.count_nonzero(self._cell_masks[block.key]))

    def _unwrap_block(self, block: _Block, decoded: np.ndarray) -> np.ndarray:
        kind = block.kind
        properties = block.properties.astype(float).copy()
        indices = row_indices_abs_max(properties)
        if self._constraints.is_united(kind):
            for i, column in enumerate(indices):
                reference = properties[i, column]
                if reference == 0.0:
                    properties[i, column] = decoded[i]
                else:
                    properties[i] *= decoded[i] / reference
        elif self._constraints.is_multiplied(kind):
            reference = properties[0, indices[0]]
            if reference == 0.0:
                properties[0, indices[0]] = decoded[0]
            else:
                properties *= decoded[0] / reference
        else:
            flat = properties.ravel()
            flat[self._cell_masks[block.key]] = decoded
            properties = flat.reshape(properties.shape)
        return properties


def _decode(values: np.ndarray, scales: np.ndarray) -> np.ndarray:
    result = np.empty_like(values)
    linear = scales != 0.0
    result[linear] = values[linear] / scales[linear]
    result[~linear] = np.power(10.0, values[~linear])
    return result
