"""Fundamental propagation operators. Can be chained to simulate piecewise-constant sequences."""

__all__ = ["Operator", "CompositeOperator", "Identity"]

import uuid

import torch


class Operator:
    """
    Base class of an operator acting on an augmented magnetization state.

    All derived operators should return the propagated state to allow operator chaining.
    The state is never modified in place.

    """

    def __init__(self, name="", *args, **kwargs):  # noqa
        if name:
            self.name = name  # Optional name for operators
        else:
            # Unique names for easier possibility of serialisation
            self.name = str(uuid.uuid4())

    def apply(self, state):  # noqa
        return state

    def __mul__(self, other):  # noqa
        if isinstance(other, Operator):
            return CompositeOperator(self, other)
        elif isinstance(other, torch.Tensor):
            return self.apply(other)
        else:
            raise NotImplementedError("Can not apply operator to non-tensors")

    def __call__(self, *args, **kwargs):  # noqa
        return self.apply(*args, **kwargs)


class CompositeOperator(Operator):
    """
    Composite operator that contains several operators.

    Operators are applied right-to-left, as in a matrix product:
    ``CompositeOperator(A, B)(state) == A(B(state))``.

    """

    def __init__(self, *args, **kwargs):  # noqa
        super().__init__(**kwargs)
        self._operators = []

        for op in args:
            self.append(op)

    def __getitem__(self, name):  # noqa
        for op in self._operators:
            if op.name == name:
                return op
        return None

    def __len__(self):  # noqa
        return len(self._operators)

    def append(self, operator):  # noqa
        self._operators.append(operator)
        return self

    def apply(self, state):
        """
        Apply the composite operator by consecutive application of the contained operators.

        Parameters
        ----------
        state : torch.Tensor
            Augmented state to be propagated.

        Returns
        -------
        torch.Tensor
            Propagated state.

        """
        out = state

        for op in reversed(self._operators):
            out = op.apply(out)

        return out

    def __mul__(self, other):  # noqa
        if isinstance(other, torch.Tensor):
            return self.apply(other)
        elif isinstance(other, Operator):
            return CompositeOperator(*self._operators, other)
        else:
            raise NotImplementedError("Object can not be added to composite operator")


class Identity(Operator):
    """Dummy operator."""

    pass
