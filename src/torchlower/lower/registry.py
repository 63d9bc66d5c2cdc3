"""Tensor registry and I/O binding table.

The tensor registry is the single source of truth for "what tensor does this edge
carry". It is keyed by (producer identity, output slot).
"""

__docformat__ = "restructuredtext"
__all__ = ["IOBindings", "TensorKey", "TensorRegistry"]

from torchlower.errors import DependencyNotFound, RegistryConflict, UnboundIO
from torchlower.target import TensorHandle

TensorKey = tuple[str, int]


class TensorRegistry:
    """Map from producer output slot to its current tensor handle.

    A key may be redirected once to another handle, e.g. a reordered copy of the
    original value. A second redirect of the same key replaces the first.
    """

    def __init__(self) -> None:
        self._tensors: dict[TensorKey, TensorHandle] = {}
        self._redirects: dict[TensorKey, TensorHandle] = {}

    def __contains__(self, key: TensorKey) -> bool:
        return key in self._tensors

    def __len__(self) -> int:
        return len(self._tensors)

    def register(self, key: TensorKey, handle: TensorHandle) -> None:
        """Register the handle produced at ``key``.

        :raises RegistryConflict: If ``key`` is already registered
        """
        if key in self._tensors:
            raise RegistryConflict(key)
        self._tensors[key] = handle

    def redirect(self, key: TensorKey, handle: TensorHandle) -> None:
        """Make future lookups of ``key`` return ``handle``.

        :raises DependencyNotFound: If ``key`` was never registered
        """
        if key not in self._tensors:
            raise DependencyNotFound(key)
        self._redirects[key] = handle

    def is_redirected(self, key: TensorKey) -> bool:
        return key in self._redirects

    def resolve(
        self, key: TensorKey, consumer: str | None = None, follow_redirect: bool = True
    ) -> TensorHandle:
        """Look up the handle for ``key``, following its redirect if any.

        :param key: (producer identity, output slot)
        :param consumer: Consumer identity, for diagnostics
        :param follow_redirect: Return the originally registered handle when False
        :raises DependencyNotFound: If ``key`` was never registered
        """
        if follow_redirect and key in self._redirects:
            return self._redirects[key]
        try:
            return self._tensors[key]
        except KeyError:
            raise DependencyNotFound(key, consumer) from None


class IOBindings:
    """Map from the host's external input/output names to tensor handles."""

    def __init__(self) -> None:
        self.inputs: dict[str, TensorHandle] = {}
        self.outputs: dict[str, TensorHandle] = {}

    def bind_input(self, name: str, handle: TensorHandle) -> None:
        self.inputs[name] = handle

    def bind_output(self, name: str, handle: TensorHandle) -> None:
        self.outputs[name] = handle

    def collect_inputs(self, names: list[str]) -> list[tuple[str, TensorHandle]]:
        """Bound inputs in the order of ``names``.

        :raises UnboundIO: If a name has no binding
        """
        return [(name, self._lookup(self.inputs, name, "input")) for name in names]

    def collect_outputs(self, names: list[str]) -> list[tuple[str, TensorHandle]]:
        """Bound outputs in the order of ``names``.

        :raises UnboundIO: If a name has no binding
        """
        return [(name, self._lookup(self.outputs, name, "output")) for name in names]

    @staticmethod
    def _lookup(table: dict[str, TensorHandle], name: str, direction: str) -> TensorHandle:
        if name not in table:
            raise UnboundIO(name, direction)
        return table[name]
