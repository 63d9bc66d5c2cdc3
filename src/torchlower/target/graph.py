"""Target graph construction primitives.

A :class:`TargetGraph` owns one ``torch.fx.Graph`` and the module holding its
constants. Every primitive returns a :class:`TensorHandle` whose node carries a
meta-device tensor in ``meta["val"]``, so shapes and dtypes are known while the
graph is being built without executing anything.
"""

__docformat__ = "restructuredtext"
__all__ = ["TargetGraph", "emit"]

import math
import operator
import re
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import torch
from torch import fx
from torch.fx.node import map_aggregate

from torchlower.errors import ShapeMismatch
from torchlower.target.types import Program, TensorDesc, TensorHandle


def _identifier(name: str) -> str:
    """Turn an arbitrary tensor name into a Python identifier."""
    ident = re.sub(r"\W", "_", name) or "t"
    if ident[0].isdigit():
        ident = f"t_{ident}"
    return ident


def _unique(base: str, taken: set[str], root: torch.nn.Module) -> str:
    """First free name derived from ``base``, also avoiding attributes of ``root``."""
    name = base
    counter = 1
    while name in taken or hasattr(root, name):
        name = f"{base}_{counter}"
        counter += 1
    taken.add(name)
    return name


def _element_size(dtype: torch.dtype) -> int:
    return torch.empty((), dtype=dtype).element_size()


class TargetGraph:
    """Builder of one lowered program.

    :param name: Class name of the generated graph module
    """

    def __init__(self, name: str = "LoweredProgram"):
        self.name = name
        self.root = torch.nn.Module()
        self.graph = fx.Graph()
        self._scopes: list[str] = []
        self._taken: set[str] = set()

    # Scopes

    @contextmanager
    def named_scope(self, name: str) -> Iterator[None]:
        """Tag every node created inside the block with ``meta["scope"]``."""
        self._scopes.append(name)
        try:
            yield
        finally:
            self._scopes.pop()

    @property
    def scope(self) -> str:
        return "/".join(self._scopes)

    def _record(
        self, node: fx.Node, meta: torch.Tensor, value: torch.Tensor | None = None
    ) -> TensorHandle:
        node.meta["val"] = meta
        if self._scopes:
            node.meta["scope"] = self.scope
        return TensorHandle(self, node, value)

    def _own(self, handle: TensorHandle) -> None:
        if handle.graph is not self:
            raise ValueError(f"{handle!r} belongs to a different target graph")

    # Primitives

    def constant(self, tensor: torch.Tensor, name: str = "const") -> TensorHandle:
        """Embed ``tensor`` as a buffer of the program."""
        attr = _unique(_identifier(name), self._taken, self.root)
        self.root.register_buffer(attr, tensor)
        node = self.graph.get_attr(attr)
        return self._record(node, torch.empty_like(tensor, device="meta"), tensor)

    def literal(
        self, data: bytes, dtype: torch.dtype, shape: Sequence[int], name: str = "literal"
    ) -> TensorHandle:
        """Embed a literal tensor copied bit for bit from ``data``.

        :raises ShapeMismatch: If the buffer size does not match shape and dtype
        """
        shape = tuple(int(dim) for dim in shape)
        expected = math.prod(shape) * _element_size(dtype)
        if len(data) != expected:
            raise ShapeMismatch(
                f"Literal '{name}' holds {len(data)} bytes but shape {list(shape)} "
                f"of {dtype} needs {expected}",
                name,
            )
        if expected == 0:
            tensor = torch.empty(shape, dtype=dtype)
        else:
            tensor = torch.frombuffer(bytearray(data), dtype=dtype).reshape(shape).clone()
        return self.constant(tensor, name)

    def placeholder(self, name: str, dtype: torch.dtype, shape: Sequence[int]) -> TensorHandle:
        target = _unique(_identifier(name), self._taken, self.root)
        node = self.graph.placeholder(target)
        meta = torch.empty(tuple(shape), dtype=dtype, device="meta")
        return self._record(node, meta)

    def convert(self, handle: TensorHandle, dtype: torch.dtype) -> TensorHandle:
        self._own(handle)
        node = self.graph.call_method("to", (handle.node,), {"dtype": dtype})
        value = handle.value.to(dtype) if handle.value is not None else None
        return self._record(node, handle.meta.to(dtype), value)

    def reshape(self, handle: TensorHandle, shape: Sequence[int]) -> TensorHandle:
        """Reinterpret ``handle`` with a new shape of the same element count.

        :raises ShapeMismatch: If the element counts differ
        """
        self._own(handle)
        shape = tuple(int(dim) for dim in shape)
        if math.prod(shape) != handle.meta.numel():
            raise ShapeMismatch(
                f"Cannot reshape {list(handle.shape)} to {list(shape)}", handle.node.name
            )
        node = self.graph.call_function(torch.reshape, (handle.node, shape))
        value = handle.value.reshape(shape) if handle.value is not None else None
        return self._record(node, handle.meta.reshape(shape), value)

    def permute(self, handle: TensorHandle, dims: Sequence[int]) -> TensorHandle:
        self._own(handle)
        dims = tuple(int(dim) for dim in dims)
        node = self.graph.call_function(torch.permute, (handle.node, dims))
        value = handle.value.permute(dims) if handle.value is not None else None
        return self._record(node, handle.meta.permute(dims), value)

    def emit(
        self, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> TensorHandle | tuple[TensorHandle, ...]:
        """Add a call of ``fn`` to the graph.

        Handles may appear anywhere in ``args``/``kwargs``, including inside lists.
        Output shapes are inferred by calling ``fn`` on meta tensors. A sequence
        result yields one handle per element.
        """

        def to_node(arg: Any) -> Any:
            if isinstance(arg, TensorHandle):
                self._own(arg)
                return arg.node
            return arg

        def to_meta(arg: Any) -> Any:
            return arg.meta if isinstance(arg, TensorHandle) else arg

        meta = fn(*map_aggregate(args, to_meta), **map_aggregate(kwargs, to_meta))
        node = self.graph.call_function(
            fn, map_aggregate(args, to_node), map_aggregate(kwargs, to_node)
        )
        if isinstance(meta, torch.Tensor):
            return self._record(node, meta)
        if not isinstance(meta, (tuple, list)) or not all(
            isinstance(item, torch.Tensor) for item in meta
        ):
            raise TypeError(f"{getattr(fn, '__name__', fn)} did not produce tensors")

        node.meta["val"] = tuple(meta)
        if self._scopes:
            node.meta["scope"] = self.scope
        return tuple(
            self._record(self.graph.call_function(operator.getitem, (node, index)), item)
            for index, item in enumerate(meta)
        )

    # Finalization

    def _order_placeholders(self, placeholders: list[fx.Node]) -> None:
        cursor: fx.Node | None = None
        for node in placeholders:
            if cursor is None:
                head = next(iter(self.graph.nodes))
                if head is not node:
                    head.prepend(node)
            elif cursor.next is not node:
                cursor.append(node)
            cursor = node

    def build_program(
        self,
        inputs: list[tuple[str, TensorHandle]],
        outputs: list[tuple[str, TensorHandle]],
    ) -> Program:
        """Package the graph into an immutable :class:`Program`.

        :param inputs: Ordered (name, placeholder handle) pairs
        :param outputs: Ordered (name, handle) pairs
        :return: Program whose signature follows the given order
        """
        for name, handle in inputs:
            self._own(handle)
            if handle.node.op != "placeholder":
                raise ValueError(f"Program input '{name}' is not a placeholder")
        for _, handle in outputs:
            self._own(handle)

        self._order_placeholders([handle.node for _, handle in inputs])
        self.graph.output(tuple(handle.node for _, handle in outputs))
        self.graph.eliminate_dead_code()
        self.graph.lint()
        module = fx.GraphModule(self.root, self.graph, class_name=self.name)

        return Program(
            module=module,
            input_names=tuple(name for name, _ in inputs),
            output_names=tuple(name for name, _ in outputs),
            input_descs=tuple(TensorDesc(h.dtype, h.shape) for _, h in inputs),
            output_descs=tuple(TensorDesc(h.dtype, h.shape) for _, h in outputs),
        )


def emit(fn: Callable[..., Any], *args: Any, **kwargs: Any):
    """Emit ``fn`` into the target graph owning the first handle among the arguments.

    Convenience for operator builders, which only see handles.
    """
    handles: list[TensorHandle] = []
    map_aggregate(
        (args, kwargs), lambda arg: handles.append(arg) if isinstance(arg, TensorHandle) else arg
    )
    if not handles:
        raise ValueError(f"emit({getattr(fn, '__name__', fn)}) needs at least one tensor handle")
    return handles[0].graph.emit(fn, *args, **kwargs)
