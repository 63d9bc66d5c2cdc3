"""Tests for the lowering error taxonomy.

Every failure is a :class:`BuildError` carrying the identity of what failed, and
also derives from the builtin exception callers would naturally catch.
"""

import pytest

from torchlower.errors import (
    BuildError,
    BuilderContractViolation,
    DependencyNotFound,
    MissingGraphRepresentation,
    OutputArityMismatch,
    RegistryConflict,
    ShapeMismatch,
    UnboundIO,
    UnsupportedAttributeKind,
    UnsupportedOperator,
)


class TestErrorHierarchy:
    """Test base classes of every error."""

    @pytest.mark.parametrize(
        ("error", "builtin"),
        [
            (UnsupportedOperator("Foo", "foo"), NotImplementedError),
            (ShapeMismatch("bad", "w"), ValueError),
            (DependencyNotFound(("a", 0)), LookupError),
            (BuilderContractViolation("n", "returned None"), TypeError),
        ],
    )
    def test_builtin_bases(self, error, builtin):
        assert isinstance(error, BuildError)
        assert isinstance(error, builtin)

    @pytest.mark.parametrize(
        "error",
        [
            MissingGraphRepresentation("net"),
            UnsupportedAttributeKind("body", "void*", "loop"),
            OutputArityMismatch("split", 2, 1),
            UnboundIO("y", "output"),
            RegistryConflict(("a", 0)),
        ],
    )
    def test_build_errors(self, error):
        assert isinstance(error, BuildError)


class TestErrorMessages:
    """Test that messages name the offending entity."""

    def test_unsupported_operator(self):
        error = UnsupportedOperator("Hardmax", "hardmax_0")
        assert str(error) == "Unsupported operation: Hardmax (node 'hardmax_0')"

    def test_unsupported_attribute_kind(self):
        error = UnsupportedAttributeKind("body", "void*", "loop")
        assert "body" in str(error)
        assert "'loop'" in str(error)

    def test_dependency_not_found(self):
        error = DependencyNotFound(("conv", 1), "relu")
        assert str(error) == "No tensor registered for output 1 of 'conv' (needed by 'relu')"

    def test_dependency_without_consumer(self):
        assert "needed by" not in str(DependencyNotFound(("conv", 0)))

    def test_output_arity(self):
        error = OutputArityMismatch("split", 3, 2)
        assert "declares 3 output(s)" in str(error)
        assert "returned 2" in str(error)

    def test_missing_graph(self):
        assert "'net'" in str(MissingGraphRepresentation("net"))
        assert "Host network has no" in str(MissingGraphRepresentation())

    def test_unbound_io(self):
        assert str(UnboundIO("y", "output")) == (
            "Declared network output 'y' is not bound to a tensor"
        )

    def test_registry_conflict(self):
        assert "already registered" in str(RegistryConflict(("a", 0)))
