"""Tests for lazy import system in signerlink.__init__."""

from __future__ import annotations

import subprocess
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in signerlink.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Importing signerlink loads no subpackage (checked in a fresh interpreter)."""
        code = (
            "import sys, signerlink; "
            "print(sorted(m for m in sys.modules if m.startswith('signerlink.')))"
        )
        output = subprocess.run(
            [sys.executable, "-c", code], capture_output=True, text=True, check=True
        ).stdout.strip()
        assert output == "[]"

    def test_lazy_import_resolves_on_access(self) -> None:
        """Verify that lazy attributes resolve correctly."""
        from signerlink import RemoteSignerClient
        from signerlink.nip46.client import RemoteSignerClient as DirectClient

        assert RemoteSignerClient is DirectClient

    def test_lazy_import_caches_after_first_access(self) -> None:
        """Verify that resolved attributes are cached in globals."""
        import signerlink

        _ = signerlink.Relay

        assert "Relay" in vars(signerlink)

    def test_lazy_import_invalid_attribute(self) -> None:
        """Verify that invalid attributes raise AttributeError."""
        import signerlink

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(signerlink, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        """Verify that __all__ and _LAZY_IMPORTS are in sync."""
        import signerlink

        assert set(signerlink.__all__) == set(signerlink._LAZY_IMPORTS)

    def test_every_lazy_import_resolves(self) -> None:
        """Every advertised name points at a real attribute."""
        import signerlink

        for name in signerlink.__all__:
            assert getattr(signerlink, name) is not None

    def test_dir_returns_all(self) -> None:
        """Verify that dir(signerlink) returns __all__."""
        import signerlink

        assert dir(signerlink) == signerlink.__all__

    def test_version_is_accessible(self) -> None:
        """Verify that __version__ is set from package metadata."""
        import signerlink

        assert isinstance(signerlink.__version__, str)
        assert signerlink.__version__
