"""Tests for lazy import system in notecast.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in notecast.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Verify that importing notecast does not eagerly load subpackages."""
        saved = {name: mod for name, mod in sys.modules.items() if name.startswith("notecast")}
        for name in saved:
            del sys.modules[name]
        try:
            importlib.import_module("notecast")

            assert "notecast.core" not in sys.modules
            assert "notecast.models" not in sys.modules
            assert "notecast.services" not in sys.modules
            assert "notecast.nips" not in sys.modules
        finally:
            for name in [n for n in sys.modules if n.startswith("notecast")]:
                del sys.modules[name]
            sys.modules.update(saved)

    def test_lazy_import_resolves_on_access(self) -> None:
        from notecast import NostrClient
        from notecast.services.client import NostrClient as DirectNostrClient

        assert NostrClient is DirectNostrClient

    def test_lazy_import_caches_after_first_access(self) -> None:
        import notecast

        _ = notecast.Event
        assert "Event" in vars(notecast)

    def test_lazy_import_invalid_attribute(self) -> None:
        import notecast

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(notecast, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        import notecast

        assert set(notecast.__all__) == set(notecast._LAZY_IMPORTS)

    def test_dir_returns_all(self) -> None:
        import notecast

        assert dir(notecast) == notecast.__all__

    def test_version_is_accessible(self) -> None:
        import notecast

        assert isinstance(notecast.__version__, str)
        assert notecast.__version__
