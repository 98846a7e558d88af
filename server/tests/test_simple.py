"""Simple test to verify pytest setup."""

from fractional.schemas.common import BasisPoints


def test_simple():
    """Simple test that should always pass."""
    assert BasisPoints.WHOLE == 10000


def test_import_app():
    """Test that we can import the app module."""
    from fractional.main import create_app
    app = create_app()
    assert app is not None
