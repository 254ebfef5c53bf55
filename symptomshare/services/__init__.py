# Mark services as a package and expose key service modules for tests to monkeypatch.

from . import gemini as gemini  # noqa: F401
from . import keywords as keywords  # noqa: F401
from . import matching as matching  # noqa: F401
from . import suggestions as suggestions  # noqa: F401

__all__ = [
    "gemini",
    "keywords",
    "matching",
    "suggestions",
]
