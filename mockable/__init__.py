"""
mockable: generate test doubles from ``typing.Protocol`` declarations.

Protocols decorated with ``@mockable`` are turned into ``<Name>Mock`` classes
that count calls, log arguments and forward to configurable handlers. The
generator lives in ``mockable.core.compiler``; this top-level package only
re-exports the markers protocol authors need.
"""

from mockable.runtime import Isolated, MockFatalError, ThreadSafe, mockable, throws

__version__ = "0.1.0"

__all__ = ["Isolated", "MockFatalError", "ThreadSafe", "mockable", "throws", "__version__"]
