__title__ = 'quiver'
__license__ = 'MIT'
# Placeholder, modified by dynamic-versioning.
__version__ = "0.0.0"

from . import acceptors
from . import groups
from .arguments import *
from .cli import *
from .dsl import *
from .faults import *
from .flags import *
from .loader import *
from .middleware import *
from .parser import *
from .sources import *
from .tools import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

# Placeholder, modified by dynamic-versioning.
version_info = VersionInfo(0, 0, 0, "final", 0, "")

__all__ = (
    "__title__",
    "__license__",
    "__version__",
    "version_info",
    "acceptors",
    "groups",
)

# Load the exposed API of the definitions
__all__ += arguments.__all__  # type: ignore[attr-defined]
__all__ += flags.__all__  # type: ignore[attr-defined]
__all__ += tools.__all__  # type: ignore[attr-defined]
__all__ += sources.__all__  # type: ignore[attr-defined]
# Load the exposed API of the loader and its front end
__all__ += loader.__all__  # type: ignore[attr-defined]
__all__ += dsl.__all__  # type: ignore[attr-defined]
# Load the exposed API of the runner
__all__ += parser.__all__  # type: ignore[attr-defined]
__all__ += middleware.__all__  # type: ignore[attr-defined]
__all__ += cli.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
