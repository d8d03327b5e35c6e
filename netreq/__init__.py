from .http import *  # noqa: F401,F403
from .http import __all__
