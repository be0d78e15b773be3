"""vgif package root.

Export primary classes and CLI for convenience when installed via pip.
"""

__version__ = "0.1.0"

from .cli import main as cli_main  # noqa: F401
from .converter import VideoGifConverter  # noqa: F401
from .models import ConversionRequest, ConversionResult, LocalFile, RemoteVideo, source_from_options  # noqa: F401
