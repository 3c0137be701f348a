"""rootwatch-core: Event models, output parsing and collaborators shared by rootwatch."""

__version__ = "0.1.0"

# Models
from rootwatch_core.models import EventMask, ObservedEvent, SourceKind, WatchTarget

# Errors
from rootwatch_core.errors import BinaryNotFoundError, ProtocolError, RootwatchError, SourceStartError

# Output parsing
from rootwatch_core.protocol import LineProtocolParser, parse_line

# Collaborators
from rootwatch_core.binaries import ArchitectureBinaryResolver, BinaryConfig
from rootwatch_core.elevation import Elevator, NoElevator, SudoElevator, SuElevator, get_elevator
from rootwatch_core.notifier import LoggingNotifier, NoOpNotifier, Notifier

# Config
from rootwatch_core.config import WatchSettings, load_watch_config
from rootwatch_core.watchers import WatcherConfig, WatchSource

__all__ = [
    "__version__",
    # Models
    "EventMask",
    "ObservedEvent",
    "SourceKind",
    "WatchTarget",
    # Errors
    "RootwatchError",
    "SourceStartError",
    "BinaryNotFoundError",
    "ProtocolError",
    # Parsing
    "LineProtocolParser",
    "parse_line",
    # Collaborators
    "ArchitectureBinaryResolver",
    "BinaryConfig",
    "Elevator",
    "NoElevator",
    "SudoElevator",
    "SuElevator",
    "get_elevator",
    "Notifier",
    "NoOpNotifier",
    "LoggingNotifier",
    # Config
    "WatchSettings",
    "WatcherConfig",
    "WatchSource",
    "load_watch_config",
]
