"""Camera/LiDAR time-to-collision estimation."""

__version__ = "0.1.0"

from . import utils
from . import data
from . import calibration
from . import fusion
from . import perception2d
