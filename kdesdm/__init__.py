# kdesdm/__init__.py

from kdesdm.sdm import PythonSDM, EngineState
from kdesdm.core.modeling import run_sdm
from kdesdm.core.config import SDMConfig, load_config
from kdesdm.core.errors import (
    SDMError,
    DegenerateFeatureError,
    InsufficientSampleError,
    ModelNotFittedError,
    EmptyClassError,
    DimensionMismatchError,
    MissingValueError,
    ProjectionCancelledError,
    InvalidStateError,
)

__version__ = "0.1.0"
