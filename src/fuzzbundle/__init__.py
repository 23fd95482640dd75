"""fuzzbundle - bundle fuzz tests into self-contained archives."""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
