"""
matrixprovisioner - Matrix Synapse homeserver and admin panel provisioning
"""

__version__ = "0.1.0"

from .core import MatrixProvisioner
from .errors import ProvisionerError

__all__ = ["MatrixProvisioner", "ProvisionerError"]
