from .conversion import IMessageConverter
from .observer import IErrorObserver
from .provisioner import IProvisioner
from .transport import ITransport

__all__ = [
    "IErrorObserver",
    "IMessageConverter",
    "IProvisioner",
    "ITransport",
]
