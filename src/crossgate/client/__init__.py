from .admin import GatewayAdmin
from .relayer import DeliveryReceipt, RelayerClient

__all__ = ["GatewayAdmin", "DeliveryReceipt", "RelayerClient"]
