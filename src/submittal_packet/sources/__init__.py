from submittal_packet.sources.category_directory import (
    CategoryDirectoryClient,
    RegistryDirectoryClient,
    StaticDirectoryClient,
    lookup_available_documents,
)
from submittal_packet.sources.packet_client import PacketClient

__all__ = [
    "CategoryDirectoryClient",
    "RegistryDirectoryClient",
    "StaticDirectoryClient",
    "lookup_available_documents",
    "PacketClient",
]
