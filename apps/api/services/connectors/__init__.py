"""Public connector provider utilities."""

from services.connectors.providers import BaseConnectorProvider, get_connector_provider
from services.connectors.registry import PROVIDER_CONFIGS, get_provider_config
from services.connectors.state import decode_state, encode_state, get_state_nonce_store, verify_state
from services.connectors.types import (
    ConnectorError,
    NormalizedProfile,
    OAuthState,
    PlatformKey,
    ProviderConfig,
    TokenGrant,
)

__all__ = [
    "BaseConnectorProvider",
    "ConnectorError",
    "NormalizedProfile",
    "OAuthState",
    "PROVIDER_CONFIGS",
    "PlatformKey",
    "ProviderConfig",
    "TokenGrant",
    "decode_state",
    "encode_state",
    "get_connector_provider",
    "get_provider_config",
    "get_state_nonce_store",
    "verify_state",
]
