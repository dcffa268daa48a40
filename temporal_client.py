"""Temporal client factory.

Creates connections to Temporal using settings from the environment
(see core.config). Temporal Cloud is used when an API key is set; otherwise
a plain connection is made, which suits a local dev server.
"""

from pathlib import Path
from typing import Optional, Union

from temporalio.client import Client
from temporalio.service import TLSConfig

from core.config import Settings, get_settings


def _tls_config(cert_path: Optional[str]) -> Union[bool, TLSConfig]:
    if not cert_path:
        # System roots are enough for Temporal Cloud API-key auth
        return True
    pem = Path(cert_path).read_bytes()
    return TLSConfig(client_cert=pem, client_private_key=pem)


async def get_temporal_client(settings: Optional[Settings] = None) -> Client:
    """Create and return a Temporal client.

    Reads configuration from settings:
    - temporal_endpoint: Temporal frontend (e.g., "temporal.example.com:7233")
    - temporal_namespace: Namespace (e.g., "default")
    - temporal_api_key: API key for Temporal Cloud (optional)
    - temporal_cert_path: PEM with client certificate and key (optional, for mTLS)

    Returns:
        Connected Temporal client

    Raises:
        ValueError: If TEMPORAL_ENDPOINT is not set
    """
    settings = settings or get_settings()

    if not settings.temporal_endpoint:
        raise ValueError(
            "TEMPORAL_ENDPOINT environment variable not set. "
            "Set to your Temporal endpoint (e.g., 'localhost:7233')"
        )

    if not settings.temporal_api_key:
        return await Client.connect(
            settings.temporal_endpoint,
            namespace=settings.temporal_namespace,
        )

    return await Client.connect(
        settings.temporal_endpoint,
        namespace=settings.temporal_namespace,
        tls=_tls_config(settings.temporal_cert_path),
        api_key=settings.temporal_api_key,
    )
