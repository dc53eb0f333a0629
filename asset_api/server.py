"""
Process entry point: bootstrap the Fabric connection, then serve HTTP.

Run with: asset-api  (or python -m asset_api)
"""

from __future__ import annotations

import sys

from asset_api.app import create_app
from asset_api.config import ConfigError, load_settings
from asset_api.fabric import CredentialError, LedgerError, connect
from asset_api.log import get_logger

logger = get_logger(__name__)


def main() -> int:
    try:
        settings = load_settings()
        contract = connect(settings)
    except (ConfigError, CredentialError, LedgerError) as e:
        logger.error("startup_failed", error=str(e), error_type=type(e).__name__)
        return 1

    app = create_app(contract, settings)
    logger.info("server_starting", url=f"http://localhost:{settings.port}")
    app.run(host=settings.host, port=settings.port, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
