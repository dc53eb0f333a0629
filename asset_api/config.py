"""
Settings for the asset API.

Defaults point at the org1 admin of the Fabric test network. Every value can
be overridden from the environment or from a .env file in the project root.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
_ENV_PATH = _ROOT / ".env"

# ================== FABRIC DEFAULTS ==================

DEFAULT_BASE = "/home/user/project/fabric-samples/test-network"

ORG1 = "organizations/peerOrganizations/org1.example.com"
ORG2 = "organizations/peerOrganizations/org2.example.com"
ORDERER_ORG = "organizations/ordererOrganizations/example.com"


class ConfigError(ValueError):
    """Raised when an environment value cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    peer_endpoint: str
    peer_host_alias: str
    tls_cert_path: Path
    cert_path: Path
    key_path: Path
    msp_id: str
    channel_name: str
    chaincode_name: str
    orderer_endpoint: str
    orderer_host_alias: str
    orderer_tls_cert_path: Path
    peer_bin: Path
    fabric_cfg_path: Path
    endorsing_peers: tuple[tuple[str, Path], ...] = field(default_factory=tuple)
    wait_for_commit: bool = True
    commit_timeout: int = 30
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origin: str = "http://localhost:5173"

    @property
    def msp_path(self) -> Path:
        """MSP directory holding signcerts/ and keystore/ for the client."""
        return self.cert_path.parent.parent


def load_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    load_dotenv(_ENV_PATH)


def _get(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip() or default


def _get_int(name: str, default: int) -> int:
    raw = _get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _get_bool(name: str, default: bool) -> bool:
    raw = _get(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def parse_peers(raw: str) -> tuple[tuple[str, Path], ...]:
    """
    Parse ``addr=ca_path,addr=ca_path`` into (address, TLS root cert) pairs.

    An empty string means no extra endorsing peers.
    """
    peers = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        address, sep, ca = item.partition("=")
        if not sep or not address.strip() or not ca.strip():
            raise ConfigError(f"ENDORSING_PEERS entry must be addr=ca_path, got {item!r}")
        peers.append((address.strip(), Path(ca.strip())))
    return tuple(peers)


def load_settings() -> Settings:
    load_env()
    base = _get("FABRIC_TEST_NETWORK", DEFAULT_BASE)

    tls_cert = f"{base}/{ORG1}/tlsca/tlsca.org1.example.com-cert.pem"
    msp = f"{base}/{ORG1}/users/Admin@org1.example.com/msp"
    orderer_ca = (
        f"{base}/{ORDERER_ORG}/"
        "orderers/orderer.example.com/msp/tlscacerts/tlsca.example.com-cert.pem"
    )
    org2_peer = f"localhost:9051={base}/{ORG2}/peers/peer0.org2.example.com/tls/ca.crt"

    # ENDORSING_PEERS may be set to "" to endorse on the gateway peer only
    raw_peers = os.getenv("ENDORSING_PEERS")
    if raw_peers is None:
        raw_peers = org2_peer

    return Settings(
        peer_endpoint=_get("PEER_ENDPOINT", "localhost:7051"),
        peer_host_alias=_get("PEER_HOST_ALIAS", "peer0.org1.example.com"),
        tls_cert_path=Path(_get("TLS_CERT_PATH", tls_cert)),
        cert_path=Path(_get("CERT_PATH", f"{msp}/signcerts/Admin@org1.example.com-cert.pem")),
        key_path=Path(_get("KEY_PATH", f"{msp}/keystore/priv_sk")),
        msp_id=_get("MSP_ID", "Org1MSP"),
        channel_name=_get("CHANNEL_NAME", "mychannel"),
        chaincode_name=_get("CHAINCODE_NAME", "basic"),
        orderer_endpoint=_get("ORDERER_ENDPOINT", "localhost:7050"),
        orderer_host_alias=_get("ORDERER_HOST_ALIAS", "orderer.example.com"),
        orderer_tls_cert_path=Path(_get("ORDERER_TLS_CERT_PATH", orderer_ca)),
        peer_bin=Path(_get("PEER_BIN", f"{base}/../bin/peer")),
        fabric_cfg_path=Path(_get("FABRIC_CFG_PATH", f"{base}/../config")),
        endorsing_peers=parse_peers(raw_peers),
        wait_for_commit=_get_bool("WAIT_FOR_COMMIT", True),
        commit_timeout=_get_int("COMMIT_TIMEOUT", 30),
        host=_get("HOST", "0.0.0.0"),
        port=_get_int("PORT", 3000),
        cors_origin=_get("CORS_ORIGIN", "http://localhost:5173"),
    )
