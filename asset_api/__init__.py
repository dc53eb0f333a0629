"""HTTP API over the asset-transfer chaincode on a Fabric network."""

__version__ = "0.1.0"
