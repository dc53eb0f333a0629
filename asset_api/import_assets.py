"""
Seed the ledger from a CSV of assets.

    asset-import assets.csv

Columns: color, size, owner, value and optionally assetId. Rows without an
assetId get one from the same generator the API uses.
"""

from __future__ import annotations

import argparse
import sys
import time

import pandas as pd
from pydantic import ValidationError

from asset_api.config import load_settings
from asset_api.fabric import Contract, CredentialError, LedgerError, connect
from asset_api.log import get_logger
from asset_api.models import AssetIdGenerator, CreateAssetRequest

logger = get_logger(__name__)

REQUIRED_COLUMNS = ("color", "size", "owner", "value")
WAIT_SECONDS = 1


def read_assets(path) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {', '.join(missing)}")
    for c in df.columns:
        df[c] = df[c].str.strip()
    return df


def import_assets(contract: Contract, df: pd.DataFrame, new_asset_id=None, wait_seconds: float = WAIT_SECONDS):
    """Create one asset per row, waiting for each commit. Returns (created, failed)."""
    new_asset_id = new_asset_id or AssetIdGenerator()
    created = failed = 0

    for i, (_, row) in enumerate(df.iterrows()):
        try:
            body = CreateAssetRequest.model_validate(row.to_dict())
        except ValidationError as e:
            logger.error("import_invalid_row", row=i, error=str(e))
            failed += 1
            continue

        asset_id = row.get("assetId") or new_asset_id()
        try:
            contract.submit_transaction(
                "CreateAsset", asset_id, body.color, body.size, body.owner, body.value,
                wait_for_commit=True,
            )
        except LedgerError as e:
            logger.error("import_failed", asset_id=asset_id, kind=e.kind, error=str(e))
            failed += 1
        else:
            logger.info("import_created", asset_id=asset_id)
            created += 1

        if wait_seconds and i < len(df) - 1:
            time.sleep(wait_seconds)

    return created, failed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create assets on the ledger from a CSV file")
    parser.add_argument("csv", help="CSV with color,size,owner,value[,assetId] columns")
    parser.add_argument("--wait", type=float, default=WAIT_SECONDS, help="seconds to sleep between rows")
    args = parser.parse_args(argv)

    try:
        df = read_assets(args.csv)
        contract = connect(load_settings())
    except (OSError, ValueError, CredentialError, LedgerError) as e:
        logger.error("import_aborted", error=str(e), error_type=type(e).__name__)
        return 1

    created, failed = import_assets(contract, df, wait_seconds=args.wait)
    logger.info("import_done", created=created, failed=failed)
    return 0 if failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
