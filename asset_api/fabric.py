"""
Fabric access through the peer CLI.

The peer binary is run with the client's CORE_PEER_* environment: TLS on,
MSP id and directory, TLS root certificate, peer address and TLS host
override. Writes go through ``peer chaincode invoke`` (endorsed by every
configured peer, then ordered), reads through ``peer chaincode query``.
"""

from __future__ import annotations

import codecs
import json
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable

from asset_api.config import Settings
from asset_api.log import get_logger

logger = get_logger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

PAYLOAD_RE = re.compile(r'payload:"((?:[^"\\]|\\.)*)"')
TXID_RE = re.compile(r"txid \[(\w+)\] committed with status \((\w+)\)")


class CredentialError(RuntimeError):
    """A TLS or identity file is missing, unreadable or not PEM."""


class LedgerError(RuntimeError):
    """A chaincode call failed.

    ``kind`` is one of ``unavailable``, ``endorsement``, ``commit``,
    ``timeout`` or ``unknown``.
    """

    def __init__(self, message: str, kind: str = "unknown", stderr: str = ""):
        super().__init__(message)
        self.kind = kind
        self.stderr = stderr


class CommitError(LedgerError):
    """The transaction was ordered but not committed as valid."""

    def __init__(self, message: str, stderr: str = "", transaction_id: str | None = None):
        super().__init__(message, kind="commit", stderr=stderr)
        self.transaction_id = transaction_id


# ================== HELPERS ==================

def peer_env(settings: Settings) -> dict[str, str]:
    env = os.environ.copy()
    env.update({
        "CORE_PEER_TLS_ENABLED": "true",
        "CORE_PEER_LOCALMSPID": settings.msp_id,
        "CORE_PEER_TLS_ROOTCERT_FILE": str(settings.tls_cert_path),
        "CORE_PEER_MSPCONFIGPATH": str(settings.msp_path),
        "CORE_PEER_ADDRESS": settings.peer_endpoint,
        "CORE_PEER_TLS_SERVERHOSTOVERRIDE": settings.peer_host_alias,
        "FABRIC_CFG_PATH": str(settings.fabric_cfg_path),
        "PATH": f"{settings.peer_bin.parent}:" + env.get("PATH", ""),
    })
    return env


def _read_pem(path, what: str) -> bytes:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CredentialError(f"cannot read {what} at {path}: {e}") from e
    if b"-----BEGIN" not in data:
        raise CredentialError(f"{what} at {path} is not PEM encoded")
    return data


def load_credentials(settings: Settings) -> dict[str, bytes]:
    """Read the TLS root cert, client cert and client key.

    The peer CLI picks the identity from an MSP directory, so the cert has to
    live in ``<msp>/signcerts`` and the key in ``<msp>/keystore``.
    """
    creds = {
        "tls_cert": _read_pem(settings.tls_cert_path, "TLS root certificate"),
        "cert": _read_pem(settings.cert_path, "client certificate"),
        "key": _read_pem(settings.key_path, "client private key"),
    }
    if settings.cert_path.parent.name != "signcerts":
        raise CredentialError(f"client certificate {settings.cert_path} is not in an MSP signcerts directory")
    if settings.key_path.parent != settings.msp_path / "keystore":
        raise CredentialError(f"client key {settings.key_path} is not in {settings.msp_path / 'keystore'}")
    return creds


def classify(output: str) -> str:
    text = output.lower()
    if "timed out waiting for txid" in text or "timeout expired" in text:
        return "timeout"
    if "transaction invalidated" in text or "committed with status" in text:
        return "commit"
    if "endorsement failure" in text or "proposalresponsepayloads do not match" in text:
        return "endorsement"
    if (
        "failed to create new connection" in text
        or "connection refused" in text
        or "context deadline exceeded" in text
        or "code = unavailable" in text
    ):
        return "unavailable"
    return "unknown"


def decode_payload(output: str) -> bytes:
    """Extract the chaincode payload from ``peer chaincode invoke`` output.

    The CLI prints it as an escaped, quoted protobuf text field; an empty
    payload is omitted entirely.
    """
    match = PAYLOAD_RE.search(output)
    if not match:
        return b""
    return codecs.escape_decode(match.group(1).encode("utf-8"))[0]


# ================== CONTRACT ==================

@dataclass(frozen=True)
class Contract:
    """Handle to one chaincode on one channel. Safe to share between threads."""

    settings: Settings
    runner: Runner = field(default=subprocess.run, compare=False)

    def _run(self, cmd: list[str], function: str, timeout: float | None = None) -> subprocess.CompletedProcess:
        try:
            return self.runner(
                cmd, env=peer_env(self.settings), capture_output=True, text=True, timeout=timeout
            )
        except FileNotFoundError as e:
            raise LedgerError(f"peer binary not found: {e}", kind="unavailable") from e
        except subprocess.TimeoutExpired as e:
            raise LedgerError(f"{function} timed out after {e.timeout}s", kind="timeout") from e

    def _fail(self, function: str, result: subprocess.CompletedProcess) -> LedgerError:
        output = (result.stdout or "") + (result.stderr or "")
        kind = classify(output)
        logger.error("ledger_call_failed", function=function, kind=kind, stderr=result.stderr)
        if kind == "commit":
            match = TXID_RE.search(output)
            return CommitError(
                f"{function} was not committed",
                stderr=result.stderr or "",
                transaction_id=match.group(1) if match else None,
            )
        return LedgerError(f"{function} failed ({kind})", kind=kind, stderr=result.stderr or "")

    def _spec(self, function: str, args: tuple[str, ...]) -> str:
        return json.dumps({"function": function, "Args": [str(a) for a in args]})

    def submit_transaction(self, function: str, *args: str, wait_for_commit: bool = True) -> bytes:
        """Endorse, order and (optionally) wait for commit of a transaction.

        Returns the chaincode's response payload.
        """
        s = self.settings
        cmd = [
            str(s.peer_bin), "chaincode", "invoke",
            "-o", s.orderer_endpoint,
            "--ordererTLSHostnameOverride", s.orderer_host_alias,
            "--tls", "--cafile", str(s.orderer_tls_cert_path),
            "-C", s.channel_name,
            "-n", s.chaincode_name,

            "--peerAddresses", s.peer_endpoint,
            "--tlsRootCertFiles", str(s.tls_cert_path),
        ]
        for address, ca in s.endorsing_peers:
            cmd += ["--peerAddresses", address, "--tlsRootCertFiles", str(ca)]
        cmd += ["-c", self._spec(function, args)]

        timeout = None
        if wait_for_commit:
            cmd += ["--waitForEvent", "--waitForEventTimeout", f"{s.commit_timeout}s"]
            # leave the CLI room to report its own timeout first
            timeout = s.commit_timeout + 30

        logger.info("submit_transaction", function=function, wait_for_commit=wait_for_commit)
        result = self._run(cmd, function, timeout=timeout)
        output = (result.stdout or "") + (result.stderr or "")

        if result.returncode != 0 or "status:200" not in output:
            raise self._fail(function, result)

        match = TXID_RE.search(output)
        if match:
            txid, status = match.groups()
            if status != "VALID":
                logger.error("transaction_invalid", function=function, txid=txid, status=status)
                raise CommitError(
                    f"transaction {txid} committed with status {status}",
                    stderr=result.stderr or "",
                    transaction_id=txid,
                )
            logger.info("transaction_committed", function=function, txid=txid)

        return decode_payload(output)

    def evaluate_transaction(self, function: str, *args: str) -> bytes:
        """Run a read-only chaincode function on the gateway peer."""
        s = self.settings
        cmd = [
            str(s.peer_bin), "chaincode", "query",
            "-C", s.channel_name,
            "-n", s.chaincode_name,
            "-c", self._spec(function, args),
        ]
        logger.debug("evaluate_transaction", function=function)
        result = self._run(cmd, function)
        if result.returncode != 0:
            raise self._fail(function, result)
        return (result.stdout or "").rstrip("\n").encode("utf-8")


def get_block_height(contract: Contract) -> int:
    s = contract.settings
    cmd = [str(s.peer_bin), "channel", "getinfo", "-c", s.channel_name]
    result = contract._run(cmd, "getinfo")
    if result.returncode != 0:
        raise contract._fail("getinfo", result)

    raw = (result.stdout or "").strip()
    if raw.startswith("Blockchain info:"):
        raw = raw[len("Blockchain info:"):].strip()
    try:
        info: dict[str, Any] = json.loads(raw)
        return int(info["height"])
    except (ValueError, KeyError, TypeError) as e:
        raise LedgerError(f"unexpected getinfo output: {raw!r}") from e


def connect(settings: Settings, runner: Runner = subprocess.run) -> Contract:
    """Load credentials and check the channel is reachable.

    Raises CredentialError or LedgerError; callers treat both as fatal.
    """
    load_credentials(settings)
    contract = Contract(settings, runner)
    height = get_block_height(contract)
    logger.info(
        "connected",
        peer=settings.peer_endpoint,
        channel=settings.channel_name,
        chaincode=settings.chaincode_name,
        msp_id=settings.msp_id,
        height=height,
    )
    return contract
