"""Custodial wallet service.

Generates a Sui Ed25519 keypair for each Telegram user. Users fund the address
with USDC and SUI; the service signs on their behalf. Private keys are stored
Fernet-encrypted.
"""

import hashlib
import logging
import time

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from smart_dca.models.wallet import CustodialWallet

logger = logging.getLogger(__name__)

ED25519_FLAG = b"\x00"


def sui_address(public_key: bytes) -> str:
    """Sui address: blake2b-256 over the scheme flag byte and the public key."""
    digest = hashlib.blake2b(ED25519_FLAG + public_key, digest_size=32).hexdigest()
    return f"0x{digest}"


def _raw_public_key(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def _raw_private_key(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


class WalletService:
    def __init__(self, engine: Engine, encryption_key: str):
        self.engine = engine
        self._encryption_key = encryption_key
        self._fernet: Fernet | None = None

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            if not self._encryption_key:
                raise RuntimeError(
                    "DCA_ENCRYPTION_KEY not set. Generate one with: "
                    "python -m smart_dca.cli generate-key"
                )
            self._fernet = Fernet(self._encryption_key.encode())
        return self._fernet

    def get_wallet(self, telegram_user_id: int) -> CustodialWallet | None:
        with Session(self.engine) as session:
            return session.exec(
                select(CustodialWallet).where(CustodialWallet.telegram_user_id == telegram_user_id)
            ).first()

    def get_address(self, telegram_user_id: int) -> str | None:
        wallet = self.get_wallet(telegram_user_id)
        return wallet.address if wallet else None

    def get_or_create(self, telegram_user_id: int) -> CustodialWallet:
        """Return the user's wallet, generating a keypair on first use."""
        existing = self.get_wallet(telegram_user_id)
        if existing is not None:
            return existing

        private_key = Ed25519PrivateKey.generate()
        wallet = CustodialWallet(
            telegram_user_id=telegram_user_id,
            address=sui_address(_raw_public_key(private_key)),
            secret_key_encrypted=self._get_fernet().encrypt(_raw_private_key(private_key).hex().encode()).decode(),
            created_at=int(time.time() * 1000),
        )
        try:
            with Session(self.engine) as session:
                session.add(wallet)
                session.commit()
                session.refresh(wallet)
        except IntegrityError:
            # Another request created it first
            logger.info(f"Wallet for user {telegram_user_id} created concurrently, reusing")
            return self.get_wallet(telegram_user_id)

        logger.info(f"Created custodial wallet {wallet.address} for user {telegram_user_id}")
        return wallet

    def load_private_key(self, telegram_user_id: int) -> Ed25519PrivateKey | None:
        """Decrypt the user's signing key."""
        wallet = self.get_wallet(telegram_user_id)
        if wallet is None:
            return None
        raw = bytes.fromhex(self._get_fernet().decrypt(wallet.secret_key_encrypted.encode()).decode())
        return Ed25519PrivateKey.from_private_bytes(raw)
