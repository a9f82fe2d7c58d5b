"""CustodialWallet model: bot-managed Sui keypair per Telegram user."""

from sqlalchemy import BigInteger
from sqlmodel import SQLModel, Field


class CustodialWallet(SQLModel, table=True):
    __tablename__ = "custodial_wallet"

    id: int | None = Field(default=None, primary_key=True)
    telegram_user_id: int = Field(sa_type=BigInteger, unique=True, index=True)
    address: str = Field(index=True)
    secret_key_encrypted: str  # Fernet-encrypted hex Ed25519 private key
    created_at: int = Field(sa_type=BigInteger)
