# config.py
import os
from datetime import timedelta

DEFAULT_GATEWAYS = (
    "https://gateway.pinata.cloud,"
    "https://ipfs.io,"
    "https://cloudflare-ipfs.com,"
    "https://dweb.link"
)


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'acadchain-dev-key-change-me')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'acadchain-jwt-dev-key-change-me')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)

    # Ledger (CredentialRegistry contract). Without a contract address every
    # session runs in local/demo mode.
    LEDGER_RPC_URL = os.environ.get('LEDGER_RPC_URL', 'http://127.0.0.1:8545')
    CONTRACT_ADDRESS = os.environ.get('CONTRACT_ADDRESS')
    LEDGER_PRIVATE_KEY = os.environ.get('LEDGER_PRIVATE_KEY')
    LEDGER_GAS_LIMIT = int(os.environ.get('LEDGER_GAS_LIMIT', '300000'))
    LEDGER_TX_TIMEOUT = float(os.environ.get('LEDGER_TX_TIMEOUT', '120'))
    CHAIN_NAMES = {
        137: 'polygon',
        80002: 'amoy',
        1337: 'ganache',
        31337: 'hardhat',
    }

    # Content store (IPFS pinned through Pinata)
    PINATA_API_URL = os.environ.get('PINATA_API_URL', 'https://api.pinata.cloud')
    PINATA_JWT = os.environ.get('PINATA_JWT')
    IPFS_GATEWAYS = [g.strip() for g in os.environ.get('IPFS_GATEWAYS', DEFAULT_GATEWAYS).split(',') if g.strip()]
    IPFS_GATEWAY_TIMEOUT = float(os.environ.get('IPFS_GATEWAY_TIMEOUT', '10'))

    VERIFICATION_CACHE_TTL = timedelta(hours=24)
    NOTIFICATION_LIMIT = 10

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    JWT_SECRET_KEY = 'acadchain-test-jwt-key-with-enough-length'
    CONTRACT_ADDRESS = None
    LEDGER_PRIVATE_KEY = None
    PINATA_JWT = None
