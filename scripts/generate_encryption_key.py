#!/usr/bin/env python3
"""Generate a Fernet encryption key for TOKEN_ENCRYPTION_KEY.

Usage:
    python scripts/generate_encryption_key.py

The key encrypts stored ride API access/refresh tokens. Rotating it makes
existing authorizations unreadable; users then have to connect again.
"""
from slashride.infra.crypto import FernetCrypto


def main() -> None:
    key = FernetCrypto.generate_key()
    print("# Add this to your .env file:")
    print(f"TOKEN_ENCRYPTION_KEY={key}")


if __name__ == "__main__":
    main()
