#!/usr/bin/env python3
"""
VAPID 키 쌍 생성 스크립트

Prints a fresh key pair as URL-safe base64 (no padding), ready to paste into
VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY.
"""

import argparse
import base64
import logging

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid01

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_keys() -> dict:
    vapid = Vapid01()
    vapid.generate_keys()

    public_key = vapid.public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    private_key = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return {"public_key": b64url(public_key), "private_key": b64url(private_key)}


def main():
    parser = argparse.ArgumentParser(description="Generate a VAPID key pair for web push")
    parser.add_argument("--env", action="store_true", help="print as .env lines")
    args = parser.parse_args()

    keys = generate_keys()
    if args.env:
        print(f"VAPID_PUBLIC_KEY={keys['public_key']}")
        print(f"VAPID_PRIVATE_KEY={keys['private_key']}")
    else:
        print(f"Public key:  {keys['public_key']}")
        print(f"Private key: {keys['private_key']}")
    logger.info("키 생성 완료 - private key 는 서버 환경 변수로만 보관하세요")


if __name__ == "__main__":
    main()
