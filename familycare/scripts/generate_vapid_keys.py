"""
Generate VAPID Keys Script
Creates a key pair for Web Push and prints the environment variables to add to .env.
The public key goes to the browser client (applicationServerKey) as well.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid
from py_vapid.utils import b64urlencode
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def generate_vapid_keys():
    """Return (public_key, private_key), both base64url without padding"""
    vapid = Vapid()
    vapid.generate_keys()
    public_key = vapid.public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    private_value = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return b64urlencode(public_key), b64urlencode(private_value)


def main():
    try:
        public_key, private_key = generate_vapid_keys()
    except Exception as e:
        logger.error(f"Error generating VAPID keys: {e}")
        sys.exit(1)

    logger.info("Keys generated. Add to your .env file:")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print("VAPID_SUBJECT=mailto:you@example.com")
    logger.info("Remember to set VAPID_SUBJECT to a real contact address")


if __name__ == "__main__":
    main()
