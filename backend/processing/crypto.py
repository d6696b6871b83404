import hashlib
import secrets
import uuid


class CryptoService:
    """Hashing and identifier minting for challenges and photos."""

    def generate_hash(self, data: bytes | str) -> str:
        """SHA-256 of `data` as 64 lowercase hex characters. Strings are hashed as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return hashlib.sha256(data).hexdigest()

    def generate_uuid(self) -> str:
        return str(uuid.uuid4())

    def generate_nonce(self, length: int = 32) -> str:
        """`length` bytes from the OS CSPRNG, hex encoded (2 * length characters)."""
        return secrets.token_hex(length)

    def verify_hash(self, data: bytes | str, expected_hash) -> bool:
        if not isinstance(expected_hash, str):
            return False
        return self.generate_hash(data) == expected_hash
