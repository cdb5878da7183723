"""Key envelope decryption."""
