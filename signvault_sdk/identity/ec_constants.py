"""
Constants for elliptic curve cryptography.
"""

# SECP256K1 constants
# Order of the SECP256K1 elliptic curve (N value)
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Signatures with s above this value are rewritten to N - s (low-s form)
SECP256K1_HALF_N = SECP256K1_N // 2

# Serialized compressed public key size
COMPRESSED_PUBKEY_LEN = 33
