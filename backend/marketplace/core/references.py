"""
Human-friendly references for payments and supplier purchase orders
"""
import secrets

# Crockford base32: no I, L, O or U
CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def generate_ref8() -> str:
    """8 Crockford base32 characters from 40 random bits, never all zeros"""
    while True:
        value = int.from_bytes(secrets.token_bytes(5), "big")
        if value:
            break
    chars = []
    for _ in range(8):
        chars.append(CROCKFORD_ALPHABET[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def generate_supplier_order_ref() -> str:
    """SPO-XXXX-XXXX"""
    ref = generate_ref8()
    return f"SPO-{ref[:4]}-{ref[4:]}"
