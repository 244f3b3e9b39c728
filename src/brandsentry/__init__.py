"""brandsentry: reproducible brand-abuse signal processing for authorized client scopes.

The package turns publicly observable indicators (typosquat domains, certificate
issuance, code and paste leaks, social mentions) into deterministic signals,
correlated findings, and a hashed run manifest that can be replayed byte for byte.
"""

__version__ = "0.3.0"
