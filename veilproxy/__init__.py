"""Protocol building blocks for chained proxies: chain analysis, Shadowsocks AEAD, VMess AEAD and Trojan hashing."""

__version__ = "0.1.0"