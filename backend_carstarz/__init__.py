"""
Backend Carstarz: mint verification and ownership reconciliation for vehicle NFTs.

Verifies that a submitted mint transaction produced the claimed on-chain state
before an off-chain vehicle profile is created, keeps one canonical identity per
wallet, and audits stored ownership against the chain.
"""

__version__ = "0.1.0"
