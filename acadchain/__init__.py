"""
AcadChain: coordination engine for academic credentials anchored on a
public ledger and mirrored on IPFS.
"""

__version__ = "1.0.0"
