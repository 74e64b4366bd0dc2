"""External protocol probes."""

from .balance import BalanceProbe
from .certificate import CertificateInfo, CertificateProbe
from .chain_health import ChainHealth, ChainHealthProbe

__all__ = ["BalanceProbe", "CertificateInfo", "CertificateProbe", "ChainHealth", "ChainHealthProbe"]
