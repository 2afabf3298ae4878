"""Foundation School certificate issuance and rendering."""

from .renderer import (
    CertificateData,
    CertificateRenderer,
    CertificateRenderingError,
    ReportLabCertificateRenderer,
)


__all__ = [
    "CertificateData",
    "CertificateRenderer",
    "CertificateRenderingError",
    "ReportLabCertificateRenderer",
]
