from typing import Mapping, Optional

# Returned when the request carries no usable address
UNKNOWN_CLIENT_IP = "0.0.0.0"


def get_client_ip(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """
    Resolve the submitter's IP address.

    Prefers the first entry of ``x-forwarded-for``, then ``x-real-ip``,
    then the direct connection address. Both headers are client-controlled.

    Args:
        headers: Request headers (case-insensitive mapping)
        client_host: Address of the direct peer, if known

    Returns:
        IP address string, never empty
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        ips = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
        if ips:
            return ips[0]

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if client_host:
        return client_host

    return UNKNOWN_CLIENT_IP
