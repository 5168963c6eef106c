from typing import Annotated

from fastapi import Depends, Request

from apps.settings import settings


def get_public_base_url(request: Request) -> str:
    """
    Origin used in action URLs. The configured public URL wins; behind a
    proxy the forwarded scheme is used with the Host header.
    """
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    scheme = request.headers.get("x-forwarded-proto", request.url.scheme)
    host = request.headers.get("host", request.url.netloc)
    return f"{scheme.split(',')[0].strip()}://{host}"


PublicBaseUrlDependency = Annotated[str, Depends(get_public_base_url)]
