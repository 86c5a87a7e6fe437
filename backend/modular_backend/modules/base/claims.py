"""Claim names used in identity tokens and helpers to read them."""

from typing import Any, Mapping, Optional

IDP_IDENTIFIER = "http://schemas.microsoft.com/identity/claims/identityprovider"
SUBJECT_IDENTIFIER = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/nameidentifier"
EMAIL = "http://schemas.xmlsoap.org/ws/2005/05/identity/claims/emailaddress"
ROLE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"
NAME = "name"
EXPIRY = "exp"
ISSUED_AT = "iat"
TENANT = "tenant"

# checked in order when looking for the user id
USER_ID_CLAIMS = (SUBJECT_IDENTIFIER, "sub", "userId")
EMAIL_CLAIMS = (EMAIL, "email")
ROLE_CLAIMS = (ROLE, "role", "roles")


def first_claim(claims: Optional[Mapping[str, Any]], names) -> Optional[str]:
    """Return the first value found for any of `names`."""
    if not claims:
        return None
    for name in names:
        value = claims.get(name)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value not in (None, ""):
            return str(value)
    return None


def principal_id(claims: Optional[Mapping[str, Any]]) -> Optional[str]:
    return first_claim(claims, USER_ID_CLAIMS)
