"""
Current-user identity

Resolves who a request is for: a profile user (by email) or a guest (by
booking number, optionally with a last name). This only reads the identity
the client sends; it issues and verifies no credentials.
"""
import re
from dataclasses import dataclass
from typing import Optional, Union

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class IdentityError(ValueError):
    """No usable identity, or a malformed one"""


@dataclass(frozen=True)
class UserIdentity:
    email: str

    @property
    def user_type(self) -> str:
        return "profile"


@dataclass(frozen=True)
class GuestReference:
    booking_number: str
    last_name: str = ""

    @property
    def user_type(self) -> str:
        return "guest"

    def matches_deal_name(self, deal_name: Optional[str]) -> bool:
        """A guest's last name must lead the deal name when one was given"""
        if not self.last_name:
            return True
        if not deal_name:
            return False
        leading = deal_name.split(",")[0].strip().lower()
        return leading == self.last_name.strip().lower()


Identity = Union[UserIdentity, GuestReference]


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def resolve_current_user(
    email: Optional[str] = None,
    booking_number: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Identity:
    """
    Pick the identity from request parameters; email wins over a booking number.

    Raises:
        IdentityError: neither given, or the email is malformed
    """
    email = (email or "").strip()
    if email:
        if not is_valid_email(email):
            raise IdentityError("Invalid email format")
        return UserIdentity(email=email)

    booking_number = (booking_number or "").strip()
    if booking_number:
        return GuestReference(booking_number=booking_number, last_name=(last_name or "").strip())

    raise IdentityError("Email parameter is required")
