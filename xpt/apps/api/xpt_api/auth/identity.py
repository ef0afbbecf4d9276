"""OAuth identity verification boundary.

The provider token exchange (code -> tokens -> userinfo) is deployment
specific and lives outside this service. The callback route only needs
something that turns an authorization code into a VerifiedIdentity.
Installed on app.state.identity_verifier.
"""

from typing import Protocol, runtime_checkable

from xpt_api.auth.login import VerifiedIdentity


@runtime_checkable
class IdentityVerifier(Protocol):
    def verify(self, code: str) -> VerifiedIdentity:
        """Exchange an authorization code for the provider's verified identity.

        Raises:
            IdentityVerificationError: token_exchange_failed, user_info_failed
        """
        ...
