"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration.

create_oauth(settings) builds the authlib registry. Only providers with both
client ID and secret configured get registered; get_enabled_providers()
reports the same set so the login page renders buttons dynamically.

Security notes:
  [H1] Email verification is mandatory. get_oauth_user_info() raises ValueError
       if the provider does not confirm the email is verified. Accounts created
       from an OAuth identity start verified, so an unconfirmed provider email
       must never get this far.

  OAuth state parameter (CSRF protection) is handled by authlib automatically
  via Starlette SessionMiddleware.

Supported providers:
  google -- Authorization code flow; OIDC discovery.
  github -- Authorization code flow; static endpoints.

Layer rule: no imports from api/ or core/. settings is passed in.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from auth.models import OAuthIdentity

logger = logging.getLogger("authgate.auth.oauth")


# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def create_oauth(settings) -> OAuth:
    """Return an authlib registry with every configured provider registered."""
    oauth = OAuth()

    # Google -- OIDC discovery
    if settings.google_client_id and settings.google_client_secret:
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")

    # GitHub -- static endpoints (no OIDC discovery document)
    if settings.github_client_id and settings.github_client_secret:
        oauth.register(
            name="github",
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
            authorize_url="https://github.com/login/oauth/authorize",
            api_base_url="https://api.github.com/",
            client_kwargs={"scope": "read:user user:email"},
        )
        logger.info("GitHub OAuth provider registered")

    return oauth


def get_enabled_providers(settings) -> list[dict]:
    """Return [{"name": ..., "label": ...}] for every configured provider."""
    providers: list[dict] = []
    if settings.google_client_id and settings.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    if settings.github_client_id and settings.github_client_secret:
        providers.append({"name": "github", "label": "GitHub"})
    return providers


# ---------------------------------------------------------------------------
# Identity extraction -- provider-specific normalization [H1]
# ---------------------------------------------------------------------------


async def get_oauth_user_info(client, provider: str, token: dict) -> OAuthIdentity:
    """Normalize a provider token response into an OAuthIdentity.

    Raises:
        ValueError: If a verified email cannot be confirmed, or the provider
            is unknown. The caller treats this as an authentication failure.
    """
    if provider == "github":
        return await _get_github_user_info(client, token)
    elif provider == "google":
        return _get_oidc_user_info(token, provider)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_user_info(client, token: dict) -> OAuthIdentity:
    """GitHub needs two calls: GET /user for id and name, GET /user/emails for
    the primary verified address. Only an entry with primary=true AND
    verified=true is accepted [H1].
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()

    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()

    email: str | None = None
    for entry in emails_resp.json():
        if entry.get("primary") and entry.get("verified"):
            email = entry["email"]
            break

    if not email:
        raise ValueError(
            "GitHub OAuth: no primary verified email found. "
            "The user must verify their email address on GitHub before logging in."
        )

    return OAuthIdentity(
        email=email,
        display_name=profile.get("name") or profile.get("login"),
        provider="github",
        subject=str(profile["id"]),
    )


def _get_oidc_user_info(token: dict, provider: str) -> OAuthIdentity:
    """Read email, name and sub from the id_token userinfo.

    Providers that omit email_verified are treated as unverified [H1].
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(
            f"{provider} OAuth: email is not verified. "
            "The provider must confirm email ownership before login is allowed."
        )

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError(f"{provider} OAuth: missing email or sub claim in userinfo")

    return OAuthIdentity(email=email, display_name=userinfo.get("name"), provider=provider, subject=subject)
